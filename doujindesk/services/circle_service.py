"""
Circle (vendor) applications: submission, review and registry statistics.
"""

import time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from doujindesk.models.circle import Circle
from doujindesk.schemas.circle import CircleCreate, CircleReview
from doujindesk.services.ids import make_id, random_suffix
from doujindesk.core.config import get_settings
from doujindesk.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

# Space fee per currency (IDR whole rupiah, USD whole dollars)
SPACE_PRICES = {
    "circle_space_1": {"IDR": 150000, "USD": 10},
    "circle_space_2": {"IDR": 280000, "USD": 18},
    "circle_space_4": {"IDR": 520000, "USD": 35},
    "circle_booth_a": {"IDR": 800000, "USD": 55},
    "circle_booth_b": {"IDR": 1200000, "USD": 80},
}

REVIEWABLE_STATUSES = ("pending", "under_review", "waitlisted")


def generate_circle_code() -> str:
    """`C` + last six digits of the epoch millis + two random characters."""
    millis = str(int(time.time() * 1000))[-6:]
    return f"C{millis}{random_suffix(2).upper()}"


def space_fee(space_preference: str, currency: str) -> int:
    return SPACE_PRICES[space_preference][currency]


async def submit_circle(db: AsyncSession, application: CircleCreate) -> Circle:
    code = generate_circle_code()
    while (await db.execute(select(Circle.id).where(Circle.circle_code == code))).first():
        code = generate_circle_code()

    circle = Circle(
        id=make_id("circle"),
        event_id=settings.EVENT_ID,
        circle_code=code,
        total_amount=space_fee(application.space_preference, application.currency),
        payment_status="pending",
        application_status="pending",
        **application.model_dump(),
    )
    db.add(circle)
    await db.flush()
    await db.refresh(circle)

    logger.info(
        "circle_submitted",
        circle_id=circle.id,
        circle_code=circle.circle_code,
        space=circle.space_preference,
    )
    return circle


async def get_circle(db: AsyncSession, circle_id: str) -> Circle:
    result = await db.execute(select(Circle).where(Circle.id == circle_id))
    circle = result.scalar_one_or_none()

    if not circle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Circle {circle_id} not found",
        )
    return circle


async def list_circles(
    db: AsyncSession,
    application_status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Circle]:
    query = select(Circle)
    if application_status:
        query = query.where(Circle.application_status == application_status)

    result = await db.execute(query.order_by(Circle.created_at.desc(), Circle.id.desc()).offset(skip).limit(limit))
    return list(result.scalars().all())


async def review_circle(db: AsyncSession, circle_id: str, review: CircleReview) -> Circle:
    """
    Move an application to a new status. Accepted and rejected are final.
    """
    circle = await get_circle(db, circle_id)

    if circle.application_status not in REVIEWABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Circle {circle_id} has already been {circle.application_status}",
        )

    previous = circle.application_status
    circle.application_status = review.status
    if review.notes is not None:
        circle.notes = review.notes
    if review.booth_number is not None:
        circle.booth_number = review.booth_number

    await db.flush()
    await db.refresh(circle)

    logger.info("circle_reviewed", circle_id=circle_id, previous=previous, status=review.status)
    return circle


async def circle_stats(db: AsyncSession) -> dict:
    result = await db.execute(
        select(Circle.application_status, Circle.space_preference, Circle.total_amount, Circle.currency)
    )

    by_status: dict[str, int] = {}
    by_space: dict[str, int] = {}
    revenue = {"IDR": 0, "USD": 0}
    total = 0

    for application_status, space, amount, currency in result.all():
        total += 1
        by_status[application_status] = by_status.get(application_status, 0) + 1
        by_space[space] = by_space.get(space, 0) + 1
        if application_status == "accepted":
            revenue[currency] += amount

    return {
        "total": total,
        "by_status": by_status,
        "by_space": by_space,
        "revenue_idr": revenue["IDR"],
        "revenue_usd": revenue["USD"],
    }
