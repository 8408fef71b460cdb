"""
Circle application endpoints. Submission is public; the registry is admin only.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.circle import CircleCreate, CircleReview, CircleResponse, CircleStats
from doujindesk.services import circle_service
from doujindesk.core.security import require_admin

router = APIRouter(prefix="/circles", tags=["Circles"])


@router.post("", response_model=CircleResponse, status_code=status.HTTP_201_CREATED)
async def submit_application(application: CircleCreate, db: AsyncSession = Depends(get_db)):
    return await circle_service.submit_circle(db, application)


@router.get("", response_model=list[CircleResponse])
async def list_applications(
    application_status: Optional[
        Literal["pending", "under_review", "accepted", "rejected", "waitlisted"]
    ] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await circle_service.list_circles(db, application_status, skip, limit)


@router.get("/stats", response_model=CircleStats)
async def registry_stats(
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await circle_service.circle_stats(db)


@router.get("/{circle_id}", response_model=CircleResponse)
async def get_application(
    circle_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await circle_service.get_circle(db, circle_id)


@router.post("/{circle_id}/review", response_model=CircleResponse)
async def review_application(
    circle_id: str,
    review: CircleReview,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await circle_service.review_circle(db, circle_id, review)
