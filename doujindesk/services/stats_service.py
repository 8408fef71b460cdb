"""
Sales statistics.

The numbers are a full recompute over the purchase ledger. The recompute is
cached in Redis under "tickets:stats" and dropped whenever the ledger
changes (see cache_service.invalidate_ticket_cache).

Revenue is summed in the currency each purchase was charged in: an IDR
purchase adds its total_price_idr to the IDR totals only, a USD purchase its
total_price_usd to the USD totals only.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.models.ticket import TicketPurchase
from doujindesk.services.cache_service import SALES_STATS_KEY, get_cached, set_cached
from doujindesk.db.base import as_utc
from doujindesk.core.logging import get_logger

logger = get_logger(__name__)


def _charged(purchase) -> tuple[int, Decimal]:
    if purchase.currency == "USD":
        return 0, Decimal(str(purchase.total_price_usd))
    return int(purchase.total_price_idr), Decimal("0")


def _day(value: datetime) -> str:
    return as_utc(value).date().isoformat()


def compute_sales_stats(purchases: Iterable) -> dict:
    total_idr = 0
    total_usd = Decimal("0")
    tickets = 0
    by_type: dict[str, dict] = {}
    daily: dict[str, dict] = {}
    refund_idr = 0
    refund_usd = Decimal("0")
    refund_count = 0

    for purchase in purchases:
        idr, usd = _charged(purchase)

        if purchase.payment_status == "refunded":
            refund_idr += idr
            refund_usd += usd
            refund_count += 1
            continue
        if purchase.payment_status != "paid":
            continue

        total_idr += idr
        total_usd += usd
        tickets += purchase.quantity

        type_key = purchase.ticket_type_id or "unknown"
        entry = by_type.setdefault(type_key, {"quantity": 0, "revenue_idr": 0, "revenue_usd": Decimal("0")})
        entry["quantity"] += purchase.quantity
        entry["revenue_idr"] += idr
        entry["revenue_usd"] += usd

        day = daily.setdefault(_day(purchase.purchase_date), {"tickets": 0, "revenue_idr": 0, "revenue_usd": Decimal("0")})
        day["tickets"] += purchase.quantity
        day["revenue_idr"] += idr
        day["revenue_usd"] += usd

    for bucket in list(by_type.values()) + list(daily.values()):
        bucket["revenue_usd"] = float(bucket["revenue_usd"])

    return {
        "total_sales_idr": total_idr,
        "total_sales_usd": float(total_usd),
        "total_tickets_sold": tickets,
        "sales_by_type": by_type,
        "daily_sales": dict(sorted(daily.items())),
        "refunds": {
            "total_amount_idr": refund_idr,
            "total_amount_usd": float(refund_usd),
            "count": refund_count,
        },
    }


async def get_sales_stats(db: AsyncSession) -> dict:
    """Sales statistics, served from cache when possible."""
    cached = await get_cached(SALES_STATS_KEY)
    if cached is not None:
        return {**cached, "cached": True}

    result = await db.execute(
        select(TicketPurchase).where(TicketPurchase.payment_status.in_(("paid", "refunded")))
    )
    stats = compute_sales_stats(result.scalars().all())
    await set_cached(SALES_STATS_KEY, stats)

    logger.info("sales_stats_computed", tickets=stats["total_tickets_sold"], refunds=stats["refunds"]["count"])
    return {**stats, "cached": False}
