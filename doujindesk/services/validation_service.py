"""
Gate validation state machine.

ADMISSION RULES
===============

entry:
  1. the scanned code must match a purchase      -> "Ticket not found"
  2. payment_status must be paid                 -> "Payment not confirmed"
  3. the ticket must not be used yet             -> "Ticket already used"
  4. now must lie in [valid_from, valid_until]   -> "Ticket not valid for current date/time"
  On success the purchase is latched: is_used=true, used_at, entry_gate.

exit:
  paid and already admitted, else "Ticket not admitted". The latch is never
  reset, so leaving the venue does not allow a second entry.

area_access:
  paid, admitted, inside the validity window and the gate listed in the
  purchase's special_access, else "No access to this area".

Every scan appends exactly one row to ticket_validations, accepted or not.

RACE ON THE LATCH
=================

Two gates scanning the same ticket simultaneously both pass the in-memory
checks. The latch is therefore a conditional UPDATE ... WHERE is_used = false;
the scan whose UPDATE matches zero rows is logged as "Ticket already used".
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.models.ticket import TicketPurchase, TicketValidation
from doujindesk.schemas.purchase import OfflineScan
from doujindesk.services.purchase_service import get_purchase_by_qr
from doujindesk.db.base import utcnow, as_utc
from doujindesk.core.logging import get_logger
from doujindesk.core.metrics import record_validation

logger = get_logger(__name__)

TICKET_NOT_FOUND = "Ticket not found"
PAYMENT_NOT_CONFIRMED = "Payment not confirmed"
TICKET_ALREADY_USED = "Ticket already used"
TICKET_OUT_OF_WINDOW = "Ticket not valid for current date/time"
TICKET_NOT_ADMITTED = "Ticket not admitted"
NO_AREA_ACCESS = "No access to this area"


@dataclass(frozen=True)
class ScanOutcome:
    is_valid: bool
    validation: TicketValidation
    purchase: Optional[TicketPurchase] = None

    @property
    def error_reason(self) -> Optional[str]:
        return self.validation.error_reason


def _within_window(purchase: TicketPurchase, now: datetime) -> bool:
    return as_utc(purchase.valid_from) <= now <= as_utc(purchase.valid_until)


def check_ticket(
    purchase: Optional[TicketPurchase],
    validation_type: str,
    gate_id: str,
    now: datetime,
) -> Optional[str]:
    """Return the rejection reason for a scan, or None when it should pass."""
    if purchase is None:
        return TICKET_NOT_FOUND
    if purchase.payment_status != "paid":
        return PAYMENT_NOT_CONFIRMED

    if validation_type == "exit":
        return None if purchase.is_used else TICKET_NOT_ADMITTED

    if validation_type == "area_access":
        if not purchase.is_used or not _within_window(purchase, now):
            return NO_AREA_ACCESS
        if gate_id not in (purchase.special_access or []):
            return NO_AREA_ACCESS
        return None

    if purchase.is_used:
        return TICKET_ALREADY_USED
    if not _within_window(purchase, now):
        return TICKET_OUT_OF_WINDOW
    return None


async def _latch_entry(db: AsyncSession, purchase: TicketPurchase, gate_id: str, now: datetime) -> bool:
    result = await db.execute(
        update(TicketPurchase)
        .where(TicketPurchase.id == purchase.id, TicketPurchase.is_used.is_(False))
        .values(is_used=True, used_at=now, entry_gate=gate_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    await db.refresh(purchase)
    return True


async def validate_ticket(
    db: AsyncSession,
    qr_code: str,
    gate_id: str,
    staff_id: str,
    validation_type: str = "entry",
    now: Optional[datetime] = None,
) -> ScanOutcome:
    """
    Run one scan through the admission rules and record it.
    Rejections are normal results, never exceptions.
    """
    now = as_utc(now) if now else utcnow()
    purchase = await get_purchase_by_qr(db, qr_code)

    reason = check_ticket(purchase, validation_type, gate_id, now)
    if reason is None and validation_type == "entry":
        if not await _latch_entry(db, purchase, gate_id, now):
            reason = TICKET_ALREADY_USED

    validation = TicketValidation(
        ticket_id=purchase.id if purchase else None,
        scanned_code=qr_code,
        validation_type=validation_type,
        gate_id=gate_id,
        staff_id=staff_id,
        timestamp=now,
        is_valid=reason is None,
        error_reason=reason,
    )
    db.add(validation)
    await db.flush()
    await db.refresh(validation)

    record_validation(validation_type, accepted=reason is None)
    if reason is None:
        logger.info(
            "ticket_validated",
            ticket_id=purchase.id,
            gate_id=gate_id,
            staff_id=staff_id,
            validation_type=validation_type,
        )
    else:
        logger.warning(
            "ticket_rejected",
            ticket_id=purchase.id if purchase else None,
            gate_id=gate_id,
            staff_id=staff_id,
            validation_type=validation_type,
            reason=reason,
        )

    return ScanOutcome(is_valid=reason is None, validation=validation, purchase=purchase)


async def sync_offline_scans(db: AsyncSession, scans: list[OfflineScan], staff_id: str) -> list[ScanOutcome]:
    """
    Replay scans a gate queued while offline, in submission order, each
    evaluated at the moment it was scanned.
    """
    outcomes = []
    for scan in scans:
        outcome = await validate_ticket(
            db,
            qr_code=scan.qr_code,
            gate_id=scan.gate_id,
            staff_id=staff_id,
            validation_type=scan.validation_type,
            now=scan.scanned_at,
        )
        outcomes.append(outcome)

    accepted = sum(1 for outcome in outcomes if outcome.is_valid)
    logger.info("offline_scans_synced", staff_id=staff_id, total=len(outcomes), accepted=accepted)
    return outcomes


async def get_validation_history(
    db: AsyncSession,
    ticket_id: Optional[str] = None,
    gate_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[TicketValidation]:
    query = select(TicketValidation)
    if ticket_id:
        query = query.where(TicketValidation.ticket_id == ticket_id)
    if gate_id:
        query = query.where(TicketValidation.gate_id == gate_id)

    result = await db.execute(
        query.order_by(TicketValidation.timestamp.desc(), TicketValidation.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())
