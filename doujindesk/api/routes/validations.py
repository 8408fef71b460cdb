"""
Gate scanning endpoints.

Scans are never rejected with an error status: a bad ticket is a 200 with
is_valid=false and the reason, and is recorded in the validation log.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.purchase import (
    ScanRequest,
    SyncRequest,
    ScanResultResponse,
    ValidationResponse,
    QRVerifyRequest,
    QRVerifyResponse,
)
from doujindesk.services.validation_service import (
    ScanOutcome,
    validate_ticket,
    sync_offline_scans,
    get_validation_history,
)
from doujindesk.services.qr_codec import decode_qr_payload, validate_qr_payload
from doujindesk.core.security import get_current_user_id

router = APIRouter(prefix="/validations", tags=["Validations"])


def _to_response(outcome: ScanOutcome) -> ScanResultResponse:
    purchase = outcome.purchase
    return ScanResultResponse(
        is_valid=outcome.is_valid,
        error_reason=outcome.error_reason,
        ticket_id=purchase.id if purchase else None,
        attendee_name=purchase.attendee_name if purchase else None,
        ticket_type_id=purchase.ticket_type_id if purchase else None,
        validation=ValidationResponse.model_validate(outcome.validation),
    )


@router.post("/scan", response_model=ScanResultResponse)
async def scan_ticket(
    scan: ScanRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    outcome = await validate_ticket(
        db,
        qr_code=scan.qr_code,
        gate_id=scan.gate_id,
        staff_id=str(user_id),
        validation_type=scan.validation_type,
    )
    return _to_response(outcome)


@router.post("/sync", response_model=list[ScanResultResponse])
async def sync_scans(
    batch: SyncRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Upload scans a gate device queued while offline. One result per scan, in order."""
    outcomes = await sync_offline_scans(db, batch.scans, staff_id=str(user_id))
    return [_to_response(outcome) for outcome in outcomes]


@router.post("/verify-qr", response_model=QRVerifyResponse)
async def verify_qr(request: QRVerifyRequest):
    """Decode a QR token and check its own expiry. Does not consult the ledger."""
    data = decode_qr_payload(request.qr_code)
    if data is None:
        return QRVerifyResponse(is_valid=False)
    return QRVerifyResponse(
        is_valid=validate_qr_payload(data),
        ticket_id=data.ticket_id,
        event_id=data.event_id,
        ticket_type=data.ticket_type,
        attendee_name=data.attendee_name,
        valid_until=data.valid_until,
    )


@router.get("", response_model=list[ValidationResponse])
async def validation_history(
    ticket_id: Optional[str] = Query(None),
    gate_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_validation_history(db, ticket_id, gate_id, skip, limit)
