# medvault/api/v1/endpoints/ledger.py
from datetime import timedelta

from fastapi import APIRouter, Depends, Query

from medvault.dependencies.authz import get_patient_ops
from medvault.schemas.ledger import EmergencyAlertResponse, LedgerEntryResponse
from medvault.services.role_ops import PatientOps
from medvault.utils.datetime_utils import utc_now

router = APIRouter()


@router.get("/", response_model=list[LedgerEntryResponse])
def my_audit_trail(
    ops: PatientOps = Depends(get_patient_ops),
) -> list[LedgerEntryResponse]:
    """
    Every ledger entry concerning the current patient, in insertion order.
    """
    return [LedgerEntryResponse.model_validate(e) for e in ops.audit_trail()]


@router.get("/alerts", response_model=EmergencyAlertResponse)
def my_emergency_alert(
    days: int = Query(7, ge=1, le=365, description="Look-back window in days"),
    ops: PatientOps = Depends(get_patient_ops),
) -> EmergencyAlertResponse:
    since = utc_now() - timedelta(days=days)
    return EmergencyAlertResponse(
        has_recent_emergency_access=ops.has_recent_emergency_access(since=since),
        since=since,
    )
