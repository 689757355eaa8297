# medvault/api/v1/endpoints/keys.py
from fastapi import APIRouter, Depends

from medvault.core.exceptions import MedVaultError
from medvault.dependencies.authz import get_doctor_ops, get_patient_ops
from medvault.dependencies.errors import to_http_exception
from medvault.schemas.access_key import AccessKeyResponse, RevokeKeyResponse
from medvault.schemas.medical_record import MedicalRecordResponse
from medvault.services.role_ops import DoctorOps, PatientOps

router = APIRouter()


@router.get("/", response_model=list[AccessKeyResponse])
def list_my_active_keys(
    ops: PatientOps = Depends(get_patient_ops),
) -> list[AccessKeyResponse]:
    return [AccessKeyResponse.model_validate(k) for k in ops.list_active_keys()]


@router.delete("/{code}", response_model=RevokeKeyResponse)
def revoke_key(
    code: str,
    ops: PatientOps = Depends(get_patient_ops),
) -> RevokeKeyResponse:
    """
    Revoke a key. Revoking an unknown or already inactive key succeeds as a no-op.
    """
    try:
        key = ops.revoke_key(code)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return RevokeKeyResponse(code=code, revoked=key is not None)


@router.get("/{code}/records", response_model=list[MedicalRecordResponse])
def view_records_with_key(
    code: str,
    ops: DoctorOps = Depends(get_doctor_ops),
) -> list[MedicalRecordResponse]:
    """
    Doctor view of a patient's records. The key is checked again on every call.
    """
    try:
        records = ops.records_for_key(code)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return [MedicalRecordResponse.model_validate(r) for r in records]
