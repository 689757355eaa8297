# medvault/api/v1/endpoints/emergency.py
"""
Emergency override endpoints. Every successful call here is written to the
patient's audit ledger; refused calls return 403 and write nothing.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from medvault.core.exceptions import MedVaultError
from medvault.dependencies.authz import get_doctor_ops
from medvault.dependencies.errors import to_http_exception
from medvault.schemas.medical_record import MedicalRecordResponse
from medvault.schemas.user import EmergencyProfileResponse
from medvault.services.role_ops import DoctorOps

router = APIRouter()


@router.get("/patients/{patient_id}/profile", response_model=EmergencyProfileResponse)
def emergency_profile(
    patient_id: UUID,
    ops: DoctorOps = Depends(get_doctor_ops),
) -> EmergencyProfileResponse:
    try:
        patient = ops.emergency_profile(patient_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return EmergencyProfileResponse.model_validate(patient)


@router.get("/patients/{patient_id}/records", response_model=list[MedicalRecordResponse])
def emergency_records(
    patient_id: UUID,
    ops: DoctorOps = Depends(get_doctor_ops),
) -> list[MedicalRecordResponse]:
    try:
        records = ops.emergency_records(patient_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return [MedicalRecordResponse.model_validate(r) for r in records]


@router.get("/records/{record_id}", response_model=MedicalRecordResponse)
def emergency_record(
    record_id: UUID,
    ops: DoctorOps = Depends(get_doctor_ops),
) -> MedicalRecordResponse:
    try:
        record = ops.emergency_record(record_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return MedicalRecordResponse.model_validate(record)
