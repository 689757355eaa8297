# medvault/api/v1/endpoints/records.py
from uuid import UUID

from fastapi import APIRouter, Depends, status

from medvault.core.exceptions import MedVaultError
from medvault.dependencies.authz import get_patient_ops
from medvault.dependencies.errors import to_http_exception
from medvault.schemas.medical_record import MedicalRecordCreate, MedicalRecordResponse, RecordInsight
from medvault.services.role_ops import PatientOps

router = APIRouter()


@router.post(
    "/",
    response_model=MedicalRecordResponse,
    status_code=status.HTTP_201_CREATED,
)
def upload_record(
    payload: MedicalRecordCreate,
    ops: PatientOps = Depends(get_patient_ops),
) -> MedicalRecordResponse:
    """
    Register a record the patient uploaded. file_name / file_url come from
    the storage layer as opaque references.
    """
    try:
        record = ops.upload_record(
            title=payload.title,
            description=payload.description,
            file_type=payload.file_type,
            file_name=payload.file_name,
            file_url=payload.file_url,
            follow_up_date=payload.follow_up_date,
        )
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return MedicalRecordResponse.model_validate(record)


@router.get("/", response_model=list[MedicalRecordResponse])
def list_my_records(
    ops: PatientOps = Depends(get_patient_ops),
) -> list[MedicalRecordResponse]:
    return [MedicalRecordResponse.model_validate(r) for r in ops.list_records()]


@router.get("/follow-ups", response_model=list[MedicalRecordResponse])
def list_my_follow_ups(
    ops: PatientOps = Depends(get_patient_ops),
) -> list[MedicalRecordResponse]:
    return [MedicalRecordResponse.model_validate(r) for r in ops.list_follow_ups()]


@router.get("/insights", response_model=list[RecordInsight])
def my_record_insights(
    ops: PatientOps = Depends(get_patient_ops),
) -> list[RecordInsight]:
    return [RecordInsight(term=term, count=count) for term, count in ops.record_insights()]


@router.post("/{record_id}/toggle-emergency", response_model=MedicalRecordResponse)
def toggle_record_emergency(
    record_id: UUID,
    ops: PatientOps = Depends(get_patient_ops),
) -> MedicalRecordResponse:
    try:
        record = ops.toggle_record_emergency(record_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return MedicalRecordResponse.model_validate(record)
