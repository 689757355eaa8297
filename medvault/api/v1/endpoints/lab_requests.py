# medvault/api/v1/endpoints/lab_requests.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from medvault.core.database import get_db
from medvault.core.exceptions import MedVaultError
from medvault.dependencies.auth import get_current_user
from medvault.dependencies.authz import get_lab_ops, get_patient_ops
from medvault.dependencies.errors import to_http_exception
from medvault.models.user import User
from medvault.schemas.lab_request import (
    LabRequestCreate,
    LabRequestResponse,
    LabResponseRequest,
    LabResponseResult,
)
from medvault.schemas.medical_record import MedicalRecordResponse
from medvault.services.role_ops import LabOps, PatientOps, ops_for

router = APIRouter()


@router.post(
    "/",
    response_model=LabRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_lab_request(
    payload: LabRequestCreate,
    ops: LabOps = Depends(get_lab_ops),
) -> LabRequestResponse:
    try:
        req = ops.submit_lab_request(
            patient_id=payload.patient_id,
            lab_name=payload.lab_name,
            title=payload.title,
            bill_file_name=payload.bill_file_name,
            description=payload.description,
            file_name=payload.file_name,
            file_url=payload.file_url,
        )
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return LabRequestResponse.model_validate(req)


@router.get("/", response_model=list[LabRequestResponse])
def list_lab_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LabRequestResponse]:
    """
    Patients see reports waiting for their approval; technicians see what they submitted.
    """
    ops = ops_for(db, current_user)
    if isinstance(ops, PatientOps):
        requests = ops.list_pending_lab_requests()
    elif isinstance(ops, LabOps):
        requests = ops.list_submitted()
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Doctors have no lab requests.",
        )
    return [LabRequestResponse.model_validate(r) for r in requests]


@router.post("/{request_id}/response", response_model=LabResponseResult)
def respond_to_lab_request(
    request_id: UUID,
    payload: LabResponseRequest,
    ops: PatientOps = Depends(get_patient_ops),
) -> LabResponseResult:
    """
    Approve (adds the report to the patient's records) or reject. A request resolves once.
    """
    try:
        req, record = ops.respond_to_lab_request(request_id, approve=payload.approve)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return LabResponseResult(
        request=LabRequestResponse.model_validate(req),
        record=MedicalRecordResponse.model_validate(record) if record else None,
    )
