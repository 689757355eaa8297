# medvault/api/v1/endpoints/appointments.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from medvault.core.database import get_db
from medvault.core.exceptions import MedVaultError
from medvault.dependencies.auth import get_current_user
from medvault.dependencies.authz import get_doctor_ops, get_patient_ops
from medvault.dependencies.errors import to_http_exception
from medvault.models.user import User
from medvault.schemas.access_key import AccessKeyResponse
from medvault.schemas.appointment import (
    AccessResponseRequest,
    AccessResponseResult,
    AppointmentCreate,
    AppointmentResponse,
)
from medvault.services.role_ops import DoctorOps, LabOps, PatientOps, ops_for

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def book_appointment(
    payload: AppointmentCreate,
    ops: PatientOps = Depends(get_patient_ops),
) -> AppointmentResponse:
    try:
        appointment = ops.book_appointment(
            doctor_id=payload.doctor_id,
            scheduled_at=payload.scheduled_at,
            hospital_name=payload.hospital_name,
        )
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return AppointmentResponse.model_validate(appointment)


@router.get("/", response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[AppointmentResponse]:
    """
    Patients see the appointments they booked, doctors the ones assigned to them.
    """
    ops = ops_for(db, current_user)
    if isinstance(ops, LabOps):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Lab technicians have no appointments.",
        )
    return [AppointmentResponse.model_validate(a) for a in ops.list_appointments()]


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: UUID,
    ops: PatientOps = Depends(get_patient_ops),
) -> AppointmentResponse:
    try:
        appointment = ops.cancel_appointment(appointment_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/access-request", response_model=AppointmentResponse)
def request_record_access(
    appointment_id: UUID,
    ops: DoctorOps = Depends(get_doctor_ops),
) -> AppointmentResponse:
    """
    Ask the patient for access to their records for this appointment.
    """
    try:
        appointment = ops.request_access(appointment_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/access-response", response_model=AccessResponseResult)
def respond_to_access_request(
    appointment_id: UUID,
    payload: AccessResponseRequest,
    ops: PatientOps = Depends(get_patient_ops),
) -> AccessResponseResult:
    """
    Approve (issues a key right away) or deny a pending request. One shot per appointment.
    """
    try:
        appointment, key = ops.respond_to_access_request(appointment_id, approve=payload.approve)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return AccessResponseResult(
        appointment=AppointmentResponse.model_validate(appointment),
        key=AccessKeyResponse.model_validate(key) if key else None,
    )


@router.post(
    "/{appointment_id}/emergency-key",
    response_model=AccessKeyResponse,
    status_code=status.HTTP_201_CREATED,
)
def force_emergency_key(
    appointment_id: UUID,
    ops: PatientOps = Depends(get_patient_ops),
) -> AccessKeyResponse:
    """
    Issue an off-schedule key with the short emergency TTL, replacing any active key.
    """
    try:
        key = ops.force_emergency_key(appointment_id)
    except MedVaultError as exc:
        raise to_http_exception(exc)
    return AccessKeyResponse.model_validate(key)
