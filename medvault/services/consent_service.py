# medvault/services/consent_service.py
"""
Per-appointment consent: a doctor asks to see the patient's records, the
patient approves or denies once. NONE -> PENDING -> APPROVED | DENIED.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from medvault.models.access_key import AccessKey
from medvault.models.appointment import AccessRequestStatus, Appointment
from medvault.models.ledger_entry import LedgerAction
from medvault.models.user import User, UserRole
from medvault.services.access_key_service import appointment_lock, stage_key
from medvault.services.ledger_service import append_entry
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def _get_appointment(db: Session, appointment_id: UUID) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def request_access(
    db: Session,
    *,
    appointment_id: UUID,
    doctor: User,
    now: datetime | None = None,
) -> Appointment:
    """
    Doctor asks the patient for access to their records for this appointment.
    """
    now = as_utc(now) if now else utc_now()

    if doctor.role != UserRole.DOCTOR:
        raise AuthorizationError("Only doctors can request access to patient records.")

    with appointment_lock(appointment_id):
        appointment = _get_appointment(db, appointment_id)
        if appointment.doctor_id != doctor.id:
            raise AuthorizationError("You can only request access for appointments assigned to you.")

        if appointment.access_request_status != AccessRequestStatus.NONE:
            raise ConflictError(
                f"Access request is already {appointment.access_request_status.value} for this appointment."
            )

        appointment.access_request_status = AccessRequestStatus.PENDING
        try:
            append_entry(
                db,
                action=LedgerAction.ACCESS_REQUESTED,
                actor_id=doctor.id,
                patient_id=appointment.patient_id,
                details=f"Dr. {doctor.name} requested access to records of patient {appointment.patient_id} "
                f"for appointment {appointment.id}",
                now=now,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(f"Doctor {doctor.id} requested access for appointment {appointment_id}")
    return appointment


def respond_to_access_request(
    db: Session,
    *,
    appointment_id: UUID,
    patient: User,
    approve: bool,
    now: datetime | None = None,
) -> tuple[Appointment, AccessKey | None]:
    """
    Patient resolves a pending request. Approval issues an access key in the
    same transaction so the doctor can use it right away.
    """
    now = as_utc(now) if now else utc_now()

    with appointment_lock(appointment_id):
        appointment = _get_appointment(db, appointment_id)
        if patient.role != UserRole.PATIENT or appointment.patient_id != patient.id:
            raise AuthorizationError("Only the patient of this appointment can respond to its access request.")

        if appointment.access_request_status != AccessRequestStatus.PENDING:
            raise ConflictError(
                f"No pending access request (current state: {appointment.access_request_status.value})."
            )

        key = None
        try:
            if approve:
                appointment.access_request_status = AccessRequestStatus.APPROVED
                append_entry(
                    db,
                    action=LedgerAction.ACCESS_APPROVED,
                    actor_id=patient.id,
                    patient_id=patient.id,
                    details=f"Patient {patient.id} approved access for Dr. {appointment.doctor_name} "
                    f"on appointment {appointment.id}",
                    now=now,
                )
                key = stage_key(
                    db,
                    appointment=appointment,
                    actor_id=patient.id,
                    is_emergency_forced=False,
                    now=now,
                )
            else:
                appointment.access_request_status = AccessRequestStatus.DENIED
                append_entry(
                    db,
                    action=LedgerAction.ACCESS_DENIED,
                    actor_id=patient.id,
                    patient_id=patient.id,
                    details=f"Patient {patient.id} denied access for Dr. {appointment.doctor_name} "
                    f"on appointment {appointment.id}",
                    now=now,
                )
            db.commit()
        except (SQLAlchemyError, ConflictError):
            db.rollback()
            raise

    db.refresh(appointment)
    if key is not None:
        db.refresh(key)
    logger.info(f"Patient {patient.id} {'approved' if approve else 'denied'} access for appointment {appointment_id}")
    return appointment, key
