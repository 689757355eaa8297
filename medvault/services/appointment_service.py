# medvault/services/appointment_service.py
import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.exceptions import (
    AuthorizationError,
    ConflictError,
    LedgerUnavailableError,
    NotFoundError,
)
from medvault.models.appointment import AccessRequestStatus, Appointment, AppointmentStatus
from medvault.models.user import User, UserRole
from medvault.services.access_key_service import (
    appointment_lock,
    get_active_key_for_appointment,
    stage_revoke,
)
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def book_appointment(
    db: Session,
    *,
    patient: User,
    doctor_id: UUID,
    scheduled_at: datetime,
    hospital_name: str | None = None,
    now: datetime | None = None,
) -> Appointment:
    now = as_utc(now) if now else utc_now()

    if patient.role != UserRole.PATIENT:
        raise AuthorizationError("Only patients can book appointments.")

    doctor = db.get(User, doctor_id)
    if not doctor or doctor.role != UserRole.DOCTOR:
        raise NotFoundError("Doctor not found")

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
        hospital_name=hospital_name or doctor.hospital_name,
        scheduled_at=as_utc(scheduled_at),
        status=AppointmentStatus.SCHEDULED,
        access_request_status=AccessRequestStatus.NONE,
        created_at=now,
    )

    try:
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Patient {patient.id} booked appointment {appointment.id} with doctor {doctor.id}")
    return appointment


def get_appointment(db: Session, appointment_id: UUID) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def list_appointments(
    db: Session,
    *,
    patient_id: UUID | None = None,
    doctor_id: UUID | None = None,
    status: AppointmentStatus | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
) -> list[Appointment]:
    """
    Basic appointment listing helper with optional filters.
    """
    query = db.query(Appointment)

    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if status is not None:
        query = query.filter(Appointment.status == status)
    if from_date is not None:
        query = query.filter(Appointment.scheduled_at >= as_utc(from_date))
    if to_date is not None:
        query = query.filter(Appointment.scheduled_at <= as_utc(to_date))

    return query.order_by(Appointment.scheduled_at.asc()).all()


def cancel_appointment(
    db: Session,
    *,
    patient: User,
    appointment_id: UUID,
    now: datetime | None = None,
) -> Appointment:
    """
    Cancel a scheduled appointment and revoke its key if one is active.
    Both changes commit together or not at all.
    """
    now = as_utc(now) if now else utc_now()

    with appointment_lock(appointment_id):
        appointment = get_appointment(db, appointment_id)
        if appointment.patient_id != patient.id:
            raise AuthorizationError("You can only cancel your own appointments.")
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise ConflictError(f"Appointment is already {appointment.status.value}.")

        try:
            appointment.status = AppointmentStatus.CANCELLED
            active_key = get_active_key_for_appointment(db, appointment_id)
            if active_key:
                stage_revoke(db, key=active_key, actor_id=patient.id, now=now)
            db.commit()
        except (SQLAlchemyError, LedgerUnavailableError):
            db.rollback()
            raise

    db.refresh(appointment)
    logger.info(f"Patient {patient.id} cancelled appointment {appointment_id}")
    return appointment
