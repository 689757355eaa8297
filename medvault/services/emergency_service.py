# medvault/services/emergency_service.py
"""
Emergency override.

A doctor who is geo-fenced at a recognized hospital may read a patient's
emergency info and the records the patient flagged as emergency-accessible,
without the patient in the loop. The geo-fence is a hard precondition, and
every successful disclosure writes exactly one EMERGENCY_ACCESS entry; a
refused disclosure writes nothing.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.exceptions import AuthorizationError, NotFoundError
from medvault.models.ledger_entry import LedgerAction
from medvault.models.medical_record import MedicalRecord
from medvault.models.user import User, UserRole
from medvault.services.ledger_service import append_entry
from medvault.services.record_service import get_record
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def can_view_emergency_info(doctor: User, patient: User) -> bool:
    return (
        doctor.role == UserRole.DOCTOR
        and bool(doctor.is_geo_fenced)
        and patient.role == UserRole.PATIENT
    )


def can_view_record(doctor: User, patient: User, record: MedicalRecord) -> bool:
    return (
        can_view_emergency_info(doctor, patient)
        and record.patient_id == patient.id
        and bool(record.is_emergency_accessible)
    )


def _get_patient(db: Session, patient_id: UUID) -> User:
    patient = db.get(User, patient_id)
    if not patient or patient.role != UserRole.PATIENT:
        raise NotFoundError("Patient not found")
    return patient


def _denial_reason(doctor: User) -> str:
    if doctor.role != UserRole.DOCTOR:
        return "Emergency override is only available to doctors."
    if not doctor.is_geo_fenced:
        return "Emergency override requires being on site at a recognized hospital."
    return "This record is not shared for emergency access."


def _log_disclosure(
    db: Session,
    *,
    doctor: User,
    patient: User,
    what: str,
    now: datetime,
) -> None:
    try:
        append_entry(
            db,
            action=LedgerAction.EMERGENCY_ACCESS,
            actor_id=doctor.id,
            patient_id=patient.id,
            details=f"Dr. {doctor.name} accessed {what} of patient {patient.id} via emergency override",
            now=now,
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info(f"Emergency override: doctor {doctor.id} accessed {what} of patient {patient.id}")


def disclose_record(
    db: Session,
    *,
    doctor: User,
    record_id: UUID,
    now: datetime | None = None,
) -> MedicalRecord:
    now = as_utc(now) if now else utc_now()

    record = get_record(db, record_id)
    patient = _get_patient(db, record.patient_id)

    if not can_view_record(doctor, patient, record):
        logger.warning(f"Emergency override refused for doctor {doctor.id} on record {record_id}")
        raise AuthorizationError(_denial_reason(doctor))

    _log_disclosure(db, doctor=doctor, patient=patient, what=f"record {record.id}", now=now)
    db.refresh(record)
    return record


def disclose_emergency_profile(
    db: Session,
    *,
    doctor: User,
    patient_id: UUID,
    now: datetime | None = None,
) -> User:
    now = as_utc(now) if now else utc_now()

    patient = _get_patient(db, patient_id)
    if not can_view_emergency_info(doctor, patient):
        logger.warning(f"Emergency profile access refused for doctor {doctor.id} on patient {patient_id}")
        raise AuthorizationError(_denial_reason(doctor))

    _log_disclosure(db, doctor=doctor, patient=patient, what="emergency profile", now=now)
    db.refresh(patient)
    return patient


def list_emergency_records(
    db: Session,
    *,
    doctor: User,
    patient_id: UUID,
    now: datetime | None = None,
) -> list[MedicalRecord]:
    """
    All records the patient flagged for emergency access, disclosed as one
    event with one ledger entry. An empty result discloses nothing and is
    not logged.
    """
    now = as_utc(now) if now else utc_now()

    patient = _get_patient(db, patient_id)
    if not can_view_emergency_info(doctor, patient):
        logger.warning(f"Emergency records access refused for doctor {doctor.id} on patient {patient_id}")
        raise AuthorizationError(_denial_reason(doctor))

    records = (
        db.query(MedicalRecord)
        .filter(
            MedicalRecord.patient_id == patient.id,
            MedicalRecord.is_emergency_accessible.is_(True),
        )
        .order_by(MedicalRecord.created_at.desc())
        .all()
    )
    if not records:
        logger.info(f"Doctor {doctor.id} found no emergency records for patient {patient.id}")
        return records

    _log_disclosure(
        db,
        doctor=doctor,
        patient=patient,
        what=f"{len(records)} emergency record(s)",
        now=now,
    )
    return records


def toggle_record_emergency(
    db: Session,
    *,
    patient: User,
    record_id: UUID,
    now: datetime | None = None,
) -> MedicalRecord:
    now = as_utc(now) if now else utc_now()

    record = get_record(db, record_id)
    if record.patient_id != patient.id:
        raise AuthorizationError("Only the owning patient can change a record's emergency visibility.")

    record.is_emergency_accessible = not record.is_emergency_accessible
    state = "visible" if record.is_emergency_accessible else "hidden"
    try:
        append_entry(
            db,
            action=LedgerAction.RECORD_EMERGENCY_FLAG_CHANGED,
            actor_id=patient.id,
            patient_id=patient.id,
            details=f"Record {record.id} of patient {patient.id} is now {state} in emergencies",
            now=now,
        )
        db.commit()
        db.refresh(record)
    except SQLAlchemyError:
        db.rollback()
        raise
    return record


def update_emergency_info(
    db: Session,
    *,
    patient: User,
    text: str,
    now: datetime | None = None,
) -> User:
    now = as_utc(now) if now else utc_now()

    if patient.role != UserRole.PATIENT:
        raise AuthorizationError("Only patients have emergency info.")

    patient.emergency_info = text
    try:
        append_entry(
            db,
            action=LedgerAction.EMERGENCY_INFO_UPDATED,
            actor_id=patient.id,
            patient_id=patient.id,
            details=f"Patient {patient.id} updated their emergency info",
            now=now,
        )
        db.commit()
        db.refresh(patient)
    except SQLAlchemyError:
        db.rollback()
        raise
    return patient


def set_geo_fence(db: Session, *, doctor: User, is_geo_fenced: bool) -> User:
    """
    Record the doctor's location attestation. Not a disclosure, so no ledger entry.
    """
    if doctor.role != UserRole.DOCTOR:
        raise AuthorizationError("Only doctors have a hospital geo-fence.")

    doctor.is_geo_fenced = is_geo_fenced
    try:
        db.commit()
        db.refresh(doctor)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Doctor {doctor.id} geo-fence {'entered' if is_geo_fenced else 'left'}")
    return doctor
