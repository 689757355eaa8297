# medvault/services/access_key_service.py
"""
Issuance, validation, revocation and expiry of appointment access keys.

This module is the only writer of AccessKey.is_active. Every mutation for a
given appointment runs under that appointment's lock so the scheduler, a
consent approval and a forced emergency key cannot race each other into two
active keys.
"""

import logging
import secrets
import threading
import weakref
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.config import get_settings
from medvault.core.exceptions import (
    AuthorizationError,
    ConflictError,
    LedgerUnavailableError,
    NotFoundError,
)
from medvault.models.access_key import AccessKey
from medvault.models.appointment import Appointment, AppointmentStatus
from medvault.models.ledger_entry import LedgerAction
from medvault.models.medical_record import MedicalRecord
from medvault.models.user import User, UserRole
from medvault.services.ledger_service import append_entry
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

settings = get_settings()

# No 0/O or 1/I so codes can be read out over the phone
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

_locks_guard = threading.Lock()
# Entries drop out once no caller holds the lock
_appointment_locks: "weakref.WeakValueDictionary[UUID, threading.RLock]" = weakref.WeakValueDictionary()


def appointment_lock(appointment_id: UUID) -> threading.RLock:
    """Lock serializing key lifecycle mutations for one appointment."""
    with _locks_guard:
        lock = _appointment_locks.get(appointment_id)
        if lock is None:
            lock = threading.RLock()
            _appointment_locks[appointment_id] = lock
        return lock


def generate_key_code(length: int | None = None) -> str:
    length = length or settings.key_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _code_in_use(db: Session, code: str, now: datetime) -> bool:
    """
    A code is taken while any key with it is active, or could have been
    active inside the retention window.
    """
    cutoff = now - timedelta(hours=settings.key_code_retention_hours)
    existing = (
        db.query(AccessKey.id)
        .filter(
            AccessKey.code == code,
            or_(AccessKey.is_active.is_(True), AccessKey.expires_at > cutoff),
        )
        .first()
    )
    return existing is not None


def _allocate_code(db: Session, now: datetime) -> str:
    for _ in range(settings.key_code_max_attempts):
        code = generate_key_code()
        if not _code_in_use(db, code, now):
            return code
    raise ConflictError("Could not allocate a unique access code. Please retry.")


def compute_key_expiry(
    appointment: Appointment,
    *,
    is_emergency_forced: bool,
    now: datetime,
) -> datetime:
    """
    Forced emergency keys get a short fixed TTL from now. Other keys stay
    valid until the grace period after the appointment; when that moment
    has already passed, the grace period runs from now instead.
    """
    if is_emergency_forced:
        return now + timedelta(minutes=settings.emergency_key_ttl_minutes)

    grace = timedelta(minutes=settings.auto_key_grace_minutes)
    expires_at = as_utc(appointment.scheduled_at) + grace
    if expires_at <= now:
        expires_at = now + grace
    return expires_at


def _deactivate_active_keys(db: Session, appointment_id: UUID) -> list[AccessKey]:
    active = (
        db.query(AccessKey)
        .filter(
            AccessKey.appointment_id == appointment_id,
            AccessKey.is_active.is_(True),
        )
        .all()
    )
    for key in active:
        key.is_active = False
    return active


def stage_key(
    db: Session,
    *,
    appointment: Appointment,
    actor_id: UUID | None,
    is_emergency_forced: bool,
    is_auto_generated: bool = False,
    now: datetime,
) -> AccessKey:
    """
    Add a new key (and its ledger entry) to the session without committing.

    The caller must hold appointment_lock(appointment.id) and commit.
    """
    if appointment.status != AppointmentStatus.SCHEDULED:
        raise ConflictError(
            f"Appointment is {appointment.status.value}; keys can only be issued for scheduled appointments."
        )

    replaced = _deactivate_active_keys(db, appointment.id)
    if replaced:
        db.flush()

    key = AccessKey(
        patient_id=appointment.patient_id,
        appointment_id=appointment.id,
        code=_allocate_code(db, now),
        expires_at=compute_key_expiry(appointment, is_emergency_forced=is_emergency_forced, now=now),
        is_active=True,
        is_auto_generated=is_auto_generated,
        is_emergency=is_emergency_forced,
        created_at=now,
    )
    db.add(key)

    if is_emergency_forced:
        action = LedgerAction.EMERGENCY_ACCESS
        kind = "Emergency access key forced"
    else:
        action = LedgerAction.KEY_GENERATED
        kind = "Auto-generated access key issued" if is_auto_generated else "Access key issued"

    details = (
        f"{kind} for appointment {appointment.id} of patient {appointment.patient_id}, "
        f"valid until {key.expires_at.isoformat()}"
    )
    if replaced:
        details += f"; replaced {len(replaced)} active key(s)"

    append_entry(
        db,
        action=action,
        actor_id=actor_id,
        patient_id=appointment.patient_id,
        details=details,
        now=now,
    )
    return key


def issue_key(
    db: Session,
    *,
    appointment_id: UUID,
    actor_id: UUID | None,
    is_emergency_forced: bool,
    is_auto_generated: bool = False,
    now: datetime | None = None,
) -> AccessKey:
    """
    Issue a key for an appointment, replacing any key that is still active.
    """
    now = as_utc(now) if now else utc_now()

    with appointment_lock(appointment_id):
        appointment = db.get(Appointment, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")

        try:
            key = stage_key(
                db,
                appointment=appointment,
                actor_id=actor_id,
                is_emergency_forced=is_emergency_forced,
                is_auto_generated=is_auto_generated,
                now=now,
            )
            db.commit()
        except (SQLAlchemyError, ConflictError):
            db.rollback()
            raise

    db.refresh(key)
    logger.info(
        f"Issued {'emergency' if is_emergency_forced else 'auto' if is_auto_generated else 'standard'} "
        f"key for appointment {appointment_id}, expires {key.expires_at}"
    )
    return key


def stage_revoke(db: Session, *, key: AccessKey, actor_id: UUID | None, now: datetime) -> None:
    """
    Deactivate key and add its KEY_REVOKED entry without committing.

    The caller holds appointment_lock(key.appointment_id) and commits, so the
    revocation lands in the same transaction as whatever triggered it.
    """
    key.is_active = False
    append_entry(
        db,
        action=LedgerAction.KEY_REVOKED,
        actor_id=actor_id,
        patient_id=key.patient_id,
        details=f"Access key for appointment {key.appointment_id} of patient {key.patient_id} revoked",
        now=now,
    )


def revoke_key(
    db: Session,
    *,
    code: str,
    actor_id: UUID | None,
    patient_id: UUID | None = None,
    now: datetime | None = None,
) -> AccessKey | None:
    """
    Deactivate the active key with this code.

    Unknown or already inactive codes are a silent no-op and return None.
    When patient_id is given, another patient's code is the same no-op.
    """
    now = as_utc(now) if now else utc_now()

    key = (
        db.query(AccessKey)
        .filter(AccessKey.code == code, AccessKey.is_active.is_(True))
        .first()
    )
    if not key or (patient_id is not None and key.patient_id != patient_id):
        logger.debug("Revoke requested for unknown, inactive or foreign code; nothing to do")
        return None

    with appointment_lock(key.appointment_id):
        db.refresh(key)
        if not key.is_active:
            return None

        try:
            stage_revoke(db, key=key, actor_id=actor_id, now=now)
            db.commit()
        except (SQLAlchemyError, LedgerUnavailableError):
            db.rollback()
            raise

    logger.info(f"Revoked key for appointment {key.appointment_id}")
    return key


def is_key_valid(db: Session, code: str, now: datetime | None = None) -> bool:
    """
    True iff an active key with this code exists and has not expired.

    Pure read: expiry is judged against `now` here and never written back.
    """
    now = as_utc(now) if now else utc_now()
    key = (
        db.query(AccessKey)
        .filter(AccessKey.code == code, AccessKey.is_active.is_(True))
        .first()
    )
    if not key:
        return False
    return now < as_utc(key.expires_at)


def deactivate_expired_keys(db: Session, *, now: datetime | None = None) -> int:
    """
    Flip is_active off for keys whose expiry has passed.

    Housekeeping only: validity already ends at expires_at, so no ledger
    entry is written. Returns how many keys were deactivated.
    """
    now = as_utc(now) if now else utc_now()
    expired = (
        db.query(AccessKey)
        .filter(AccessKey.is_active.is_(True), AccessKey.expires_at <= now)
        .all()
    )

    count = 0
    for key in expired:
        with appointment_lock(key.appointment_id):
            db.refresh(key)
            if not key.is_active or as_utc(key.expires_at) > now:
                continue
            key.is_active = False
            try:
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            count += 1
    return count


def get_active_key_for_appointment(db: Session, appointment_id: UUID) -> AccessKey | None:
    return (
        db.query(AccessKey)
        .filter(
            AccessKey.appointment_id == appointment_id,
            AccessKey.is_active.is_(True),
        )
        .first()
    )


def list_active_keys_for_patient(
    db: Session,
    patient_id: UUID,
    *,
    now: datetime | None = None,
) -> list[AccessKey]:
    now = as_utc(now) if now else utc_now()
    return (
        db.query(AccessKey)
        .filter(
            AccessKey.patient_id == patient_id,
            AccessKey.is_active.is_(True),
            AccessKey.expires_at > now,
        )
        .order_by(AccessKey.expires_at.asc())
        .all()
    )


def list_records_for_key(
    db: Session,
    *,
    code: str,
    doctor: User,
    now: datetime | None = None,
) -> list[MedicalRecord]:
    """
    Doctor-side record view. The key is re-validated on every call; a key
    that expired mid-session stops working immediately.
    """
    now = as_utc(now) if now else utc_now()

    if doctor.role != UserRole.DOCTOR:
        raise AuthorizationError("Only doctors can view records with an access key.")

    key = (
        db.query(AccessKey)
        .filter(AccessKey.code == code)
        .order_by(AccessKey.created_at.desc())
        .first()
    )
    if not key:
        raise NotFoundError("Access key not found")

    if not is_key_valid(db, code, now):
        logger.warning(f"Doctor {doctor.id} presented an expired or revoked key for appointment {key.appointment_id}")
        raise AuthorizationError("Access key has expired or was revoked.")

    logger.info(f"Doctor {doctor.id} viewed records of patient {key.patient_id} via key")
    return (
        db.query(MedicalRecord)
        .filter(MedicalRecord.patient_id == key.patient_id)
        .order_by(MedicalRecord.created_at.desc())
        .all()
    )


def has_scheduled_key(db: Session, appointment_id: UUID) -> bool:
    """
    True once a non-emergency key (auto-generated or consent-granted) has
    been issued for the appointment, whether or not it is still active.
    """
    existing = (
        db.query(AccessKey.id)
        .filter(
            AccessKey.appointment_id == appointment_id,
            AccessKey.is_emergency.is_(False),
        )
        .first()
    )
    return existing is not None
