# medvault/services/record_service.py
import hashlib
import logging
import re
from collections import Counter
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.exceptions import AuthorizationError, NotFoundError
from medvault.models.medical_record import MedicalRecord, RecordFileType
from medvault.models.user import User, UserRole
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

INSIGHT_STOP_WORDS = {
    "the", "and", "a", "to", "of", "in", "is", "for", "with", "patient",
    "was", "on", "at", "it", "report", "results", "test",
}


def compute_data_hash(
    *,
    patient_id: UUID,
    title: str,
    description: str,
    file_name: str,
    file_url: str | None,
    created_at: datetime,
) -> str:
    """
    Content fingerprint stored on the record at creation.

    A tamper-evidence token, not a security guarantee.
    """
    digest = hashlib.sha256()
    for part in (str(patient_id), title, description, file_name, file_url or "", as_utc(created_at).isoformat()):
        digest.update(part.encode("utf-8"))
        digest.update(b"\x1f")
    return digest.hexdigest()


def build_record(
    *,
    patient_id: UUID,
    title: str,
    description: str,
    file_type: RecordFileType,
    file_name: str,
    file_url: str | None = None,
    bill_file_name: str | None = None,
    follow_up_date: datetime | None = None,
    lab_request_id: UUID | None = None,
    now: datetime,
) -> MedicalRecord:
    """
    Build (but do not persist) a record with its fingerprint.
    """
    return MedicalRecord(
        patient_id=patient_id,
        lab_request_id=lab_request_id,
        title=title,
        description=description,
        file_type=file_type,
        file_name=file_name,
        file_url=file_url,
        bill_file_name=bill_file_name,
        data_hash=compute_data_hash(
            patient_id=patient_id,
            title=title,
            description=description,
            file_name=file_name,
            file_url=file_url,
            created_at=now,
        ),
        follow_up_date=as_utc(follow_up_date) if follow_up_date else None,
        is_emergency_accessible=False,
        created_at=now,
    )


def upload_record(
    db: Session,
    *,
    patient: User,
    title: str,
    description: str,
    file_type: RecordFileType,
    file_name: str,
    file_url: str | None = None,
    follow_up_date: datetime | None = None,
    now: datetime | None = None,
) -> MedicalRecord:
    """
    Patient adds a record of their own. Storage hands us opaque
    file_name / file_url references; the bytes are never read here.
    """
    now = as_utc(now) if now else utc_now()

    if patient.role != UserRole.PATIENT:
        raise AuthorizationError("Only patients can upload records.")

    record = build_record(
        patient_id=patient.id,
        title=title,
        description=description,
        file_type=file_type,
        file_name=file_name or "document.pdf",
        file_url=file_url,
        follow_up_date=follow_up_date,
        now=now,
    )

    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Patient {patient.id} uploaded record {record.id}")
    return record


def get_record(db: Session, record_id: UUID) -> MedicalRecord:
    record = db.get(MedicalRecord, record_id)
    if not record:
        raise NotFoundError("Record not found")
    return record


def list_records_for_patient(db: Session, patient_id: UUID) -> list[MedicalRecord]:
    return (
        db.query(MedicalRecord)
        .filter(MedicalRecord.patient_id == patient_id)
        .order_by(MedicalRecord.created_at.desc())
        .all()
    )


def list_upcoming_follow_ups(
    db: Session,
    patient_id: UUID,
    *,
    now: datetime | None = None,
) -> list[MedicalRecord]:
    now = as_utc(now) if now else utc_now()
    return (
        db.query(MedicalRecord)
        .filter(
            MedicalRecord.patient_id == patient_id,
            MedicalRecord.follow_up_date.is_not(None),
            MedicalRecord.follow_up_date > now,
        )
        .order_by(MedicalRecord.follow_up_date.asc())
        .all()
    )


def compute_record_insights(records: list[MedicalRecord], limit: int = 8) -> list[tuple[str, int]]:
    """
    Most frequent meaningful words across record titles and descriptions.
    """
    text = " ".join(f"{r.description} {r.title}" for r in records).lower()
    words = [w for w in re.split(r"\W+", text) if len(w) > 3 and w not in INSIGHT_STOP_WORDS]
    return Counter(words).most_common(limit)
