# medvault/services/lab_request_service.py
"""
Lab report workflow: a technician uploads a report and its bill, the patient
approves (report becomes a LAB record) or rejects. Each request resolves once.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medvault.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from medvault.models.lab_request import LabRequest, LabRequestStatus
from medvault.models.ledger_entry import LedgerAction
from medvault.models.medical_record import MedicalRecord, RecordFileType
from medvault.models.user import User, UserRole
from medvault.services.ledger_service import append_entry
from medvault.services.record_service import build_record
from medvault.utils.datetime_utils import as_utc, utc_now

logger = logging.getLogger(__name__)


def submit_lab_request(
    db: Session,
    *,
    technician: User,
    patient_id: UUID,
    lab_name: str,
    title: str,
    bill_file_name: str,
    description: str = "",
    file_name: str | None = None,
    file_url: str | None = None,
    now: datetime | None = None,
) -> LabRequest:
    now = as_utc(now) if now else utc_now()

    if technician.role != UserRole.LAB_TECHNICIAN:
        raise AuthorizationError("Only lab technicians can upload lab reports.")

    patient = db.get(User, patient_id)
    if not patient or patient.role != UserRole.PATIENT:
        raise NotFoundError("Patient not found")

    req = LabRequest(
        patient_id=patient_id,
        technician_id=technician.id,
        lab_name=lab_name,
        title=title,
        description=description,
        file_name=file_name or f"{title}.pdf",
        file_url=file_url,
        bill_file_name=bill_file_name,
        status=LabRequestStatus.PENDING,
        created_at=now,
    )

    try:
        db.add(req)
        db.commit()
        db.refresh(req)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Lab technician {technician.id} submitted lab request {req.id} for patient {patient_id}")
    return req


def respond_to_lab_request(
    db: Session,
    *,
    request_id: UUID,
    patient: User,
    approve: bool,
    now: datetime | None = None,
) -> tuple[LabRequest, MedicalRecord | None]:
    """
    Resolve a pending lab request. Approval creates exactly one LAB record
    owned by the patient, hidden from emergency access until they opt in.
    """
    now = as_utc(now) if now else utc_now()

    req = db.get(LabRequest, request_id)
    if not req:
        raise NotFoundError("Lab request not found")
    if patient.role != UserRole.PATIENT or req.patient_id != patient.id:
        raise AuthorizationError("Only the patient can respond to their lab reports.")
    if req.status != LabRequestStatus.PENDING:
        raise ConflictError(f"Lab request is already {req.status.value}.")

    record = None
    try:
        if approve:
            record = build_record(
                patient_id=req.patient_id,
                title=req.title,
                description=req.description or f"Lab report from {req.lab_name}",
                file_type=RecordFileType.LAB,
                file_name=req.file_name,
                file_url=req.file_url,
                bill_file_name=req.bill_file_name,
                lab_request_id=req.id,
                now=now,
            )
            db.add(record)
            db.flush()

        # Conditional transition: only the first response still sees PENDING
        result = db.execute(
            update(LabRequest)
            .where(LabRequest.id == request_id, LabRequest.status == LabRequestStatus.PENDING)
            .values(
                status=LabRequestStatus.APPROVED if approve else LabRequestStatus.REJECTED,
                record_id=record.id if record is not None else None,
                resolved_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Lab request was already resolved.")

        action = LedgerAction.LAB_REQUEST_APPROVED if approve else LedgerAction.LAB_REQUEST_REJECTED
        verb = "approved" if approve else "rejected"
        append_entry(
            db,
            action=action,
            actor_id=patient.id,
            patient_id=patient.id,
            details=f"Patient {patient.id} {verb} lab report '{req.title}' from {req.lab_name}",
            now=now,
        )
        db.commit()
    except (SQLAlchemyError, ConflictError):
        db.rollback()
        raise

    db.refresh(req)
    if record is not None:
        db.refresh(record)
    logger.info(f"Lab request {request_id} {req.status.value.lower()} by patient {patient.id}")
    return req, record


def list_pending_lab_requests(db: Session, patient_id: UUID) -> list[LabRequest]:
    return (
        db.query(LabRequest)
        .filter(
            LabRequest.patient_id == patient_id,
            LabRequest.status == LabRequestStatus.PENDING,
        )
        .order_by(LabRequest.created_at.asc())
        .all()
    )


def list_lab_requests_by_technician(db: Session, technician_id: UUID) -> list[LabRequest]:
    return (
        db.query(LabRequest)
        .filter(LabRequest.technician_id == technician_id)
        .order_by(LabRequest.created_at.desc())
        .all()
    )
