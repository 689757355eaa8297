import uuid

import pytest

from medvault.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from medvault.models.lab_request import LabRequest, LabRequestStatus
from medvault.models.ledger_entry import LedgerAction
from medvault.models.medical_record import MedicalRecord, RecordFileType
from medvault.services import lab_request_service, ledger_service


@pytest.fixture
def lab_request(db, lab_tech, patient, now):
    return lab_request_service.submit_lab_request(
        db,
        technician=lab_tech,
        patient_id=patient.id,
        lab_name="Metro Diagnostics",
        title="Lipid Panel",
        description="LDL elevated",
        bill_file_name="bill-1042.pdf",
        now=now,
    )


def test_submit_creates_pending_request(lab_request, lab_tech, patient):
    assert lab_request.status == LabRequestStatus.PENDING
    assert lab_request.patient_id == patient.id
    assert lab_request.technician_id == lab_tech.id
    assert lab_request.file_name == "Lipid Panel.pdf"
    assert lab_request.record_id is None


def test_approve_creates_exactly_one_lab_record(db, lab_request, patient, now):
    req, record = lab_request_service.respond_to_lab_request(
        db, request_id=lab_request.id, patient=patient, approve=True, now=now,
    )

    assert req.status == LabRequestStatus.APPROVED
    assert req.record_id == record.id
    assert record.patient_id == patient.id
    assert record.file_type == RecordFileType.LAB
    assert record.bill_file_name == "bill-1042.pdf"
    assert record.lab_request_id == lab_request.id
    assert not record.is_emergency_accessible
    assert len(record.data_hash) == 64
    assert db.query(MedicalRecord).filter(MedicalRecord.patient_id == patient.id).count() == 1

    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert [e.action for e in entries] == [LedgerAction.LAB_REQUEST_APPROVED]


def test_reject_creates_no_record(db, lab_request, patient, now):
    req, record = lab_request_service.respond_to_lab_request(
        db, request_id=lab_request.id, patient=patient, approve=False, now=now,
    )

    assert req.status == LabRequestStatus.REJECTED
    assert record is None
    assert db.query(MedicalRecord).count() == 0
    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert [e.action for e in entries] == [LedgerAction.LAB_REQUEST_REJECTED]


def test_resolved_request_cannot_be_answered_again(db, lab_request, patient, now):
    lab_request_service.respond_to_lab_request(
        db, request_id=lab_request.id, patient=patient, approve=True, now=now,
    )

    with pytest.raises(ConflictError):
        lab_request_service.respond_to_lab_request(
            db, request_id=lab_request.id, patient=patient, approve=True, now=now,
        )
    assert db.query(MedicalRecord).count() == 1


def test_overlapping_sessions_resolve_request_once(db, session_factory, lab_request, patient, now):
    other = session_factory()
    try:
        stale = other.get(LabRequest, lab_request.id)
        assert stale.status == LabRequestStatus.PENDING

        lab_request_service.respond_to_lab_request(
            db, request_id=lab_request.id, patient=patient, approve=True, now=now,
        )

        # other still holds the PENDING snapshot in its identity map
        with pytest.raises(ConflictError):
            lab_request_service.respond_to_lab_request(
                other, request_id=lab_request.id, patient=patient, approve=False, now=now,
            )
    finally:
        other.close()

    db.expire_all()
    req = db.get(LabRequest, lab_request.id)
    assert req.status == LabRequestStatus.APPROVED
    assert req.record_id is not None
    assert db.query(MedicalRecord).count() == 1
    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert [e.action for e in entries] == [LedgerAction.LAB_REQUEST_APPROVED]


def test_other_patient_cannot_respond(db, lab_request, other_patient, now):
    with pytest.raises(AuthorizationError):
        lab_request_service.respond_to_lab_request(
            db, request_id=lab_request.id, patient=other_patient, approve=True, now=now,
        )
    db.refresh(lab_request)
    assert lab_request.status == LabRequestStatus.PENDING


def test_unknown_request(db, patient, now):
    with pytest.raises(NotFoundError):
        lab_request_service.respond_to_lab_request(
            db, request_id=uuid.uuid4(), patient=patient, approve=True, now=now,
        )


def test_only_lab_technicians_submit(db, doctor, patient, now):
    with pytest.raises(AuthorizationError):
        lab_request_service.submit_lab_request(
            db, technician=doctor, patient_id=patient.id, lab_name="X",
            title="CBC", bill_file_name="bill.pdf", now=now,
        )


def test_submit_for_non_patient(db, lab_tech, doctor, now):
    with pytest.raises(NotFoundError):
        lab_request_service.submit_lab_request(
            db, technician=lab_tech, patient_id=doctor.id, lab_name="X",
            title="CBC", bill_file_name="bill.pdf", now=now,
        )


def test_listings(db, lab_request, lab_tech, patient, other_patient, now):
    lab_request_service.submit_lab_request(
        db, technician=lab_tech, patient_id=other_patient.id, lab_name="Metro Diagnostics",
        title="CBC", bill_file_name="bill-2.pdf", now=now,
    )

    assert [r.id for r in lab_request_service.list_pending_lab_requests(db, patient.id)] == [lab_request.id]
    assert len(lab_request_service.list_lab_requests_by_technician(db, lab_tech.id)) == 2

    lab_request_service.respond_to_lab_request(
        db, request_id=lab_request.id, patient=patient, approve=False, now=now,
    )
    assert lab_request_service.list_pending_lab_requests(db, patient.id) == []
