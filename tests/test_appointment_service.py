import uuid
from datetime import timedelta

import pytest

from medvault.core.exceptions import (
    AuthorizationError,
    ConflictError,
    LedgerUnavailableError,
    NotFoundError,
)
from medvault.models.appointment import AccessRequestStatus, AppointmentStatus
from medvault.models.ledger_entry import LedgerAction
from medvault.services import access_key_service, appointment_service, ledger_service


def test_book_appointment(db, patient, doctor, now):
    appointment = appointment_service.book_appointment(
        db, patient=patient, doctor_id=doctor.id, scheduled_at=now + timedelta(days=1), now=now,
    )

    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.access_request_status == AccessRequestStatus.NONE
    assert appointment.doctor_name == doctor.name
    assert appointment.hospital_name == "City General"


def test_book_with_unknown_doctor(db, patient, other_patient, now):
    with pytest.raises(NotFoundError):
        appointment_service.book_appointment(
            db, patient=patient, doctor_id=other_patient.id, scheduled_at=now, now=now,
        )
    with pytest.raises(NotFoundError):
        appointment_service.book_appointment(
            db, patient=patient, doctor_id=uuid.uuid4(), scheduled_at=now, now=now,
        )


def test_list_is_ordered_and_filtered(db, make_appointment, patient, doctor, now):
    later = make_appointment(now + timedelta(days=2))
    sooner = make_appointment(now + timedelta(days=1))
    make_appointment(now + timedelta(days=3), status=AppointmentStatus.CANCELLED)

    by_patient = appointment_service.list_appointments(
        db, patient_id=patient.id, status=AppointmentStatus.SCHEDULED,
    )
    assert [a.id for a in by_patient] == [sooner.id, later.id]

    windowed = appointment_service.list_appointments(
        db, doctor_id=doctor.id, from_date=now + timedelta(hours=36),
    )
    assert [a.status for a in windowed] == [AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED]


def test_cancel_revokes_active_key(db, appointment, patient, now):
    key = access_key_service.issue_key(
        db, appointment_id=appointment.id, actor_id=patient.id, is_emergency_forced=False, now=now,
    )

    cancelled = appointment_service.cancel_appointment(
        db, patient=patient, appointment_id=appointment.id, now=now,
    )

    assert cancelled.status == AppointmentStatus.CANCELLED
    assert not access_key_service.is_key_valid(db, key.code, now)
    actions = [e.action for e in ledger_service.list_entries_for_patient(db, patient.id)]
    assert actions == [LedgerAction.KEY_GENERATED, LedgerAction.KEY_REVOKED]


def test_cancel_rolls_back_when_revocation_cannot_be_logged(db, appointment, patient, now, monkeypatch):
    key = access_key_service.issue_key(
        db, appointment_id=appointment.id, actor_id=patient.id, is_emergency_forced=False, now=now,
    )

    def ledger_down(*args, **kwargs):
        raise LedgerUnavailableError("ledger down")

    monkeypatch.setattr(access_key_service, "append_entry", ledger_down)

    with pytest.raises(LedgerUnavailableError):
        appointment_service.cancel_appointment(
            db, patient=patient, appointment_id=appointment.id, now=now,
        )

    db.refresh(appointment)
    assert appointment.status == AppointmentStatus.SCHEDULED
    assert access_key_service.is_key_valid(db, key.code, now)
    actions = [e.action for e in ledger_service.list_entries_for_patient(db, patient.id)]
    assert actions == [LedgerAction.KEY_GENERATED]


def test_cancel_twice_is_conflict(db, appointment, patient, now):
    appointment_service.cancel_appointment(db, patient=patient, appointment_id=appointment.id, now=now)

    with pytest.raises(ConflictError):
        appointment_service.cancel_appointment(db, patient=patient, appointment_id=appointment.id, now=now)


def test_cancel_someone_elses_appointment(db, appointment, other_patient, now):
    with pytest.raises(AuthorizationError):
        appointment_service.cancel_appointment(
            db, patient=other_patient, appointment_id=appointment.id, now=now,
        )
    db.refresh(appointment)
    assert appointment.status == AppointmentStatus.SCHEDULED
