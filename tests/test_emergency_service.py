"""
Emergency override: geo-fence gating, per-record opt-in and exactly one
ledger entry per successful disclosure.
"""
import uuid
from datetime import timedelta

import pytest

from medvault.core.exceptions import AuthorizationError, NotFoundError
from medvault.models.ledger_entry import LedgerAction
from medvault.services import emergency_service, ledger_service


def test_geo_fenced_doctor_reads_flagged_record(db, doctor, patient, make_record, now):
    record = make_record(emergency=True)

    assert emergency_service.can_view_record(doctor, patient, record)
    disclosed = emergency_service.disclose_record(db, doctor=doctor, record_id=record.id, now=now)

    assert disclosed.id == record.id
    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert len(entries) == 1
    assert entries[0].action == LedgerAction.EMERGENCY_ACCESS
    assert entries[0].actor_id == doctor.id
    assert str(patient.id) in entries[0].details


def test_leaving_hospital_revokes_override(db, doctor, patient, make_record, now):
    record = make_record(emergency=True)
    emergency_service.set_geo_fence(db, doctor=doctor, is_geo_fenced=False)
    before = ledger_service.count_entries(db)

    assert not emergency_service.can_view_emergency_info(doctor, patient)
    assert not emergency_service.can_view_record(doctor, patient, record)
    with pytest.raises(AuthorizationError):
        emergency_service.disclose_record(db, doctor=doctor, record_id=record.id, now=now)
    with pytest.raises(AuthorizationError):
        emergency_service.disclose_emergency_profile(db, doctor=doctor, patient_id=patient.id, now=now)

    assert ledger_service.count_entries(db) == before


def test_unflagged_record_is_refused(db, doctor, patient, make_record, now):
    record = make_record(emergency=False)

    with pytest.raises(AuthorizationError, match="not shared"):
        emergency_service.disclose_record(db, doctor=doctor, record_id=record.id, now=now)
    assert ledger_service.count_entries(db) == 0


def test_non_doctor_is_refused(db, lab_tech, patient, make_record, now):
    record = make_record(emergency=True)

    assert not emergency_service.can_view_record(lab_tech, patient, record)
    with pytest.raises(AuthorizationError):
        emergency_service.disclose_record(db, doctor=lab_tech, record_id=record.id, now=now)


def test_emergency_profile_disclosure(db, doctor, patient, now):
    profile = emergency_service.disclose_emergency_profile(db, doctor=doctor, patient_id=patient.id, now=now)

    assert profile.emergency_info == "Blood group O-. Allergic to penicillin."
    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert [e.action for e in entries] == [LedgerAction.EMERGENCY_ACCESS]


def test_emergency_records_lists_only_flagged(db, doctor, patient, other_patient, make_record, now):
    flagged = make_record(emergency=True, title="Allergy panel")
    make_record(emergency=False, title="Dermatology note")
    make_record(emergency=True, owner=other_patient)

    records = emergency_service.list_emergency_records(db, doctor=doctor, patient_id=patient.id, now=now)

    assert [r.id for r in records] == [flagged.id]
    assert len(ledger_service.list_entries_for_patient(db, patient.id)) == 1
    assert ledger_service.list_entries_for_patient(db, other_patient.id) == []


def test_empty_emergency_listing_is_not_logged(db, doctor, patient, make_record, now):
    make_record(emergency=False, title="Dermatology note")

    records = emergency_service.list_emergency_records(db, doctor=doctor, patient_id=patient.id, now=now)

    assert records == []
    assert ledger_service.list_entries_for_patient(db, patient.id) == []
    assert not ledger_service.has_recent_emergency_access(db, patient.id, since=now - timedelta(days=1))


def test_unknown_patient_or_record(db, doctor, lab_tech, now):
    with pytest.raises(NotFoundError):
        emergency_service.disclose_emergency_profile(db, doctor=doctor, patient_id=lab_tech.id, now=now)
    with pytest.raises(NotFoundError):
        emergency_service.disclose_record(db, doctor=doctor, record_id=uuid.uuid4(), now=now)


def test_toggle_flag_is_logged(db, patient, make_record, now):
    record = make_record()

    toggled = emergency_service.toggle_record_emergency(db, patient=patient, record_id=record.id, now=now)
    assert toggled.is_emergency_accessible
    toggled = emergency_service.toggle_record_emergency(db, patient=patient, record_id=record.id, now=now)
    assert not toggled.is_emergency_accessible

    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert [e.action for e in entries] == [LedgerAction.RECORD_EMERGENCY_FLAG_CHANGED] * 2


def test_toggle_by_other_patient(db, other_patient, make_record, now):
    record = make_record()

    with pytest.raises(AuthorizationError):
        emergency_service.toggle_record_emergency(db, patient=other_patient, record_id=record.id, now=now)
    db.refresh(record)
    assert not record.is_emergency_accessible


def test_update_emergency_info(db, patient, now):
    updated = emergency_service.update_emergency_info(db, patient=patient, text="Type 1 diabetic", now=now)

    assert updated.emergency_info == "Type 1 diabetic"
    entries = ledger_service.list_entries_for_patient(db, patient.id)
    assert [e.action for e in entries] == [LedgerAction.EMERGENCY_INFO_UPDATED]


def test_geo_fence_is_doctor_only(db, patient):
    with pytest.raises(AuthorizationError):
        emergency_service.set_geo_fence(db, doctor=patient, is_geo_fenced=True)
