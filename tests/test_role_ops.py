from datetime import timedelta

import pytest

from medvault.core.exceptions import AuthorizationError
from medvault.models.ledger_entry import LedgerAction
from medvault.services.role_ops import DoctorOps, LabOps, PatientOps, ops_for


def test_ops_for_dispatches_on_role(db, patient, doctor, lab_tech):
    assert isinstance(ops_for(db, patient), PatientOps)
    assert isinstance(ops_for(db, doctor), DoctorOps)
    assert isinstance(ops_for(db, lab_tech), LabOps)


@pytest.mark.parametrize(
    "ops_cls, user_fixture",
    [
        (PatientOps, "doctor"),
        (DoctorOps, "patient"),
        (LabOps, "doctor"),
        (DoctorOps, "lab_tech"),
    ],
)
def test_wrong_role_is_rejected(request, db, ops_cls, user_fixture):
    user = request.getfixturevalue(user_fixture)
    with pytest.raises(AuthorizationError):
        ops_cls(db, user)


def test_force_emergency_key_requires_ownership(db, make_appointment, other_patient, now):
    appointment = make_appointment()

    with pytest.raises(AuthorizationError):
        PatientOps(db, other_patient).force_emergency_key(appointment.id, now=now)


def test_forced_key_feeds_emergency_alert(db, appointment, patient, now):
    ops = PatientOps(db, patient)

    key = ops.force_emergency_key(appointment.id, now=now)

    assert key.is_emergency
    assert [k.id for k in ops.list_active_keys(now=now)] == [key.id]
    assert ops.list_active_keys(now=now + timedelta(minutes=15)) == []
    assert [e.action for e in ops.audit_trail()] == [LedgerAction.EMERGENCY_ACCESS]
    assert ops.has_recent_emergency_access(since=now - timedelta(days=7))


def test_doctor_flow_through_facades(db, appointment, patient, doctor, make_record, now):
    make_record()
    doctor_ops = DoctorOps(db, doctor)
    patient_ops = PatientOps(db, patient)

    doctor_ops.request_access(appointment.id, now=now)
    _, key = patient_ops.respond_to_access_request(appointment.id, approve=True, now=now)

    assert len(doctor_ops.records_for_key(key.code, now=now)) == 1
    assert [a.id for a in doctor_ops.list_appointments()] == [appointment.id]
    assert [a.id for a in patient_ops.list_appointments()] == [appointment.id]


def test_lab_facade_lists_submissions(db, lab_tech, patient, now):
    ops = LabOps(db, lab_tech)
    ops.submit_lab_request(
        patient_id=patient.id, lab_name="Metro Diagnostics", title="HbA1c", bill_file_name="b.pdf", now=now,
    )

    assert [r.title for r in ops.list_submitted()] == ["HbA1c"]
    assert [r.title for r in PatientOps(db, patient).list_pending_lab_requests()] == ["HbA1c"]
