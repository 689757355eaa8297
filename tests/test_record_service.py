import uuid
from datetime import timedelta

import pytest

from medvault.core.exceptions import AuthorizationError, NotFoundError
from medvault.models.medical_record import RecordFileType
from medvault.services import record_service


def test_upload_stamps_fingerprint(db, patient, now):
    record = record_service.upload_record(
        db,
        patient=patient,
        title="MRI Brain",
        description="No acute findings",
        file_type=RecordFileType.DICOM,
        file_name="mri.dcm",
        file_url="s3://bucket/mri.dcm",
        now=now,
    )

    expected = record_service.compute_data_hash(
        patient_id=patient.id,
        title="MRI Brain",
        description="No acute findings",
        file_name="mri.dcm",
        file_url="s3://bucket/mri.dcm",
        created_at=now,
    )
    assert record.data_hash == expected
    assert not record.is_emergency_accessible


def test_fingerprint_changes_with_content(patient, now):
    base = dict(
        patient_id=patient.id, title="CBC", description="Normal", file_name="cbc.pdf", file_url=None, created_at=now,
    )
    original = record_service.compute_data_hash(**base)

    assert record_service.compute_data_hash(**base) == original
    assert record_service.compute_data_hash(**{**base, "description": "Abnormal"}) != original
    assert record_service.compute_data_hash(**{**base, "created_at": now + timedelta(seconds=1)}) != original


def test_only_patients_upload(db, doctor, now):
    with pytest.raises(AuthorizationError):
        record_service.upload_record(
            db, patient=doctor, title="X", description="", file_type=RecordFileType.PDF,
            file_name="x.pdf", now=now,
        )


def test_get_record_missing(db):
    with pytest.raises(NotFoundError):
        record_service.get_record(db, uuid.uuid4())


def test_upcoming_follow_ups(db, patient, now):
    for title, offset in (("Past", -2), ("Soon", 3), ("Later", 10)):
        record_service.upload_record(
            db, patient=patient, title=title, description="", file_type=RecordFileType.PDF,
            file_name=f"{title}.pdf", follow_up_date=now + timedelta(days=offset), now=now,
        )
    record_service.upload_record(
        db, patient=patient, title="None", description="", file_type=RecordFileType.PDF,
        file_name="none.pdf", now=now,
    )

    follow_ups = record_service.list_upcoming_follow_ups(db, patient.id, now=now)
    assert [r.title for r in follow_ups] == ["Soon", "Later"]


def test_insights_skip_short_and_stop_words(db, patient, make_record):
    make_record(title="Cholesterol report")
    make_record(title="Cholesterol review")

    insights = dict(
        record_service.compute_record_insights(record_service.list_records_for_patient(db, patient.id))
    )

    assert insights["cholesterol"] == 2
    assert insights["review"] == 1
    assert "report" not in insights
    assert "no" not in insights
