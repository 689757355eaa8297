"""
Pytest configuration for the test suite.

Every test gets a fresh in-memory SQLite database; services receive explicit
`now` values so expiry is deterministic.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import medvault.models  # noqa: F401  (registers tables)
from medvault.models.appointment import AccessRequestStatus, Appointment, AppointmentStatus
from medvault.models.base import Base
from medvault.models.medical_record import RecordFileType
from medvault.models.user import User, UserRole
from medvault.services.record_service import build_record

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def now():
    return T0


def _make_user(db, **kwargs) -> User:
    user = User(**kwargs)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def patient(db):
    return _make_user(
        db,
        role=UserRole.PATIENT,
        name="Asha Verma",
        phone_number="+91-98000-00001",
        emergency_info="Blood group O-. Allergic to penicillin.",
    )


@pytest.fixture
def other_patient(db):
    return _make_user(db, role=UserRole.PATIENT, name="Ravi Iyer")


@pytest.fixture
def doctor(db):
    return _make_user(
        db,
        role=UserRole.DOCTOR,
        name="Meera Rao",
        specialty="Cardiology",
        hospital_name="City General",
        is_geo_fenced=True,
    )


@pytest.fixture
def other_doctor(db):
    return _make_user(
        db,
        role=UserRole.DOCTOR,
        name="Karan Shah",
        specialty="Neurology",
        hospital_name="City General",
    )


@pytest.fixture
def lab_tech(db):
    return _make_user(
        db,
        role=UserRole.LAB_TECHNICIAN,
        name="Lab Desk",
        hospital_name="Metro Diagnostics",
    )


@pytest.fixture
def make_appointment(db, patient, doctor, now):
    def _make(
        scheduled_at: datetime | None = None,
        *,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        access_request_status: AccessRequestStatus = AccessRequestStatus.NONE,
        patient_user: User | None = None,
    ) -> Appointment:
        owner = patient_user or patient
        appointment = Appointment(
            patient_id=owner.id,
            doctor_id=doctor.id,
            doctor_name=doctor.name,
            hospital_name=doctor.hospital_name,
            scheduled_at=scheduled_at or now + timedelta(hours=1),
            status=status,
            access_request_status=access_request_status,
            created_at=now,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def appointment(make_appointment):
    return make_appointment()


@pytest.fixture
def make_record(db, patient, now):
    def _make(*, emergency: bool = False, owner: User | None = None, title: str = "ECG report"):
        record = build_record(
            patient_id=(owner or patient).id,
            title=title,
            description="Sinus rhythm, no acute changes",
            file_type=RecordFileType.PDF,
            file_name="ecg.pdf",
            now=now,
        )
        record.is_emergency_accessible = emergency
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make
