#!/usr/bin/env python3
# scripts/seed_demo_data.py
"""
MedVault demo data seeder + reset.

Seeds a small, self-consistent demo world:
- 3 patients (one with emergency info and an emergency-flagged record)
- 2 doctors at City General (one geo-fenced on site, one away)
- 1 lab technician at Metro Diagnostics
- Past and upcoming appointments, one with a pending access request
- A few records per patient, some with follow-up dates
- One pending lab report waiting for patient approval

Everything goes through the service layer, so the audit ledger matches
what a real run would have produced. Demo users are tagged through their
phone number ("+00-DEMO-<n>") so --reset only touches demo rows.
--seed resets demo rows first. Ledger entries are never deleted, so the
audit trail of earlier demo runs stays in place after a reset.

Bearer tokens for every demo user are printed at the end.

Run:
  python -m scripts.seed_demo_data --seed
  python -m scripts.seed_demo_data --reset
"""
from __future__ import annotations

import argparse
import logging
import random
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# Allow "python -m scripts.seed_demo_data" from repo root
REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT))

from medvault.core.database import SessionLocal, init_db  # noqa: E402
from medvault.core.logging_config import configure_logging  # noqa: E402
from medvault.core.security import create_access_token  # noqa: E402
from medvault.models import (  # noqa: E402
    AccessKey,
    Appointment,
    AppointmentStatus,
    LabRequest,
    MedicalRecord,
    RecordFileType,
    User,
    UserRole,
)
from medvault.services import (  # noqa: E402
    appointment_service,
    consent_service,
    emergency_service,
    lab_request_service,
    record_service,
)
from medvault.utils.datetime_utils import utc_now  # noqa: E402

logger = logging.getLogger(__name__)

DEMO_PHONE_PREFIX = "+00-DEMO-"
DEMO_TOKEN_MINUTES = 7 * 24 * 60


@dataclass(frozen=True)
class DemoUserSpec:
    key: str
    role: UserRole
    name: str
    specialty: str | None = None
    hospital_name: str | None = None
    emergency_info: str | None = None
    is_geo_fenced: bool = False


DEMO_USERS = [
    DemoUserSpec(
        "patient_asha",
        UserRole.PATIENT,
        "Asha Verma",
        emergency_info="Blood group O-. Allergic to penicillin. Asthmatic, carries salbutamol.",
    ),
    DemoUserSpec("patient_ravi", UserRole.PATIENT, "Ravi Iyer", emergency_info="Type 1 diabetic on insulin pump."),
    DemoUserSpec("patient_neha", UserRole.PATIENT, "Neha Kulkarni"),
    DemoUserSpec(
        "doctor_meera",
        UserRole.DOCTOR,
        "Meera Rao",
        specialty="Cardiology",
        hospital_name="City General",
        is_geo_fenced=True,
    ),
    DemoUserSpec("doctor_karan", UserRole.DOCTOR, "Karan Shah", specialty="Neurology", hospital_name="City General"),
    DemoUserSpec("lab_metro", UserRole.LAB_TECHNICIAN, "Metro Lab Desk", hospital_name="Metro Diagnostics"),
]

RECORD_TEMPLATES = [
    ("ECG report", "Sinus rhythm, mild left axis deviation", RecordFileType.PDF, "ecg.pdf"),
    ("Chest X-ray", "Clear lung fields, no consolidation", RecordFileType.DICOM, "cxr.dcm"),
    ("Lipid profile", "LDL cholesterol elevated, advised diet review", RecordFileType.LAB, "lipids.pdf"),
    ("Discharge summary", "Admitted for asthma exacerbation, responded to nebulization", RecordFileType.PDF, "dc.pdf"),
    ("HbA1c", "Glycated hemoglobin 7.9 percent, adjust insulin dosing", RecordFileType.LAB, "hba1c.pdf"),
]


def demo_phone(i: int) -> str:
    return f"{DEMO_PHONE_PREFIX}{i:03d}"


def clinic_time(now: datetime, days_offset: int) -> datetime:
    base = now + timedelta(days=days_offset)
    hour = random.randint(8, 18)
    minute = random.choice([0, 15, 30, 45])
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _log_db_error(e: Exception) -> None:
    logger.error("Seed failed: %s", e, exc_info=True)
    if isinstance(e, SQLAlchemyError) and getattr(e, "orig", None) is not None:
        logger.error("DBAPI orig: %r", e.orig)


def upsert_demo_users(db: Session) -> dict[str, User]:
    users: dict[str, User] = {}
    for i, spec in enumerate(DEMO_USERS, start=1):
        phone = demo_phone(i)
        user = db.query(User).filter(User.phone_number == phone).first()
        if not user:
            user = User(phone_number=phone, role=spec.role, name=spec.name)
            db.add(user)
        user.role = spec.role
        user.name = spec.name
        user.specialty = spec.specialty
        user.hospital_name = spec.hospital_name
        user.emergency_info = spec.emergency_info
        user.is_geo_fenced = spec.is_geo_fenced
        users[spec.key] = user
    db.commit()
    for user in users.values():
        db.refresh(user)
    return users


def seed_records(db: Session, patient: User, now: datetime) -> list[MedicalRecord]:
    records = []
    for idx, (title, description, file_type, file_name) in enumerate(random.sample(RECORD_TEMPLATES, 3)):
        follow_up = now + timedelta(days=random.randint(3, 30)) if idx == 0 else None
        records.append(
            record_service.upload_record(
                db,
                patient=patient,
                title=title,
                description=description,
                file_type=file_type,
                file_name=file_name,
                follow_up_date=follow_up,
                now=now - timedelta(days=random.randint(10, 200)),
            )
        )
    return records


def seed_appointments(db: Session, patient: User, doctors: list[User], now: datetime) -> list[Appointment]:
    appointments = []
    for days_offset in (-30, -7, 2):
        doctor = random.choice(doctors)
        appointment = appointment_service.book_appointment(
            db,
            patient=patient,
            doctor_id=doctor.id,
            scheduled_at=clinic_time(now, days_offset),
            now=now + timedelta(days=min(days_offset, 0) - 3),
        )
        if days_offset < 0:
            appointment.status = AppointmentStatus.COMPLETED
            db.commit()
        appointments.append(appointment)
    return appointments


def seed_demo() -> list[tuple[str, str, str, UserRole]]:
    random.seed(42)
    now = utc_now()

    db: Session = SessionLocal()
    try:
        users = upsert_demo_users(db)
        patients = [users["patient_asha"], users["patient_ravi"], users["patient_neha"]]
        doctors = [users["doctor_meera"], users["doctor_karan"]]

        for patient in patients:
            records = seed_records(db, patient, now)
            appointments = seed_appointments(db, patient, doctors, now)
            logger.info(f"Seeded {len(records)} records and {len(appointments)} appointments for {patient.name}")

        asha = users["patient_asha"]
        flagged = record_service.list_records_for_patient(db, asha.id)[0]
        emergency_service.toggle_record_emergency(db, patient=asha, record_id=flagged.id, now=now)

        upcoming = appointment_service.list_appointments(
            db, patient_id=asha.id, status=AppointmentStatus.SCHEDULED
        )[0]
        doctor = db.get(User, upcoming.doctor_id)
        consent_service.request_access(db, appointment_id=upcoming.id, doctor=doctor, now=now)

        lab_request_service.submit_lab_request(
            db,
            technician=users["lab_metro"],
            patient_id=users["patient_ravi"].id,
            lab_name="Metro Diagnostics",
            title="Thyroid panel",
            description="TSH 6.2 mIU/L, mildly raised",
            bill_file_name="metro-bill-1042.pdf",
            now=now,
        )
        return [(key, str(u.id), u.name, u.role) for key, u in users.items()]
    except Exception as e:
        _log_db_error(e)
        db.rollback()
        raise
    finally:
        db.close()


def reset_demo() -> None:
    db: Session = SessionLocal()
    try:
        demo_ids = [u.id for u in db.query(User).filter(User.phone_number.like(f"{DEMO_PHONE_PREFIX}%")).all()]
        if not demo_ids:
            print("No demo users found, nothing to reset.")
            return

        # Ledger entries are append-only and outlive the rows they describe
        for model, column in (
            (AccessKey, AccessKey.patient_id),
            (MedicalRecord, MedicalRecord.patient_id),
            (LabRequest, LabRequest.patient_id),
            (Appointment, Appointment.patient_id),
        ):
            deleted = db.query(model).filter(column.in_(demo_ids)).delete(synchronize_session=False)
            print(f"  {model.__tablename__}: deleted {deleted}")

        db.query(User).filter(User.id.in_(demo_ids)).delete(synchronize_session=False)
        db.commit()
        print(f"  users: deleted {len(demo_ids)}")
    except Exception as e:
        _log_db_error(e)
        db.rollback()
        raise
    finally:
        db.close()


def print_demo_logins(logins: list[tuple[str, str, str, UserRole]]) -> None:
    print("\nDemo users (bearer tokens valid 7 days):")
    for key, user_id, name, role in logins:
        token = create_access_token(
            subject=user_id,
            role=role.value,
            expires_delta_minutes=DEMO_TOKEN_MINUTES,
        )
        print(f"\n[{key}] {name} ({role.value}) id={user_id}\n  {token}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed / reset MedVault demo data")
    parser.add_argument("--seed", action="store_true", help="Seed demo users, appointments and records")
    parser.add_argument("--reset", action="store_true", help="Delete demo data only")
    args = parser.parse_args()

    if not (args.seed or args.reset):
        parser.print_help()
        raise SystemExit(1)

    configure_logging()
    init_db()

    # --seed always starts from a clean demo slate
    print("Resetting demo data...")
    reset_demo()
    print("Reset done.")

    if args.seed:
        logins = seed_demo()
        print_demo_logins(logins)


if __name__ == "__main__":
    main()
