# medvault/services/role_ops.py
"""
Role-scoped operation facades.

Each facade binds a session to a user of exactly one role and exposes only
what that role may do. ops_for() checks the role once; callers holding a
DoctorOps simply have no patient operations to call.
"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from medvault.core.exceptions import AuthorizationError, NotFoundError
from medvault.models.access_key import AccessKey
from medvault.models.appointment import Appointment
from medvault.models.lab_request import LabRequest
from medvault.models.ledger_entry import LedgerEntry
from medvault.models.medical_record import MedicalRecord, RecordFileType
from medvault.models.user import User, UserRole
from medvault.services import (
    access_key_service,
    appointment_service,
    consent_service,
    emergency_service,
    lab_request_service,
    ledger_service,
    record_service,
)
from medvault.utils.datetime_utils import utc_now


class _RoleOps:
    role: UserRole

    def __init__(self, db: Session, user: User):
        if user.role != self.role:
            raise AuthorizationError(f"This action requires the {self.role.value} role.")
        self.db = db
        self.user = user


class PatientOps(_RoleOps):
    role = UserRole.PATIENT

    # Appointments and consent
    def book_appointment(
        self,
        *,
        doctor_id: UUID,
        scheduled_at: datetime,
        hospital_name: str | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        return appointment_service.book_appointment(
            self.db,
            patient=self.user,
            doctor_id=doctor_id,
            scheduled_at=scheduled_at,
            hospital_name=hospital_name,
            now=now,
        )

    def list_appointments(self) -> list[Appointment]:
        return appointment_service.list_appointments(self.db, patient_id=self.user.id)

    def cancel_appointment(self, appointment_id: UUID, *, now: datetime | None = None) -> Appointment:
        return appointment_service.cancel_appointment(
            self.db, patient=self.user, appointment_id=appointment_id, now=now
        )

    def respond_to_access_request(
        self,
        appointment_id: UUID,
        *,
        approve: bool,
        now: datetime | None = None,
    ) -> tuple[Appointment, AccessKey | None]:
        return consent_service.respond_to_access_request(
            self.db, appointment_id=appointment_id, patient=self.user, approve=approve, now=now
        )

    # Keys
    def force_emergency_key(self, appointment_id: UUID, *, now: datetime | None = None) -> AccessKey:
        """
        Off-schedule key with the short emergency TTL, logged as EMERGENCY_ACCESS.
        """
        appointment = appointment_service.get_appointment(self.db, appointment_id)
        if appointment.patient_id != self.user.id:
            raise AuthorizationError("You can only issue keys for your own appointments.")
        return access_key_service.issue_key(
            self.db,
            appointment_id=appointment_id,
            actor_id=self.user.id,
            is_emergency_forced=True,
            now=now,
        )

    def revoke_key(self, code: str, *, now: datetime | None = None) -> AccessKey | None:
        return access_key_service.revoke_key(
            self.db, code=code, actor_id=self.user.id, patient_id=self.user.id, now=now
        )

    def list_active_keys(self, *, now: datetime | None = None) -> list[AccessKey]:
        return access_key_service.list_active_keys_for_patient(self.db, self.user.id, now=now)

    # Records
    def upload_record(
        self,
        *,
        title: str,
        description: str,
        file_type: RecordFileType,
        file_name: str,
        file_url: str | None = None,
        follow_up_date: datetime | None = None,
        now: datetime | None = None,
    ) -> MedicalRecord:
        return record_service.upload_record(
            self.db,
            patient=self.user,
            title=title,
            description=description,
            file_type=file_type,
            file_name=file_name,
            file_url=file_url,
            follow_up_date=follow_up_date,
            now=now,
        )

    def list_records(self) -> list[MedicalRecord]:
        return record_service.list_records_for_patient(self.db, self.user.id)

    def list_follow_ups(self, *, now: datetime | None = None) -> list[MedicalRecord]:
        return record_service.list_upcoming_follow_ups(self.db, self.user.id, now=now)

    def record_insights(self, limit: int = 8) -> list[tuple[str, int]]:
        return record_service.compute_record_insights(self.list_records(), limit=limit)

    # Emergency exposure
    def toggle_record_emergency(self, record_id: UUID, *, now: datetime | None = None) -> MedicalRecord:
        return emergency_service.toggle_record_emergency(
            self.db, patient=self.user, record_id=record_id, now=now
        )

    def update_emergency_info(self, text: str, *, now: datetime | None = None) -> User:
        return emergency_service.update_emergency_info(self.db, patient=self.user, text=text, now=now)

    # Lab reports
    def list_pending_lab_requests(self) -> list[LabRequest]:
        return lab_request_service.list_pending_lab_requests(self.db, self.user.id)

    def respond_to_lab_request(
        self,
        request_id: UUID,
        *,
        approve: bool,
        now: datetime | None = None,
    ) -> tuple[LabRequest, MedicalRecord | None]:
        return lab_request_service.respond_to_lab_request(
            self.db, request_id=request_id, patient=self.user, approve=approve, now=now
        )

    # Audit
    def audit_trail(self) -> list[LedgerEntry]:
        return ledger_service.list_entries_for_patient(self.db, self.user.id)

    def has_recent_emergency_access(self, *, since: datetime | None = None) -> bool:
        since = since or utc_now() - timedelta(days=7)
        return ledger_service.has_recent_emergency_access(self.db, self.user.id, since=since)


class DoctorOps(_RoleOps):
    role = UserRole.DOCTOR

    def list_appointments(self) -> list[Appointment]:
        return appointment_service.list_appointments(self.db, doctor_id=self.user.id)

    def request_access(self, appointment_id: UUID, *, now: datetime | None = None) -> Appointment:
        return consent_service.request_access(
            self.db, appointment_id=appointment_id, doctor=self.user, now=now
        )

    def records_for_key(self, code: str, *, now: datetime | None = None) -> list[MedicalRecord]:
        return access_key_service.list_records_for_key(self.db, code=code, doctor=self.user, now=now)

    def set_geo_fence(self, is_geo_fenced: bool) -> User:
        return emergency_service.set_geo_fence(self.db, doctor=self.user, is_geo_fenced=is_geo_fenced)

    def emergency_profile(self, patient_id: UUID, *, now: datetime | None = None) -> User:
        return emergency_service.disclose_emergency_profile(
            self.db, doctor=self.user, patient_id=patient_id, now=now
        )

    def emergency_record(self, record_id: UUID, *, now: datetime | None = None) -> MedicalRecord:
        return emergency_service.disclose_record(self.db, doctor=self.user, record_id=record_id, now=now)

    def emergency_records(self, patient_id: UUID, *, now: datetime | None = None) -> list[MedicalRecord]:
        return emergency_service.list_emergency_records(
            self.db, doctor=self.user, patient_id=patient_id, now=now
        )


class LabOps(_RoleOps):
    role = UserRole.LAB_TECHNICIAN

    def submit_lab_request(
        self,
        *,
        patient_id: UUID,
        lab_name: str,
        title: str,
        bill_file_name: str,
        description: str = "",
        file_name: str | None = None,
        file_url: str | None = None,
        now: datetime | None = None,
    ) -> LabRequest:
        return lab_request_service.submit_lab_request(
            self.db,
            technician=self.user,
            patient_id=patient_id,
            lab_name=lab_name,
            title=title,
            bill_file_name=bill_file_name,
            description=description,
            file_name=file_name,
            file_url=file_url,
            now=now,
        )

    def list_submitted(self) -> list[LabRequest]:
        return lab_request_service.list_lab_requests_by_technician(self.db, self.user.id)


RoleOps = PatientOps | DoctorOps | LabOps

_OPS_BY_ROLE: dict[UserRole, type[_RoleOps]] = {
    UserRole.PATIENT: PatientOps,
    UserRole.DOCTOR: DoctorOps,
    UserRole.LAB_TECHNICIAN: LabOps,
}


def ops_for(db: Session, user: User) -> RoleOps:
    ops_cls = _OPS_BY_ROLE.get(user.role)
    if ops_cls is None:
        raise NotFoundError(f"No operations defined for role {user.role}")
    return ops_cls(db, user)
