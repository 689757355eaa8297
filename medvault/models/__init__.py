# medvault/models/__init__.py
from medvault.models.user import User, UserRole
from medvault.models.appointment import AccessRequestStatus, Appointment, AppointmentStatus
from medvault.models.lab_request import LabRequest, LabRequestStatus
from medvault.models.medical_record import MedicalRecord, RecordFileType
from medvault.models.access_key import AccessKey
from medvault.models.ledger_entry import LedgerAction, LedgerEntry

__all__ = [
    "AccessKey",
    "AccessRequestStatus",
    "Appointment",
    "AppointmentStatus",
    "LabRequest",
    "LabRequestStatus",
    "LedgerAction",
    "LedgerEntry",
    "MedicalRecord",
    "RecordFileType",
    "User",
    "UserRole",
]
