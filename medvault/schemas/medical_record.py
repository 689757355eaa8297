from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from medvault.models.medical_record import RecordFileType


class MedicalRecordCreate(BaseModel):
    title: str
    description: str = ""
    file_type: RecordFileType = RecordFileType.PDF
    file_name: str = "document.pdf"
    file_url: str | None = None
    follow_up_date: datetime | None = None


class MedicalRecordResponse(BaseModel):
    id: UUID
    patient_id: UUID
    title: str
    description: str
    file_type: RecordFileType
    file_name: str
    file_url: str | None = None
    bill_file_name: str | None = None
    data_hash: str
    follow_up_date: datetime | None = None
    is_emergency_accessible: bool
    lab_request_id: UUID | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class RecordInsight(BaseModel):
    term: str
    count: int
