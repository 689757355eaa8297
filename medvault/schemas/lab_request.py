from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from medvault.models.lab_request import LabRequestStatus
from medvault.schemas.medical_record import MedicalRecordResponse


class LabRequestCreate(BaseModel):
    patient_id: UUID
    lab_name: str
    title: str
    bill_file_name: str
    description: str = ""
    file_name: str | None = None
    file_url: str | None = None


class LabRequestResponse(BaseModel):
    id: UUID
    patient_id: UUID
    technician_id: UUID
    lab_name: str
    title: str
    description: str
    file_name: str
    bill_file_name: str
    status: LabRequestStatus
    record_id: UUID | None = None
    created_at: datetime
    resolved_at: datetime | None = None

    class Config:
        from_attributes = True


class LabResponseRequest(BaseModel):
    approve: bool


class LabResponseResult(BaseModel):
    request: LabRequestResponse
    record: MedicalRecordResponse | None = None
