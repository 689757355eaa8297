from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from medvault.models.appointment import AccessRequestStatus, AppointmentStatus
from medvault.schemas.access_key import AccessKeyResponse


class AppointmentCreate(BaseModel):
    doctor_id: UUID
    scheduled_at: datetime
    hospital_name: str | None = None


class AppointmentResponse(BaseModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    doctor_name: str
    hospital_name: str | None
    scheduled_at: datetime
    status: AppointmentStatus
    access_request_status: AccessRequestStatus
    created_at: datetime

    class Config:
        from_attributes = True


class AccessResponseRequest(BaseModel):
    approve: bool


class AccessResponseResult(BaseModel):
    appointment: AppointmentResponse
    key: AccessKeyResponse | None = None
