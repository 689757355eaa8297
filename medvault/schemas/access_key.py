from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AccessKeyResponse(BaseModel):
    id: UUID
    code: str
    patient_id: UUID
    appointment_id: UUID
    expires_at: datetime
    is_active: bool
    is_auto_generated: bool
    is_emergency: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RevokeKeyResponse(BaseModel):
    code: str
    revoked: bool
