from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from medvault.models.user import UserRole


class UserResponse(BaseModel):
    id: UUID
    role: UserRole
    name: str
    phone_number: str | None = None
    specialty: str | None = None
    hospital_name: str | None = None
    is_geo_fenced: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class EmergencyInfoUpdate(BaseModel):
    emergency_info: str


class GeoFenceUpdate(BaseModel):
    is_geo_fenced: bool


class EmergencyProfileResponse(BaseModel):
    """Patient data disclosed under emergency override."""

    id: UUID
    name: str
    phone_number: str | None = None
    emergency_info: str | None = None

    class Config:
        from_attributes = True
