from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from medvault.models.ledger_entry import LedgerAction


class LedgerEntryResponse(BaseModel):
    sequence: int
    action: LedgerAction
    actor_id: UUID | None = None
    patient_id: UUID
    details: str
    timestamp: datetime

    class Config:
        from_attributes = True


class EmergencyAlertResponse(BaseModel):
    has_recent_emergency_access: bool
    since: datetime
