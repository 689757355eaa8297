# medvault/models/ledger_entry.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from medvault.models.base import Base


class LedgerAction(str, PyEnum):
    KEY_GENERATED = "KEY_GENERATED"
    KEY_REVOKED = "KEY_REVOKED"
    ACCESS_REQUESTED = "ACCESS_REQUESTED"
    ACCESS_APPROVED = "ACCESS_APPROVED"
    ACCESS_DENIED = "ACCESS_DENIED"
    EMERGENCY_ACCESS = "EMERGENCY_ACCESS"
    LAB_REQUEST_APPROVED = "LAB_REQUEST_APPROVED"
    LAB_REQUEST_REJECTED = "LAB_REQUEST_REJECTED"
    EMERGENCY_INFO_UPDATED = "EMERGENCY_INFO_UPDATED"
    RECORD_EMERGENCY_FLAG_CHANGED = "RECORD_EMERGENCY_FLAG_CHANGED"


class LedgerEntry(Base):
    """
    Append-only audit entry. The integer sequence is the authoritative
    order; timestamp is for display.
    """

    __tablename__ = "ledger_entries"

    # Primary Key
    sequence: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    action: Mapped[LedgerAction] = mapped_column(
        Enum(LedgerAction, name="ledger_action_enum"),
        nullable=False,
        index=True,
    )
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        doc="NULL for system actions (auto key scheduler)",
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
    )
    details: Mapped[str] = mapped_column(String(1000), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
