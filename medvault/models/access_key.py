# medvault/models/access_key.py
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medvault.models.appointment import Appointment
from medvault.models.base import Base


class AccessKey(Base):
    """
    Time-boxed code granting a doctor read access to a patient's records
    for one appointment. At most one key per appointment is active.
    """

    __tablename__ = "access_keys"
    __table_args__ = (
        Index("idx_access_key_code", "code"),
        Index("idx_access_key_active_expires", "is_active", "expires_at"),
    )

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Foreign Keys
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Key Information
    code: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        doc="Short human-enterable code; unique among active keys",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    is_auto_generated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    is_emergency: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        doc="Forced off-schedule by the patient; shorter TTL",
    )

    # Timestamps
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    appointment: Mapped["Appointment"] = relationship("Appointment")
