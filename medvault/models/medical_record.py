# medvault/models/medical_record.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medvault.models.base import Base
from medvault.models.user import User


class RecordFileType(str, PyEnum):
    PDF = "PDF"
    LAB = "LAB"
    DICOM = "DICOM"


class MedicalRecord(Base):
    """
    A patient-owned record. Records are never deleted; the only mutable
    attribute after creation is the emergency visibility flag.
    """

    __tablename__ = "medical_records"

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
    lab_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("lab_requests.id", ondelete="SET NULL"),
        nullable=True,
        doc="Lab request this record was created from, if any",
    )

    # Record Information
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    file_type: Mapped[RecordFileType] = mapped_column(
        Enum(RecordFileType, name="record_file_type_enum"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Opaque reference handed over by the storage layer",
    )
    bill_file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    data_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        doc="Content fingerprint computed at creation; never changes",
    )

    follow_up_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    is_emergency_accessible: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    patient: Mapped["User"] = relationship("User")
