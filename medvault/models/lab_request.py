# medvault/models/lab_request.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from medvault.models.base import Base


class LabRequestStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LabRequest(Base):
    """
    A report + bill uploaded by a lab technician, waiting for the patient's
    approval before it becomes a medical record. Kept after resolution for audit.
    """

    __tablename__ = "lab_requests"

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
    technician_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Report Information
    lab_name: Mapped[str] = mapped_column(String(200), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    bill_file_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Status
    status: Mapped[LabRequestStatus] = mapped_column(
        Enum(LabRequestStatus, name="lab_request_status_enum"),
        nullable=False,
        default=LabRequestStatus.PENDING,
        server_default=text("'PENDING'"),
        index=True,
    )
    record_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        doc="Medical record created on approval",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
