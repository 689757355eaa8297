# medvault/models/user.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Enum, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from medvault.models.base import Base


class UserRole(str, PyEnum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"


class User(Base):
    """
    A portal user. Patients own records; doctors and lab technicians are
    providers attached to a hospital or lab.
    """

    __tablename__ = "users"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role_enum"),
        nullable=False,
        index=True,
    )

    # Profile
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Provider fields
    specialty: Mapped[str | None] = mapped_column(String(100), nullable=True)
    hospital_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Patient fields
    emergency_info: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Free-text vital info shown to geo-fenced doctors during an emergency override",
    )

    # Doctor location attestation
    is_geo_fenced: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        doc="True while the doctor is physically present at a recognized hospital location",
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
