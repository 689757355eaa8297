"""create_medvault_schema

Revision ID: create_medvault_schema
Revises:
Create Date: 2026-03-02 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "create_medvault_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role_enum = sa.Enum("PATIENT", "DOCTOR", "LAB_TECHNICIAN", name="user_role_enum")
appointment_status_enum = sa.Enum("SCHEDULED", "COMPLETED", "CANCELLED", name="appointment_status_enum")
access_request_status_enum = sa.Enum("NONE", "PENDING", "APPROVED", "DENIED", name="access_request_status_enum")
lab_request_status_enum = sa.Enum("PENDING", "APPROVED", "REJECTED", name="lab_request_status_enum")
record_file_type_enum = sa.Enum("PDF", "LAB", "DICOM", name="record_file_type_enum")
ledger_action_enum = sa.Enum(
    "KEY_GENERATED",
    "KEY_REVOKED",
    "ACCESS_REQUESTED",
    "ACCESS_APPROVED",
    "ACCESS_DENIED",
    "EMERGENCY_ACCESS",
    "LAB_REQUEST_APPROVED",
    "LAB_REQUEST_REJECTED",
    "EMERGENCY_INFO_UPDATED",
    "RECORD_EMERGENCY_FLAG_CHANGED",
    name="ledger_action_enum",
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column("specialty", sa.String(length=100), nullable=True),
        sa.Column("hospital_name", sa.String(length=200), nullable=True),
        sa.Column("emergency_info", sa.Text(), nullable=True),
        sa.Column("is_geo_fenced", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_role"), "users", ["role"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("doctor_id", sa.Uuid(), nullable=False),
        sa.Column("doctor_name", sa.String(length=200), nullable=False),
        sa.Column("hospital_name", sa.String(length=200), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", appointment_status_enum, server_default=sa.text("'SCHEDULED'"), nullable=False),
        sa.Column(
            "access_request_status",
            access_request_status_enum,
            server_default=sa.text("'NONE'"),
            nullable=False,
        ),
        _created_at(),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["doctor_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_patient_id"), "appointments", ["patient_id"])
    op.create_index(op.f("ix_appointments_doctor_id"), "appointments", ["doctor_id"])
    op.create_index(op.f("ix_appointments_scheduled_at"), "appointments", ["scheduled_at"])
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"])

    op.create_table(
        "lab_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("technician_id", sa.Uuid(), nullable=False),
        sa.Column("lab_name", sa.String(length=200), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("bill_file_name", sa.String(length=255), nullable=False),
        sa.Column("status", lab_request_status_enum, server_default=sa.text("'PENDING'"), nullable=False),
        sa.Column("record_id", sa.Uuid(), nullable=True),
        _created_at(),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_lab_requests_patient_id"), "lab_requests", ["patient_id"])
    op.create_index(op.f("ix_lab_requests_technician_id"), "lab_requests", ["technician_id"])
    op.create_index(op.f("ix_lab_requests_status"), "lab_requests", ["status"])

    op.create_table(
        "medical_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("lab_request_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("file_type", record_file_type_enum, nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("bill_file_name", sa.String(length=255), nullable=True),
        sa.Column("data_hash", sa.String(length=64), nullable=False),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_emergency_accessible", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["lab_request_id"], ["lab_requests.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_medical_records_patient_id"), "medical_records", ["patient_id"])

    op.create_table(
        "access_keys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("is_auto_generated", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_emergency", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_access_keys_patient_id"), "access_keys", ["patient_id"])
    op.create_index(op.f("ix_access_keys_appointment_id"), "access_keys", ["appointment_id"])
    op.create_index("idx_access_key_code", "access_keys", ["code"])
    op.create_index("idx_access_key_active_expires", "access_keys", ["is_active", "expires_at"])

    op.create_table(
        "ledger_entries",
        sa.Column("sequence", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("action", ledger_action_enum, nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("details", sa.String(length=1000), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("sequence"),
    )
    op.create_index(op.f("ix_ledger_entries_action"), "ledger_entries", ["action"])
    op.create_index(op.f("ix_ledger_entries_patient_id"), "ledger_entries", ["patient_id"])


def downgrade() -> None:
    op.drop_table("ledger_entries")
    op.drop_table("access_keys")
    op.drop_table("medical_records")
    op.drop_table("lab_requests")
    op.drop_table("appointments")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        ledger_action_enum,
        record_file_type_enum,
        lab_request_status_enum,
        access_request_status_enum,
        appointment_status_enum,
        user_role_enum,
    ):
        enum.drop(bind, checkfirst=True)
