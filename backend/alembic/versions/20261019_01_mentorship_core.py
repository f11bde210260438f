"""Mentor engagement lifecycle and availability scheduling tables."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as pg


# revision identifiers, used by Alembic.
revision = "20261019_01_mentorship_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=40), nullable=False, server_default="startup"),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
    )

    op.create_table(
        "mentor_profiles",
        sa.Column("user_id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("fee_type", sa.String(length=40), nullable=False, server_default="Free"),
        sa.Column("fee_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("fee_amount", sa.Float(), nullable=True),
        sa.Column("equity_percentage", sa.Float(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "startups",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sector", sa.String(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
    )

    op.create_table(
        "engagement_requests",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("startup_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("mentor_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("requester_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="pending"),
        sa.Column("fee_type", sa.String(length=40), nullable=False, server_default="Free"),
        sa.Column("proposed_fee_amount", sa.Float(), nullable=True),
        sa.Column("proposed_equity_amount", sa.Float(), nullable=True),
        sa.Column("proposed_esop_percentage", sa.Float(), nullable=True),
        sa.Column("fee_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"]),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"]),
    )
    op.create_index(
        "ix_engagement_requests_mentor_status", "engagement_requests", ["mentor_id", "status"]
    )

    op.create_table(
        "assignments",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("mentor_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("startup_id", pg.UUID(as_uuid=True), nullable=True),
        sa.Column("request_id", pg.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=False),
        sa.Column("fee_type", sa.String(length=40), nullable=False, server_default="Free"),
        sa.Column("fee_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("fee_currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("esop_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("esop_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(length=40), nullable=True),
        sa.Column("payment_reference", sa.String(), nullable=True),
        sa.Column("agreement_status", sa.String(length=40), nullable=True),
        sa.Column("agreement_url", sa.String(), nullable=True),
        sa.Column("agreement_uploaded_at", sa.DateTime(), nullable=True),
        sa.Column("mentor_signed_agreement_url", sa.String(), nullable=True),
        sa.Column("mentor_signed_agreement_uploaded_at", sa.DateTime(), nullable=True),
        sa.Column("manual_startup_name", sa.String(), nullable=True),
        sa.Column("manual_startup_email", sa.String(), nullable=True),
        sa.Column("manual_startup_website", sa.String(), nullable=True),
        sa.Column("manual_startup_sector", sa.String(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"]),
        sa.ForeignKeyConstraint(["request_id"], ["engagement_requests.id"]),
        sa.CheckConstraint(
            "(startup_id IS NOT NULL) OR (manual_startup_name IS NOT NULL)",
            name="ck_assignment_startup_variant",
        ),
    )
    op.create_index("ix_assignments_mentor_status", "assignments", ["mentor_id", "status"])

    op.create_table(
        "availability_slots",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("mentor_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("specific_date", sa.Date(), nullable=True),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.CheckConstraint(
            "(is_recurring AND day_of_week IS NOT NULL AND specific_date IS NULL)"
            " OR (NOT is_recurring AND day_of_week IS NULL AND specific_date IS NOT NULL)",
            name="ck_availability_slot_kind",
        ),
        sa.CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="ck_availability_slot_day_of_week",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_slot_window"),
    )
    op.create_index(
        "ix_availability_slots_mentor_active", "availability_slots", ["mentor_id", "is_active"]
    )

    op.create_table(
        "scheduled_sessions",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("mentor_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("startup_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("assignment_id", pg.UUID(as_uuid=True), nullable=False),
        sa.Column("slot_id", pg.UUID(as_uuid=True), nullable=True),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("session_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="scheduled"),
        sa.Column("conferencing_link", sa.String(), nullable=True),
        sa.Column("agenda", sa.Text(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["startup_id"], ["startups.id"]),
        sa.ForeignKeyConstraint(["assignment_id"], ["assignments.id"]),
        sa.CheckConstraint("duration_minutes > 0", name="ck_session_duration_positive"),
    )
    op.create_index(
        "uq_mentor_session_slot",
        "scheduled_sessions",
        ["mentor_id", "session_date", "session_time"],
        unique=True,
        postgresql_where=sa.text("status = 'scheduled'"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", pg.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", pg.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_type", sa.String(), nullable=True),
        sa.Column("target_id", pg.UUID(as_uuid=True), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_target", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("uq_mentor_session_slot", table_name="scheduled_sessions")
    op.drop_table("scheduled_sessions")
    op.drop_index("ix_availability_slots_mentor_active", table_name="availability_slots")
    op.drop_table("availability_slots")
    op.drop_index("ix_assignments_mentor_status", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_engagement_requests_mentor_status", table_name="engagement_requests")
    op.drop_table("engagement_requests")
    op.drop_table("startups")
    op.drop_table("mentor_profiles")
    op.drop_table("users")
