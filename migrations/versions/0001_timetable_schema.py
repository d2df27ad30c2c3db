"""timetable schema: rooms, templates, exceptions, bookings with overlap protection

Revision ID: 0001_timetable_schema
Revises:
Create Date: 2025-11-04 09:00:00

"""
from alembic import op
import sqlalchemy as sa

from room_timetable.models import OWNER_EXCLUSION_DDL, ROOM_EXCLUSION_DDL


# revision identifiers, used by Alembic.
revision = "0001_timetable_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("room_type", sa.String(), nullable=True),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])
    op.create_index("ix_rooms_name", "rooms", ["name"], unique=True)

    op.create_table(
        "timetable_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_name", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("repeat_interval_weeks", sa.Integer(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_template_weekday"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_template_duration_positive"),
        sa.CheckConstraint("repeat_interval_weeks > 0", name="ck_template_repeat_positive"),
    )
    op.create_index("ix_timetable_templates_id", "timetable_templates", ["id"])
    op.create_index("ix_templates_room_weekday", "timetable_templates", ["room_id", "weekday"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column(
            "template_id", sa.Integer(),
            sa.ForeignKey("timetable_templates.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("template_teacher_name", sa.String(), nullable=True),
        sa.Column("generated_for_week", sa.Date(), nullable=True),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("template_id", "generated_for_week", name="uq_booking_template_week"),
        sa.CheckConstraint(
            "template_id IS NULL OR generated_for_week IS NOT NULL",
            name="ck_booking_template_week_set",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_booking_time_order"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'denied', 'cancelled')",
            name="ck_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_room_time", "bookings", ["room_id", "start_time", "end_time"])
    op.create_index("ix_bookings_owner_time", "bookings", ["owner_id", "start_time", "end_time"])

    op.create_table(
        "template_exceptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "template_id", sa.Integer(),
            sa.ForeignKey("timetable_templates.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "resolved_booking_id", sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("template_id", "week_start_date", name="uq_exception_template_week"),
    )
    op.create_index("ix_template_exceptions_id", "template_exceptions", ["id"])

    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(ROOM_EXCLUSION_DDL)
        op.execute(OWNER_EXCLUSION_DDL)


def downgrade():
    op.drop_table("template_exceptions")
    op.drop_table("bookings")
    op.drop_table("timetable_templates")
    op.drop_table("rooms")
    op.drop_table("users")
