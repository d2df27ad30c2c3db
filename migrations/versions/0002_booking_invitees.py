"""booking invitees

Revision ID: 0002_booking_invitees
Revises: 0001_timetable_schema
Create Date: 2025-11-18 10:30:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0002_booking_invitees"
down_revision = "0001_timetable_schema"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "booking_invitees",
        sa.Column(
            "booking_id", sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "invitee_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_booking_invitees_invitee_id", "booking_invitees", ["invitee_id"])


def downgrade():
    op.drop_index("ix_booking_invitees_invitee_id", table_name="booking_invitees")
    op.drop_table("booking_invitees")
