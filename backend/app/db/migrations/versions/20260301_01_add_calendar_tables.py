"""add properties, bookings and calendar sync tables"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260301_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_properties_id", "properties", ["id"])
    op.create_index("ix_properties_host_id", "properties", ["host_id"])
    op.create_index("ix_properties_is_active", "properties", ["is_active"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("guest_name", sa.String(length=100), nullable=False),
        sa.Column("guest_email", sa.String(length=255), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])

    op.create_table(
        "calendar_connections",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("ical_url", sa.Text(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "property_id", "source",
            name="uq_calendar_connections_property_source",
        ),
    )
    op.create_index(
        "ix_calendar_connections_property_id",
        "calendar_connections",
        ["property_id"],
    )

    op.create_table(
        "calendar_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("summary", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "property_id", "source", "external_id",
            name="uq_calendar_events_property_source_external",
        ),
    )
    op.create_index("ix_calendar_events_property_id", "calendar_events", ["property_id"])

    op.create_table(
        "unavailable_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("calendar_events.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_unavailable_dates_property_id", "unavailable_dates", ["property_id"])
    op.create_index("ix_unavailable_dates_booking_id", "unavailable_dates", ["booking_id"])
    op.create_index("ix_unavailable_dates_event_id", "unavailable_dates", ["event_id"])
    op.create_index(
        "idx_unavailable_dates_property_date",
        "unavailable_dates",
        ["property_id", "date"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("idx_unavailable_dates_property_date", table_name="unavailable_dates")
    op.drop_index("ix_unavailable_dates_event_id", table_name="unavailable_dates")
    op.drop_index("ix_unavailable_dates_booking_id", table_name="unavailable_dates")
    op.drop_index("ix_unavailable_dates_property_id", table_name="unavailable_dates")
    op.drop_table("unavailable_dates")

    op.drop_index("ix_calendar_events_property_id", table_name="calendar_events")
    op.drop_table("calendar_events")

    op.drop_index("ix_calendar_connections_property_id", table_name="calendar_connections")
    op.drop_table("calendar_connections")

    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_property_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_properties_is_active", table_name="properties")
    op.drop_index("ix_properties_host_id", table_name="properties")
    op.drop_index("ix_properties_id", table_name="properties")
    op.drop_table("properties")
