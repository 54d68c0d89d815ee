"""Create listings, overrides and reservations with no-overlap constraint

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2026-10-19 09:12:31.402117

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3b1f6c2a9d40"
down_revision = None
branch_labels = None
depends_on = None

HOLDING_STATUS_PREDICATE = "status NOT IN ('ORDER_CANCELED', 'ORDER_FAIL') AND deleted_at IS NULL"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    postgres = op.get_bind().dialect.name == "postgresql"
    if postgres:
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "listings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("host_id", sa.Uuid(), nullable=False),
        sa.Column("region_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("guest_number", sa.SmallInteger(), nullable=True),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("is_instant_booking", sa.Boolean(), nullable=True),
        sa.Column("is_no_free_cancellation", sa.Boolean(), nullable=True),
        sa.Column("cancellation_policy", sa.String(20), nullable=True),
        sa.Column("default_price", sa.Float(), nullable=True),
        sa.Column("default_availability", sa.Boolean(), nullable=True),
        sa.Column("booking_window", sa.String(20), nullable=True),
        sa.Column("buffer_period", sa.String(40), nullable=True),
        sa.Column("restricted_check_in", sa.JSON(), nullable=False),
        sa.Column("restricted_check_out", sa.JSON(), nullable=False),
        sa.Column("min_booking_night", sa.Integer(), nullable=True),
        sa.Column("max_booking_night", sa.Integer(), nullable=True),
        sa.Column("same_day_booking_cutoff_time", sa.Time(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_listings_slug", "listings", ["slug"], unique=True)
    op.create_index("ix_listings_host_id", "listings", ["host_id"])

    for table, value_columns in (
        ("availability_overrides", [sa.Column("availability_override", sa.Boolean(), nullable=False)]),
        (
            "price_overrides",
            [
                sa.Column("price_override", sa.Float(), nullable=False),
                sa.Column("type", sa.String(50), nullable=True),
            ],
        ),
    ):
        op.create_table(
            table,
            sa.Column(
                "listing_id",
                sa.Uuid(),
                sa.ForeignKey("listings.id", ondelete="CASCADE"),
                primary_key=True,
            ),
            sa.Column("start_date", sa.Date(), primary_key=True),
            sa.Column("end_date", sa.Date(), primary_key=True),
            *value_columns,
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_listing_id", table, ["listing_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("booking_number", sa.String(16), nullable=True, unique=True),
        sa.Column(
            "listing_id",
            sa.Uuid(),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("guest_id", sa.Uuid(), nullable=True),
        sa.Column("host_id", sa.Uuid(), nullable=True),
        sa.Column("listing_name", sa.String(255), nullable=True),
        sa.Column("listing_address", sa.String(255), nullable=True),
        sa.Column("base_price", sa.Float(), nullable=True),
        sa.Column("tax", sa.Float(), nullable=True),
        sa.Column("service_fee", sa.Float(), nullable=True),
        sa.Column("guest_deposit", sa.Float(), nullable=True),
        sa.Column("total_price", sa.Float(), nullable=True),
        sa.Column("night_staying", sa.Integer(), nullable=True),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("guest_number", sa.Integer(), nullable=True),
        sa.Column("guest_info", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="ORDER_CREATED"),
        sa.Column("cancel_reason", sa.String(255), nullable=True),
        sa.Column("cancelled_by_id", sa.Uuid(), nullable=True),
        sa.Column("book_hash", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("check_in_date < check_out_date", name="date_order"),
    )
    op.create_index("ix_reservations_listing_id", "reservations", ["listing_id"])
    op.create_index("ix_reservations_guest_id", "reservations", ["guest_id"])
    op.create_index("ix_reservations_host_id", "reservations", ["host_id"])
    op.create_index("ix_reservations_status", "reservations", ["status"])
    op.create_index(
        "ix_reservations_listing_dates",
        "reservations",
        ["listing_id", "check_in_date", "check_out_date"],
    )

    # Two calendar-holding reservations of one listing may never share a night
    if postgres:
        op.execute(
            "ALTER TABLE reservations ADD CONSTRAINT reservations_no_overlapping_stays "
            "EXCLUDE USING gist ("
            "listing_id WITH =, "
            "daterange(check_in_date, check_out_date, '[)') WITH &&"
            f") WHERE ({HOLDING_STATUS_PREDICATE})"
        )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("reservations")
    op.drop_table("price_overrides")
    op.drop_table("availability_overrides")
    op.drop_index("ix_listings_host_id", table_name="listings")
    op.drop_index("ix_listings_slug", table_name="listings")
    op.drop_table("listings")
