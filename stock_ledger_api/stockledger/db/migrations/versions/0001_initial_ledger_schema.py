"""Initial ledger schema.

- locations
- items (versioned rows)
- item_locations (per-location quantity, insertion order kept in position)
- stock_transactions
- repair_tickets
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Locations
    op.create_table(
        "locations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_locations"),
        sa.UniqueConstraint("name", name="uq_locations_name"),
    )

    # Items
    op.create_table(
        "items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sku", sa.Text(), nullable=False),
        sa.Column("barcode", sa.Text(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.Column("image_ref", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_items"),
        sa.UniqueConstraint("sku", name="uq_items_sku"),
        sa.UniqueConstraint("barcode", name="uq_items_barcode"),
        sa.CheckConstraint("threshold >= 0", name="ck_items_threshold_non_negative"),
    )

    # Per-location quantities
    op.create_table(
        "item_locations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("location_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_item_locations"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_item_locations_item_id_items", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_item_locations_location_id_locations", ondelete="RESTRICT"
        ),
        sa.UniqueConstraint("item_id", "location_id", name="uq_item_locations_item_location"),
        sa.CheckConstraint("quantity >= 0", name="ck_item_locations_quantity_non_negative"),
    )
    op.create_index("ix_item_locations_item_id", "item_locations", ["item_id"])
    op.create_index("ix_item_locations_location_id", "item_locations", ["location_id"])

    # Ledger transactions
    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("from_location_id", sa.Uuid(), nullable=True),
        sa.Column("to_location_id", sa.Uuid(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("photo_ref", sa.Text(), nullable=True),
        sa.Column("vendor", sa.Text(), nullable=True),
        sa.Column("serial", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("repair_ticket_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("approved_by", sa.Uuid(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_stock_transactions"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_stock_transactions_item_id_items", ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["from_location_id"], ["locations.id"],
            name="fk_stock_transactions_from_location_id_locations", ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["to_location_id"], ["locations.id"],
            name="fk_stock_transactions_to_location_id_locations", ondelete="RESTRICT",
        ),
        sa.CheckConstraint("quantity > 0", name="ck_stock_transactions_quantity_positive"),
    )
    op.create_index("ix_stock_transactions_item_id", "stock_transactions", ["item_id"])
    op.create_index("ix_stock_transactions_kind_status", "stock_transactions", ["kind", "status"])

    # Repair tickets
    op.create_table(
        "repair_tickets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("item_id", sa.Uuid(), nullable=False),
        sa.Column("location_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("vendor", sa.Text(), nullable=False),
        sa.Column("serial", sa.Text(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("photo_ref", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("return_location_id", sa.Uuid(), nullable=True),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_repair_tickets"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["items.id"], name="fk_repair_tickets_item_id_items", ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_repair_tickets_location_id_locations", ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["return_location_id"], ["locations.id"],
            name="fk_repair_tickets_return_location_id_locations", ondelete="RESTRICT",
        ),
        sa.CheckConstraint("quantity >= 1", name="ck_repair_tickets_quantity_positive"),
    )
    op.create_index("ix_repair_tickets_item_id", "repair_tickets", ["item_id"])
    op.create_index("ix_repair_tickets_status", "repair_tickets", ["status"])


def downgrade() -> None:
    op.drop_index("ix_repair_tickets_status", table_name="repair_tickets")
    op.drop_index("ix_repair_tickets_item_id", table_name="repair_tickets")
    op.drop_table("repair_tickets")
    op.drop_index("ix_stock_transactions_kind_status", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_item_id", table_name="stock_transactions")
    op.drop_table("stock_transactions")
    op.drop_index("ix_item_locations_location_id", table_name="item_locations")
    op.drop_index("ix_item_locations_item_id", table_name="item_locations")
    op.drop_table("item_locations")
    op.drop_table("items")
    op.drop_table("locations")
