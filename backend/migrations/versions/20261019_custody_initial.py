"""Daily inventory custody schema

Revision ID: 20261019_custody_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_custody_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def upgrade():
    # --- catalog boundary (provider-owned) ---
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "tank_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("weight_kg", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "store_catalog_tanks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("tank_type_id", sa.Integer(), nullable=False),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sell_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["tank_type_id"], ["tank_types.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "tank_type_id", name="uq_store_catalog_tanks_store_tank"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("store_catalog_tanks", schema=None) as batch_op:
        batch_op.create_index("ix_store_catalog_tanks_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_store_catalog_tanks_tank_type_id", ["tank_type_id"], unique=False)

    op.create_table(
        "store_catalog_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("inventory_item_id", sa.Integer(), nullable=False),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sell_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "inventory_item_id", name="uq_store_catalog_items_store_item"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("store_catalog_items", schema=None) as batch_op:
        batch_op.create_index("ix_store_catalog_items_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_store_catalog_items_inventory_item_id", ["inventory_item_id"], unique=False)

    op.create_table(
        "store_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("current_inventory_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("store_assignments", schema=None) as batch_op:
        batch_op.create_index("ix_store_assignments_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_store_assignments_store_id", ["store_id"], unique=False)
        batch_op.create_index("ix_store_assignments_user_store", ["user_id", "store_id"], unique=False)

    # --- daily custody aggregate ---
    op.create_table(
        "inventory_assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_assignment_id", sa.Integer(), nullable=False),
        sa.Column("assignment_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="created"),
        sa.Column("assigned_by_user_id", sa.Integer(), nullable=False),
        sa.Column("auto_assignment", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("carried_from_inventory_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["store_assignment_id"], ["store_assignments.id"]),
        sa.ForeignKeyConstraint(["carried_from_inventory_id"], ["inventory_assignments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_assignment_id", "assignment_date", name="uq_inventory_assignments_pairing_date"),
        sa.UniqueConstraint("carried_from_inventory_id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_assignments", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_assignments_store_assignment_id", ["store_assignment_id"], unique=False)
        batch_op.create_index("ix_inventory_assignments_assignment_date", ["assignment_date"], unique=False)
        batch_op.create_index("ix_inventory_assignments_status", ["status"], unique=False)
        batch_op.create_index("ix_inventory_assignments_date_status", ["assignment_date", "status"], unique=False)

    op.create_table(
        "assignment_tanks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("tank_type_id", sa.Integer(), nullable=False),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sell_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("opening_full_tanks", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("opening_empty_tanks", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_full_tanks", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_empty_tanks", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_assignments.id"]),
        sa.ForeignKeyConstraint(["tank_type_id"], ["tank_types.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inventory_id", "tank_type_id", name="uq_assignment_tanks_inventory_tank"),
        sa.CheckConstraint("current_full_tanks >= 0", name="ck_assignment_tanks_full_nonneg"),
        sa.CheckConstraint("current_empty_tanks >= 0", name="ck_assignment_tanks_empty_nonneg"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("assignment_tanks", schema=None) as batch_op:
        batch_op.create_index("ix_assignment_tanks_inventory_id", ["inventory_id"], unique=False)
        batch_op.create_index("ix_assignment_tanks_tank_type_id", ["tank_type_id"], unique=False)

    op.create_table(
        "assignment_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("inventory_item_id", sa.Integer(), nullable=False),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sell_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("opening_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_assignments.id"]),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inventory_id", "inventory_item_id", name="uq_assignment_items_inventory_item"),
        sa.CheckConstraint("current_quantity >= 0", name="ck_assignment_items_qty_nonneg"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("assignment_items", schema=None) as batch_op:
        batch_op.create_index("ix_assignment_items_inventory_id", ["inventory_id"], unique=False)
        batch_op.create_index("ix_assignment_items_inventory_item_id", ["inventory_item_id"], unique=False)

    # --- append-only ledger ---
    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("assignment_tank_id", sa.Integer(), nullable=True),
        sa.Column("assignment_item_id", sa.Integer(), nullable=True),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("full_tanks_change", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("empty_tanks_change", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item_change", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("counterpart_transaction_id", sa.Integer(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_assignments.id"]),
        sa.ForeignKeyConstraint(["assignment_tank_id"], ["assignment_tanks.id"]),
        sa.ForeignKeyConstraint(["assignment_item_id"], ["assignment_items.id"]),
        sa.ForeignKeyConstraint(["counterpart_transaction_id"], ["inventory_transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(assignment_tank_id IS NULL) <> (assignment_item_id IS NULL)",
            name="ck_inventory_transactions_one_target",
        ),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_transactions_inventory_id", ["inventory_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_assignment_tank_id", ["assignment_tank_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_assignment_item_id", ["assignment_item_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_inventory_transactions_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_reference_id", ["reference_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index(
            "ix_inventory_transactions_inventory_occurred", ["inventory_id", "occurred_at"], unique=False
        )

    # --- status audit trail ---
    op.create_table(
        "inventory_status_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.String(16), nullable=True),
        sa.Column("to_status", sa.String(16), nullable=False),
        sa.Column("changed_by_user_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventory_assignments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_status_history", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_status_history_inventory_id", ["inventory_id"], unique=False)
        batch_op.create_index("ix_inventory_status_history_changed_by_user_id", ["changed_by_user_id"], unique=False)
        batch_op.create_index("ix_inventory_status_history_changed_at", ["changed_at"], unique=False)
        batch_op.create_index(
            "ix_inventory_status_history_inventory_changed", ["inventory_id", "changed_at"], unique=False
        )


def downgrade():
    op.drop_table("inventory_status_history")
    op.drop_table("inventory_transactions")
    op.drop_table("assignment_items")
    op.drop_table("assignment_tanks")
    op.drop_table("inventory_assignments")
    op.drop_table("store_assignments")
    op.drop_table("store_catalog_items")
    op.drop_table("store_catalog_tanks")
    op.drop_table("inventory_items")
    op.drop_table("tank_types")
    op.drop_table("stores")
