"""stock ledger baseline

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("username", sa.String(length=50), nullable=False),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=100), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="staff"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            _updated_at(),
            sa.CheckConstraint("role IN ('admin', 'staff')", name="ck_users_role"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_username", "users", ["username"], unique=True)
        op.create_index("ux_users_email_lower", "users", [sa.text("lower(email)")], unique=True)
        op.create_index("ux_users_username_lower", "users", [sa.text("lower(username)")], unique=True)
        op.create_index("ix_users_role_active", "users", ["role", "is_active"])

    if not _table_exists(inspector, "locations"):
        op.create_table(
            "locations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("code", sa.String(length=30), nullable=False),
            sa.Column("address", sa.String(length=255), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            _updated_at(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )
        op.create_index("ix_locations_active_created_at", "locations", ["is_active", "created_at"])

    if not _table_exists(inspector, "item_categories"):
        op.create_table(
            "item_categories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=255), nullable=True),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if not _table_exists(inspector, "units_of_measure"):
        op.create_table(
            "units_of_measure",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=50), nullable=False),
            sa.Column("abbreviation", sa.String(length=10), nullable=False),
            _created_at(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if not _table_exists(inspector, "stock_items"):
        op.create_table(
            "stock_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=150), nullable=False),
            sa.Column("sku", sa.String(length=64), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category_id", sa.String(length=36), nullable=True),
            sa.Column("uom_id", sa.String(length=36), nullable=True),
            sa.Column("location_id", sa.String(length=36), nullable=True),
            sa.Column("quantity", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("quantity_version", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("reorder_level", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(length=36), nullable=True),
            sa.Column("updated_by", sa.String(length=36), nullable=True),
            _created_at(),
            _updated_at(),
            sa.CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_non_negative"),
            sa.CheckConstraint("reorder_level >= 0", name="ck_stock_items_reorder_level_non_negative"),
            sa.ForeignKeyConstraint(["category_id"], ["item_categories.id"]),
            sa.ForeignKeyConstraint(["uom_id"], ["units_of_measure.id"]),
            sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
            sa.ForeignKeyConstraint(["updated_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_stock_items_sku", "stock_items", ["sku"], unique=True)
        op.create_index("ix_stock_items_category_id", "stock_items", ["category_id"])
        op.create_index("ix_stock_items_location_id", "stock_items", ["location_id"])
        op.create_index("ix_stock_items_active_name", "stock_items", ["is_active", "name"])

    if not _table_exists(inspector, "stock_ledger_entries"):
        op.create_table(
            "stock_ledger_entries",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("kind", sa.String(length=20), nullable=False),
            sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
            sa.Column("quantity_before", sa.Numeric(12, 2), nullable=False),
            sa.Column("quantity_after", sa.Numeric(12, 2), nullable=False),
            sa.Column("item_version", sa.Integer(), nullable=False),
            sa.Column("location_id", sa.String(length=36), nullable=True),
            sa.Column("actor_user_id", sa.String(length=36), nullable=False),
            sa.Column("note", sa.String(length=255), nullable=True),
            sa.Column("reference_type", sa.String(length=30), nullable=True),
            sa.Column("reference_id", sa.String(length=36), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["item_id"], ["stock_items.id"]),
            sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )

    inspector = sa.inspect(bind)
    ledger_indexes = [
        ("ux_stock_ledger_entries_item_version", ["item_id", "item_version"], True),
        ("ix_stock_ledger_entries_item_id", ["item_id"], False),
        ("ix_stock_ledger_entries_location_id", ["location_id"], False),
        ("ix_stock_ledger_entries_actor_user_id", ["actor_user_id"], False),
        ("ix_stock_ledger_entries_reference_id", ["reference_id"], False),
        ("ix_stock_ledger_entries_item_created_at", ["item_id", "created_at"], False),
        ("ix_stock_ledger_entries_location_created_at", ["location_id", "created_at"], False),
    ]
    for index_name, columns, unique in ledger_indexes:
        if not _index_exists(inspector, "stock_ledger_entries", index_name):
            op.create_index(index_name, "stock_ledger_entries", columns, unique=unique)

    if not _table_exists(inspector, "requisitions"):
        op.create_table(
            "requisitions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("requested_by", sa.String(length=36), nullable=False),
            sa.Column("item_id", sa.String(length=36), nullable=False),
            sa.Column("location_id", sa.String(length=36), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("note", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("reviewed_by", sa.String(length=36), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("admin_note", sa.Text(), nullable=True),
            _created_at(),
            _updated_at(),
            sa.CheckConstraint("quantity > 0", name="ck_requisitions_quantity_positive"),
            sa.ForeignKeyConstraint(["requested_by"], ["users.id"]),
            sa.ForeignKeyConstraint(["item_id"], ["stock_items.id"]),
            sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
            sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_requisitions_requested_by", "requisitions", ["requested_by"])
        op.create_index("ix_requisitions_item_id", "requisitions", ["item_id"])
        op.create_index("ix_requisitions_status_created_at", "requisitions", ["status", "created_at"])
        op.create_index(
            "ix_requisitions_requested_by_created_at",
            "requisitions",
            ["requested_by", "created_at"],
        )

    if not _table_exists(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("actor_user_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_type", sa.String(length=50), nullable=False),
            sa.Column("target_id", sa.String(length=36), nullable=True),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
        op.create_index(
            "ix_audit_logs_target_created_at",
            "audit_logs",
            ["target_type", "target_id", "created_at"],
        )
        op.create_index("ix_audit_logs_action_created_at", "audit_logs", ["action", "created_at"])
        op.create_index("ix_audit_logs_actor_created_at", "audit_logs", ["actor_user_id", "created_at"])


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in (
        "audit_logs",
        "requisitions",
        "stock_ledger_entries",
        "stock_items",
        "units_of_measure",
        "item_categories",
        "locations",
        "users",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
