"""create list ownership, sharing and sync tables

Revision ID: 5b2e9c1f7a40
Revises:
Create Date: 2026-10-18 09:12:44.518203

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b2e9c1f7a40"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "lists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("visibility", sa.String(length=20), nullable=False),
        sa.Column("default_weight", sa.Float(), nullable=False),
        sa.Column("cooldown_days", sa.Integer(), nullable=True),
        sa.Column("max_items", sa.Integer(), nullable=True),
        sa.Column("sync_status", sa.String(length=20), nullable=False),
        sa.Column("sync_source", sa.String(length=50), nullable=False),
        sa.Column("sync_id", sa.String(length=255), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("default_weight > 0", name="ck_lists_default_weight_positive"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_lists_id"), "lists", ["id"], unique=False)
    op.create_index(op.f("ix_lists_sync_status"), "lists", ["sync_status"], unique=False)
    op.create_index(op.f("ix_lists_deleted_at"), "lists", ["deleted_at"], unique=False)

    op.create_table(
        "list_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("use_count", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["list_id"], ["lists.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_list_items_id"), "list_items", ["id"], unique=False)
    op.create_index(op.f("ix_list_items_list_id"), "list_items", ["list_id"], unique=False)
    op.create_index(op.f("ix_list_items_last_used_at"), "list_items", ["last_used_at"], unique=False)
    op.create_index(op.f("ix_list_items_external_id"), "list_items", ["external_id"], unique=False)
    op.create_index(op.f("ix_list_items_deleted_at"), "list_items", ["deleted_at"], unique=False)

    op.create_table(
        "list_sharing",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("tribe_id", sa.String(length=64), nullable=False),
        sa.Column("shared_by", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["list_id"], ["lists.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("list_id", "tribe_id", name="uq_list_sharing_list_tribe"),
    )
    op.create_index(op.f("ix_list_sharing_id"), "list_sharing", ["id"], unique=False)
    op.create_index(op.f("ix_list_sharing_list_id"), "list_sharing", ["list_id"], unique=False)
    op.create_index(op.f("ix_list_sharing_tribe_id"), "list_sharing", ["tribe_id"], unique=False)
    op.create_index(op.f("ix_list_sharing_expires_at"), "list_sharing", ["expires_at"], unique=False)
    op.create_index(op.f("ix_list_sharing_deleted_at"), "list_sharing", ["deleted_at"], unique=False)

    op.create_table(
        "list_owners",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("owner_type", sa.String(length=10), nullable=False),
        sa.Column("granted_by_share_id", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["list_id"], ["lists.id"]),
        sa.ForeignKeyConstraint(["granted_by_share_id"], ["list_sharing.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "list_id", "owner_id", "owner_type", name="uq_list_owners_natural_key"
        ),
    )
    op.create_index(op.f("ix_list_owners_id"), "list_owners", ["id"], unique=False)
    op.create_index(op.f("ix_list_owners_list_id"), "list_owners", ["list_id"], unique=False)
    op.create_index(op.f("ix_list_owners_owner_id"), "list_owners", ["owner_id"], unique=False)
    op.create_index(
        op.f("ix_list_owners_granted_by_share_id"),
        "list_owners",
        ["granted_by_share_id"],
        unique=False,
    )
    op.create_index(op.f("ix_list_owners_deleted_at"), "list_owners", ["deleted_at"], unique=False)

    op.create_table(
        "list_conflicts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("local_data", sa.JSON(), nullable=False),
        sa.Column("remote_data", sa.JSON(), nullable=False),
        sa.Column("resolution", sa.String(length=20), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["list_id"], ["lists.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["list_items.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_list_conflicts_id"), "list_conflicts", ["id"], unique=False)
    op.create_index(op.f("ix_list_conflicts_list_id"), "list_conflicts", ["list_id"], unique=False)
    op.create_index(op.f("ix_list_conflicts_item_id"), "list_conflicts", ["item_id"], unique=False)
    op.create_index(
        op.f("ix_list_conflicts_resolved_at"), "list_conflicts", ["resolved_at"], unique=False
    )


def downgrade() -> None:
    op.drop_table("list_conflicts")
    op.drop_table("list_owners")
    op.drop_table("list_sharing")
    op.drop_table("list_items")
    op.drop_table("lists")
