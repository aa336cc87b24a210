"""Initial schema — users, pieces, inventories, inventory_entries, fusions, rewards.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("handle", sa.String(50), nullable=True, unique=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "pieces",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("shape_family", sa.String(50), nullable=False),
        sa.Column("half", sa.String(1), nullable=False),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("half IN ('A', 'B')", name="ck_pieces_half"),
        sa.CheckConstraint(
            "rarity IN ('common', 'uncommon', 'rare', 'epic', 'legendary')",
            name="ck_pieces_rarity",
        ),
    )
    op.create_index("ix_pieces_shape_family", "pieces", ["shape_family"])

    op.create_table(
        "inventories",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False, unique=True,
        ),
        sa.Column("capacity", sa.Integer, nullable=False, server_default="50"),
        sa.Column("current_usage", sa.Integer, nullable=False, server_default="0"),
        sa.Column("next_serial", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("capacity >= 1", name="ck_inventories_capacity_min"),
        sa.CheckConstraint("current_usage >= 0", name="ck_inventories_usage_min"),
        sa.CheckConstraint(
            "current_usage <= capacity", name="ck_inventories_usage_le_capacity",
        ),
    )

    op.create_table(
        "inventory_entries",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "inventory_id", UUID(as_uuid=True),
            sa.ForeignKey("inventories.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "owner_id", UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("piece_id", UUID(as_uuid=True), sa.ForeignKey("pieces.id"), nullable=False),
        sa.Column("provenance", sa.String(20), nullable=False, server_default="drop"),
        sa.Column("is_locked", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("serial_number", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "inventory_id", "serial_number", name="uq_inventory_entries_serial",
        ),
        sa.CheckConstraint(
            "provenance IN ('drop', 'reward', 'grant', 'admin')",
            name="ck_inventory_entries_provenance",
        ),
    )
    op.create_index("ix_inventory_entries_inventory_id", "inventory_entries", ["inventory_id"])
    op.create_index("ix_inventory_entries_owner_id", "inventory_entries", ["owner_id"])

    op.create_table(
        "fusions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        # Entry ids outlive their rows: no foreign key
        sa.Column("input_entry_1_id", UUID(as_uuid=True), nullable=False),
        sa.Column("input_entry_2_id", UUID(as_uuid=True), nullable=False),
        sa.Column("input_piece_1_id", UUID(as_uuid=True), sa.ForeignKey("pieces.id"), nullable=False),
        sa.Column("input_piece_2_id", UUID(as_uuid=True), sa.ForeignKey("pieces.id"), nullable=False),
        sa.Column("shape_family", sa.String(50), nullable=False),
        sa.Column("is_success", sa.Boolean, nullable=False),
        sa.Column("score_value", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "is_success OR score_value = 0", name="ck_fusions_failed_scores_zero",
        ),
    )
    op.create_index("ix_fusions_user_id", "fusions", ["user_id"])

    op.create_table(
        "rewards",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "fusion_id", UUID(as_uuid=True), sa.ForeignKey("fusions.id"),
            nullable=False, unique=True,
        ),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reward_type", sa.String(20), nullable=False),
        sa.Column("reward_value", sa.JSON, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'claimed', 'consumed')", name="ck_rewards_status",
        ),
        sa.CheckConstraint(
            "reward_type IN ('points', 'coins', 'cosmetic', 'lootbox', 'event_trigger')",
            name="ck_rewards_type",
        ),
    )
    op.create_index("ix_rewards_user_id", "rewards", ["user_id"])


def downgrade() -> None:
    op.drop_table("rewards")
    op.drop_table("fusions")
    op.drop_table("inventory_entries")
    op.drop_table("inventories")
    op.drop_table("pieces")
    op.drop_table("users")
