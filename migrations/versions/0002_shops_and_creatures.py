"""Merchants, stock items and creatures.

Revision ID: 0002_shops_and_creatures
Revises: 0001_initial_schema
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002_shops_and_creatures"
down_revision: Union[str, Sequence[str], None] = "0001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "merchants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(128), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_merchants_campaign_id", "merchants", ["campaign_id"])

    op.create_table(
        "stock_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("merchant_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(16), nullable=False, server_default="STAPLE"),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("currency_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["merchant_id"], ["merchants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["currency_id"], ["currencies.id"], ondelete="RESTRICT"),
    )
    op.create_index("idx_stock_items_merchant_id", "stock_items", ["merchant_id"])
    op.create_index("idx_stock_items_currency_id", "stock_items", ["currency_id"])

    op.create_table(
        "creatures",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(64), nullable=False, server_default="NPC"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("avatar_url", sa.String(1024), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("armor_class", sa.Integer(), nullable=True),
        sa.Column("hit_points", sa.Integer(), nullable=True),
        sa.Column("speed", sa.String(128), nullable=True),
        sa.Column("strength", sa.Integer(), nullable=True),
        sa.Column("dexterity", sa.Integer(), nullable=True),
        sa.Column("constitution", sa.Integer(), nullable=True),
        sa.Column("intelligence", sa.Integer(), nullable=True),
        sa.Column("wisdom", sa.Integer(), nullable=True),
        sa.Column("charisma", sa.Integer(), nullable=True),
        sa.Column("challenge_rating", sa.String(16), nullable=True),
        sa.Column("proficiency_bonus", sa.Integer(), nullable=True),
        sa.Column("skills", sa.Text(), nullable=True),
        sa.Column("saving_throws", sa.Text(), nullable=True),
        sa.Column("damage_resistances", sa.Text(), nullable=True),
        sa.Column("damage_immunities", sa.Text(), nullable=True),
        sa.Column("condition_immunities", sa.Text(), nullable=True),
        sa.Column("senses", sa.Text(), nullable=True),
        sa.Column("languages", sa.Text(), nullable=True),
        sa.Column("traits", sa.Text(), nullable=True),
        sa.Column("actions", sa.Text(), nullable=True),
        sa.Column("legendary_actions", sa.Text(), nullable=True),
        sa.Column("lair_actions", sa.Text(), nullable=True),
        sa.Column("spellcasting", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_creatures_campaign_name", "creatures", ["campaign_id", "name"])


def downgrade() -> None:
    op.drop_index("idx_creatures_campaign_name", table_name="creatures")
    op.drop_table("creatures")
    op.drop_index("idx_stock_items_currency_id", table_name="stock_items")
    op.drop_index("idx_stock_items_merchant_id", table_name="stock_items")
    op.drop_table("stock_items")
    op.drop_index("idx_merchants_campaign_id", table_name="merchants")
    op.drop_table("merchants")
