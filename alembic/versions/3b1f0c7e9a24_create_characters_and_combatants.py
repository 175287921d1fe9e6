"""create_characters_and_combatants

Revision ID: 3b1f0c7e9a24
Revises:
Create Date: 2026-10-19 09:12:41.118204
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '3b1f0c7e9a24'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "characters",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.String(32), nullable=True),
        sa.Column("party_id", sa.String(32), nullable=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("kin", sa.String(32), nullable=True),
        sa.Column("profession", sa.String(32), nullable=True),
        sa.Column("attributes_json", sa.Text(), nullable=False),
        sa.Column("skill_levels_json", sa.Text(), nullable=True),
        sa.Column("current_hp", sa.Integer(), nullable=False),
        sa.Column("max_hp", sa.Integer(), nullable=False),
        sa.Column("current_wp", sa.Integer(), nullable=False),
        sa.Column("max_wp", sa.Integer(), nullable=False),
        sa.Column("conditions_json", sa.Text(), nullable=False),
        sa.Column("death_rolls_passed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("death_rolls_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_rallied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_character_user", "characters", ["user_id"])
    op.create_index("ix_character_party", "characters", ["party_id"])

    op.create_table(
        "combatants",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("encounter_id", sa.String(32), nullable=False),
        sa.Column("character_id", sa.String(32), sa.ForeignKey("characters.id"), nullable=True),
        sa.Column("display_name", sa.String(64), nullable=False),
        sa.Column("initiative_roll", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_combatant_encounter", "combatants", ["encounter_id"])


def downgrade() -> None:
    op.drop_index("ix_combatant_encounter", table_name="combatants")
    op.drop_table("combatants")
    op.drop_index("ix_character_party", table_name="characters")
    op.drop_index("ix_character_user", table_name="characters")
    op.drop_table("characters")
