"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "drawings",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column(
            "winner_selection",
            sa.Enum(
                "manual",
                "system",
                name="winner_selection",
                native_enum=False,
                length=20,
            ),
            nullable=False,
        ),
        sa.Column("play_with_numbers", sa.Boolean(), nullable=False),
        sa.Column("quantity_of_numbers", sa.Integer(), nullable=False),
        sa.Column("winners_amount", sa.Integer(), nullable=False),
        sa.Column("winner_numbers", sa.JSON(), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entry_counter", sa.Integer(), nullable=False),
        sa.Column("selection_round", sa.Integer(), nullable=False),
        sa.Column("winners_selected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "winners_amount >= 1", name=op.f("ck_drawings_winners_amount_positive")
        ),
        sa.CheckConstraint(
            "quantity_of_numbers >= 0", name=op.f("ck_drawings_quantity_non_negative")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_drawings")),
    )
    op.create_index(op.f("ix_drawings_owner_id"), "drawings", ["owner_id"])

    op.create_table(
        "participants",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("drawing_id", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=False),
        sa.Column("selected_number", sa.Integer(), nullable=True),
        sa.Column("log_numbers", sa.JSON(), nullable=True),
        sa.Column(
            "eligibility",
            sa.Enum(
                "pending",
                "approved",
                "rejected",
                name="eligibility",
                native_enum=False,
                length=20,
            ),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["drawing_id"],
            ["drawings.id"],
            name=op.f("fk_participants_drawing_id_drawings"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_participants")),
    )
    op.create_index(
        op.f("ix_participants_drawing_id"), "participants", ["drawing_id"]
    )
    op.create_index(
        "ix_participants_drawing_eligibility",
        "participants",
        ["drawing_id", "eligibility"],
    )

    op.create_table(
        "number_slots",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("drawing_id", sa.String(length=32), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "available",
                "reserved",
                "taken",
                name="slot_status",
                native_enum=False,
                length=20,
            ),
            nullable=False,
        ),
        sa.Column("participant_id", ID_TYPE, nullable=True),
        sa.Column("reserved_by", sa.String(length=128), nullable=True),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["drawing_id"],
            ["drawings.id"],
            name=op.f("fk_number_slots_drawing_id_drawings"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["participant_id"],
            ["participants.id"],
            name=op.f("fk_number_slots_participant_id_participants"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_number_slots")),
        sa.UniqueConstraint(
            "drawing_id", "number", name="uq_number_slots_drawing_number"
        ),
    )
    op.create_index(
        "ix_number_slots_drawing_status", "number_slots", ["drawing_id", "status"]
    )
    op.create_index(
        op.f("ix_number_slots_participant_id"), "number_slots", ["participant_id"]
    )

    op.create_table(
        "drawing_winners",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("drawing_id", sa.String(length=32), nullable=False),
        sa.Column("participant_id", ID_TYPE, nullable=False),
        sa.Column("winning_number", sa.Integer(), nullable=True),
        sa.Column("selected_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["drawing_id"],
            ["drawings.id"],
            name=op.f("fk_drawing_winners_drawing_id_drawings"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["participant_id"],
            ["participants.id"],
            name=op.f("fk_drawing_winners_participant_id_participants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_drawing_winners")),
        sa.UniqueConstraint(
            "drawing_id",
            "winning_number",
            name="uq_drawing_winners_drawing_number",
        ),
    )
    op.create_index(
        op.f("ix_drawing_winners_drawing_id"), "drawing_winners", ["drawing_id"]
    )
    op.create_index(
        op.f("ix_drawing_winners_participant_id"),
        "drawing_winners",
        ["participant_id"],
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_drawing_winners_participant_id"), table_name="drawing_winners")
    op.drop_index(op.f("ix_drawing_winners_drawing_id"), table_name="drawing_winners")
    op.drop_table("drawing_winners")
    op.drop_index(op.f("ix_number_slots_participant_id"), table_name="number_slots")
    op.drop_index("ix_number_slots_drawing_status", table_name="number_slots")
    op.drop_table("number_slots")
    op.drop_index("ix_participants_drawing_eligibility", table_name="participants")
    op.drop_index(op.f("ix_participants_drawing_id"), table_name="participants")
    op.drop_table("participants")
    op.drop_index(op.f("ix_drawings_owner_id"), table_name="drawings")
    op.drop_table("drawings")
