"""Initial migration: create tournament, entrant, bracketmatch tables

Revision ID: 001_initial_finals
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_finals"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create tournament table
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("finals_state", sa.String(), nullable=False, server_default="NOT_PLAYED"),
        sa.Column("champion_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create entrant table
    op.create_table(
        "entrant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("win_rounds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ties", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("loss_rounds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["tournament_id"],
            ["tournament.id"],
        ),
        sa.UniqueConstraint("tournament_id", "display_name", name="uq_tournament_entrant_name"),
    )
    op.create_index("ix_entrant_tournament_id", "entrant", ["tournament_id"])

    # Create bracketmatch table
    op.create_table(
        "bracketmatch",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("round", sa.String(), nullable=False),
        sa.Column("bracket_side", sa.String(), nullable=False),
        sa.Column("player1_id", sa.Integer(), nullable=True),
        sa.Column("player2_id", sa.Integer(), nullable=True),
        sa.Column("score1", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("score2", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["player1_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["entrant.id"]),
        sa.UniqueConstraint("tournament_id", "match_number", name="uq_bracket_match_number"),
    )
    op.create_index("ix_bracketmatch_tournament_id", "bracketmatch", ["tournament_id"])


def downgrade() -> None:
    op.drop_index("ix_bracketmatch_tournament_id", table_name="bracketmatch")
    op.drop_table("bracketmatch")
    op.drop_index("ix_entrant_tournament_id", table_name="entrant")
    op.drop_table("entrant")
    op.drop_table("tournament")
