"""questions, rotation state and quiz attempts

Revision ID: base_0001
Revises:
Create Date: 2026-10-16 12:00:00

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "base_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("difficulty", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=True),
        sa.Column("updated_at", sa.BigInteger(), nullable=True),
    )
    op.create_index("ix_questions_difficulty", "questions", ["difficulty"])

    op.create_table(
        "rotation_state",
        sa.Column("tier", sa.String(length=32), primary_key=True),
        sa.Column("used", sa.JSON(), nullable=False),
        sa.Column("last_reset", sa.BigInteger(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("player_name", sa.String(length=100), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("correct_count", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("time_taken", sa.Integer(), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
    )
    op.create_index("ix_quiz_attempts_created_at", "quiz_attempts", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_quiz_attempts_created_at", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("rotation_state")
    op.drop_index("ix_questions_difficulty", table_name="questions")
    op.drop_table("questions")
