"""Create per-item progress and answer history tables."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261012_0002"
down_revision: Union[str, None] = "20261012_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "item_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("learner_id", sa.BigInteger(), nullable=False),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("item_kind", sa.String(length=16), server_default="question", nullable=False),
        sa.Column("subelement", sa.String(length=32), nullable=False),
        sa.Column("item_group", sa.String(length=32), nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("correct_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_attempt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_review", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("ease", sa.Float(), server_default=sa.text("2.5"), nullable=False),
        sa.Column("interval", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="new", nullable=False),
        sa.Column("mastery_score", sa.Float(), nullable=True),
        sa.Column("confidence_history", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ("learner_id",),
            ("learners.learner_id",),
            name="fk_item_progress_learner_id_learners",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("learner_id", "item_id", name="uq_item_progress_learner_item"),
    )
    op.create_index(
        "ix_item_progress_learner_id_next_review",
        "item_progress",
        ("learner_id", "next_review"),
    )

    op.create_table(
        "answer_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("item_progress_id", sa.Integer(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("quality", sa.Integer(), nullable=False),
        sa.Column("confidence", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column(
            "answered_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ("item_progress_id",),
            ("item_progress.id",),
            name="fk_answer_events_item_progress_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_answer_events_item_progress_id",
        "answer_events",
        ("item_progress_id",),
    )


def downgrade() -> None:
    op.drop_index("ix_answer_events_item_progress_id", table_name="answer_events")
    op.drop_table("answer_events")
    op.drop_index("ix_item_progress_learner_id_next_review", table_name="item_progress")
    op.drop_table("item_progress")
