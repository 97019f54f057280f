"""Create per-category performance aggregates."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261014_0003"
down_revision: Union[str, None] = "20261012_0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "category_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("learner_id", sa.BigInteger(), nullable=False),
        sa.Column("category_id", sa.String(length=32), nullable=False),
        sa.Column("category_type", sa.String(length=16), server_default="subelement", nullable=False),
        sa.Column("total_attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_correct", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("recent_attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("recent_correct", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("overall_accuracy", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("recent_accuracy", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("weakness_score", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_studied", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trend", sa.String(length=16), server_default="stable", nullable=False),
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
            name="fk_category_progress_learner_id_learners",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "learner_id",
            "category_id",
            name="uq_category_progress_learner_category",
        ),
    )


def downgrade() -> None:
    op.drop_table("category_progress")
