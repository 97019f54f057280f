"""Create learners table."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261012_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "learners",
        sa.Column("learner_id", sa.BigInteger(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("items_answered", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("items_correct", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("items_mastered", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_session_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("learners")
