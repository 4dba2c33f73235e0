"""Push notifications: delivery history, one row per attempted send to a user."""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "push_notifications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("notification_type", sa.String(64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_push_notifications_user_id", "push_notifications", ["user_id"], unique=False)
    op.create_index(
        "ix_push_notifications_notification_type", "push_notifications", ["notification_type"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_push_notifications_notification_type", table_name="push_notifications")
    op.drop_index("ix_push_notifications_user_id", table_name="push_notifications")
    op.drop_table("push_notifications")
