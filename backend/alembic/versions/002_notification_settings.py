"""Notification settings: one row per (user_id, chat_room_id), every toggle defaults to true."""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TOGGLES = (
    "tagged_in_post",
    "tagged_in_comment",
    "post_created",
    "selected_as_speaker",
    "selected_as_next_speaker",
    "all_comments",
    "show_in_viewed_by",
    "reaction_notification",
    "community_announcements",
)


def upgrade() -> None:
    op.create_table(
        "notification_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("chat_room_id", sa.String(64), nullable=False),
        *[sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.true()) for name in TOGGLES],
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "chat_room_id", name="uq_notification_settings_user_chat_room"),
    )
    op.create_index("ix_notification_settings_user_id", "notification_settings", ["user_id"], unique=False)
    op.create_index("ix_notification_settings_chat_room_id", "notification_settings", ["chat_room_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_settings_chat_room_id", table_name="notification_settings")
    op.drop_index("ix_notification_settings_user_id", table_name="notification_settings")
    op.drop_table("notification_settings")
