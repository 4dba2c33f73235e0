"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts that the
registered models match this list.
"""
ALL_TABLE_NAMES = (
    "user_devices",
    "notification_settings",
    "push_notifications",
    "notification_jobs",
)

# Tables cleared when resetting queue state (TRUNCATE).
QUEUE_TABLE_NAMES = ("notification_jobs",)
