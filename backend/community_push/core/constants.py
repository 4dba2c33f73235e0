"""
Centralized constants for delivery, topics, reminders and the work queue.

Change job names, tiers or limits here instead of scattering literals across services.
Environment-specific values (credentials, URLs, DISABLE_TIMERS) live in config.settings.
"""
from datetime import timedelta

# Work queue job names (must match the names the worker dispatches on)
JOB_SEND_NOTIFICATION = "send-notification"
JOB_ADD_TO_TOPIC = "add-to-topic"
JOB_REMOVE_FROM_TOPIC = "remove-from-topic"
JOB_ADJUST_REMINDER = "adjust-reminder"
JOB_NAMES = (JOB_SEND_NOTIFICATION, JOB_ADD_TO_TOPIC, JOB_REMOVE_FROM_TOPIC, JOB_ADJUST_REMINDER)

# Provider error codes that mean the token will never work again; those tokens get nulled
INVALID_TOKEN_ERROR_CODES = frozenset(
    {
        "messaging/mismatched-credential",
        "messaging/invalid-argument",
        "messaging/registration-token-not-registered",
    }
)

# Topic names: f"{TOPIC_NAMESPACE}-{env}__{community_id}"
TOPIC_NAMESPACE = "post-created"

# Bulk topic purge reads a single page of communities. Communities beyond this page are
# not purged (known scaling boundary).
TOPIC_PURGE_PAGE_SIZE = 100

# Reminder tiers, largest first. A reminder fires this long before the speaker slot ends.
REMINDER_TIERS: tuple[timedelta, ...] = (
    timedelta(hours=12),
    timedelta(hours=6),
    timedelta(hours=1),
)

# Scheduler job id prefixes; one near-term and one overflow timer per community
REMINDER_TIMER_PREFIX = "reminder"
REMINDER_OVERFLOW_TIMER_PREFIX = "reminder-timer-greater-than-limit"

# History / queue payloads are stored as JSON text; cap error text stored on failed jobs
JOB_ERROR_MAX_CHARS = 2000
