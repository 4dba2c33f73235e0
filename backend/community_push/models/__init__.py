from community_push.models.notification_job import JobStatus, NotificationJob
from community_push.models.notification_setting import PREFERENCE_FIELDS, NotificationSetting
from community_push.models.push_notification import PushNotification
from community_push.models.user_device import UserDevice

__all__ = [
    "JobStatus",
    "NotificationJob",
    "NotificationSetting",
    "PREFERENCE_FIELDS",
    "PushNotification",
    "UserDevice",
]
