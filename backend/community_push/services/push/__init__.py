"""
Push delivery core: notification kinds, preference gate, payload builders, the delivery
engine and the topic manager. Adapters (FCM, SQL, community API) plug in through the
protocols in base.
"""
from community_push.services.push.delivery import DeliveryEngine
from community_push.services.push.kinds import PushNotificationKind
from community_push.services.push.registry import get_handler, list_kinds
from community_push.services.push.topics import TopicManager, make_topic
from community_push.services.push.types import ProviderResult, PushMessage

__all__ = [
    "DeliveryEngine",
    "ProviderResult",
    "PushMessage",
    "PushNotificationKind",
    "TopicManager",
    "get_handler",
    "list_kinds",
    "make_topic",
]
