"""
Adapters layer - Social-network API and in-memory backends.
"""

from .memory_store import InMemoryMeetingStore, InMemoryNotificationSink, MockSlotProvider
from .mock_social_client import MockSocialClient
from .social_client import SocialApiClient

__all__ = [
    "InMemoryMeetingStore",
    "InMemoryNotificationSink",
    "MockSlotProvider",
    "MockSocialClient",
    "SocialApiClient",
]
