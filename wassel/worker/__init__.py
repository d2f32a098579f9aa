"""
Worker context: runtime caching, control messages and push notifications.

Everything here runs independently of any page and talks to pages only
through serializable messages.
"""

# Re-export the primary building blocks for easy access.
from .cache_manager import CachingTransport, RuntimeCacheManager  # noqa: F401
from .cache_rules import CacheRule, Strategy, default_rules  # noqa: F401
from .cache_storage import MemoryCacheStorage, RedisCacheStorage  # noqa: F401
from .lifecycle import Lifecycle  # noqa: F401
from .push_bridge import PushBridge, build_deep_link  # noqa: F401
