"""Key-value store adapters.

Services talk to ``AbstractKeyValueStore``; ``RedisStore`` is the only
production implementation.
"""

from artistly.adapters.store.base import AbstractKeyValueStore, StoreHealth
from artistly.adapters.store.redis_store import RedisStore

__all__ = ["AbstractKeyValueStore", "RedisStore", "StoreHealth"]
