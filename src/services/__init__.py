"""Service layer for ClipShare."""

from .collection_service import CollectionManager, CollectionRepository, share_url
from .config import AppConfig, RedisConfig

__all__ = ["AppConfig", "CollectionManager", "CollectionRepository", "RedisConfig", "share_url"]
