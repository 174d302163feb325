"""Read-through entity cache."""

from app_migrator.platform.cache.entity_cache import EntityCache, EntityIndex, EntityKind

__all__ = ["EntityCache", "EntityIndex", "EntityKind"]
