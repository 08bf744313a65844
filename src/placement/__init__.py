from .cache import PlacementCache, PlacementUpdate

__all__ = ["PlacementCache", "PlacementUpdate"]
