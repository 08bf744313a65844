"""
Session layer: development stand-ins for the AR session collaborator.
"""

from .replay import PlaneRayCaster, ReplaySession, camera_looking_down

__all__ = [
    "PlaneRayCaster",
    "ReplaySession",
    "camera_looking_down",
]
