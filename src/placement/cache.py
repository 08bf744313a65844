"""
Placement cache: persistent markers reused across frames.

This module implements a simple nearest-neighbor reuse scheme. Each update
hides every marker, then lets each incoming pose claim the closest unclaimed
marker within the reuse radius or create a new one.

Markers are never removed by update(); only clear() empties the cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models.marker import PlacedMarker, RenderCommand
from models.pose import Pose3D


@dataclass
class PlacementUpdate:
    """Markers touched by one update() call."""
    reused: List[PlacedMarker] = field(default_factory=list)
    created: List[PlacedMarker] = field(default_factory=list)


class PlacementCache:
    """
    Owns marker state for one AR session.

    Not thread-safe: all calls must come from the same context (the
    pipeline's apply step).
    """

    def __init__(self, reuse_radius: float = 0.25):
        """
        Initialize the placement cache.

        Args:
            reuse_radius: Max distance in meters at which an incoming pose
                          updates an existing marker instead of creating one.
        """
        self.reuse_radius = reuse_radius
        self._markers: Dict[int, PlacedMarker] = {}
        self.next_marker_id = 0

        logging.info("Placement cache initialized")

    def __len__(self) -> int:
        return len(self._markers)

    @property
    def markers(self) -> List[PlacedMarker]:
        """All markers in creation order."""
        return list(self._markers.values())

    def get_marker(self, marker_id: int) -> Optional[PlacedMarker]:
        return self._markers.get(marker_id)

    def visible_markers(self) -> List[PlacedMarker]:
        return [m for m in self._markers.values() if m.visible]

    def update(self, poses: List[Pose3D], reuse_radius: Optional[float] = None) -> PlacementUpdate:
        """
        Apply one frame's poses.

        Args:
            poses: Resolved poses, in detection order.
            reuse_radius: Overrides the configured radius for this call.

        Returns:
            PlacementUpdate listing reused and newly created markers.

        Raises:
            ValueError: If a pose contains non-finite values.
        """
        radius = self.reuse_radius if reuse_radius is None else reuse_radius
        for pose in poses:
            if not pose.is_finite():
                raise ValueError(f"Pose contains non-finite values: {pose}")

        for marker in self._markers.values():
            marker.visible = False

        result = PlacementUpdate()
        claimed = set()

        for pose in poses:
            marker = self._nearest_unclaimed(pose, claimed)
            if marker is not None and marker.distance_to(pose.position_array) < radius:
                marker.apply_pose(pose)
                result.reused.append(marker)
            else:
                marker = self._create_marker(pose)
                result.created.append(marker)
            claimed.add(marker.marker_id)

        if result.created:
            logging.debug(
                f"[PLACE] reused={[m.marker_id for m in result.reused]} "
                f"created={[m.marker_id for m in result.created]} total={len(self._markers)}"
            )
        return result

    def clear(self) -> None:
        """Remove every marker."""
        count = len(self._markers)
        self._markers.clear()
        logging.info(f"Placement cache cleared ({count} markers removed)")

    def render_commands(self) -> List[RenderCommand]:
        """Snapshot of all markers for the renderer."""
        return [RenderCommand.from_marker(m) for m in self._markers.values()]

    def _nearest_unclaimed(self, pose: Pose3D, claimed: set) -> Optional[PlacedMarker]:
        """Closest marker not yet claimed this update; ties go to the earliest marker."""
        best: Optional[PlacedMarker] = None
        best_distance = float("inf")
        target = pose.position_array

        for marker in self._markers.values():
            if marker.marker_id in claimed:
                continue
            d = marker.distance_to(target)
            if d < best_distance:
                best = marker
                best_distance = d

        return best

    def _create_marker(self, pose: Pose3D) -> PlacedMarker:
        marker = PlacedMarker.from_pose(self.next_marker_id, pose)
        self._markers[marker.marker_id] = marker
        self.next_marker_id += 1
        return marker
