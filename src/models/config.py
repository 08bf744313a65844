"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DecoderConfig:
    """Detection decoder configuration."""
    objectness_threshold: float = 0.5
    score_threshold: float = 0.5
    iou_threshold: float = 0.4
    num_classes: Optional[int] = None
    layout: str = "auto"
    head: str = "auto"
    classes: Optional[List[int]] = None
    max_detections: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DecoderConfig":
        """Adapter: Create from config dictionary."""
        # A single conf_threshold sets both thresholds unless they are given explicitly.
        conf = d.get("conf_threshold", 0.5)
        return cls(
            objectness_threshold=d.get("objectness_threshold", conf),
            score_threshold=d.get("score_threshold", conf),
            iou_threshold=d.get("iou_threshold", 0.4),
            num_classes=d.get("num_classes"),
            layout=d.get("layout", "auto"),
            head=d.get("head", "auto"),
            classes=d.get("classes"),
            max_detections=d.get("max_detections"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "objectness_threshold": self.objectness_threshold,
            "score_threshold": self.score_threshold,
            "iou_threshold": self.iou_threshold,
            "layout": self.layout,
            "head": self.head,
        }
        if self.num_classes is not None:
            d["num_classes"] = self.num_classes
        if self.classes is not None:
            d["classes"] = self.classes
        if self.max_detections is not None:
            d["max_detections"] = self.max_detections
        return d


@dataclass
class PoseConfig:
    """Pose resolver configuration."""
    confidence_threshold: float = 0.5
    top_offset_fraction: float = 0.2
    right_offset_fraction: float = 0.2
    model_input_size: List[int] = field(default_factory=lambda: [640, 640])
    screen_size: Optional[List[int]] = None
    marker_scale: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0])
    surface_offset_cm: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PoseConfig":
        size = d.get("model_input_size", [640, 640])
        if isinstance(size, (int, float)):
            size = [int(size), int(size)]
        return cls(
            confidence_threshold=d.get("confidence_threshold", 0.5),
            top_offset_fraction=d.get("top_offset_fraction", 0.2),
            right_offset_fraction=d.get("right_offset_fraction", 0.2),
            model_input_size=list(size),
            screen_size=d.get("screen_size"),
            marker_scale=d.get("marker_scale", [1.0, 1.0, 1.0]),
            surface_offset_cm=d.get("surface_offset_cm", 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "confidence_threshold": self.confidence_threshold,
            "top_offset_fraction": self.top_offset_fraction,
            "right_offset_fraction": self.right_offset_fraction,
            "model_input_size": self.model_input_size,
            "marker_scale": self.marker_scale,
            "surface_offset_cm": self.surface_offset_cm,
        }
        if self.screen_size is not None:
            d["screen_size"] = self.screen_size
        return d


@dataclass
class PlacementConfig:
    """Placement cache configuration."""
    reuse_radius: float = 0.25

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PlacementConfig":
        return cls(reuse_radius=d.get("reuse_radius", 0.25))

    def to_dict(self) -> Dict[str, Any]:
        return {"reuse_radius": self.reuse_radius}


@dataclass
class EngineConfig:
    """
    Threaded engine configuration.

    Attributes:
        inference_timeout_s: Max seconds to wait for inference; None = no limit.
        stats_log_interval: Seconds between status log messages.
    """
    inference_timeout_s: Optional[float] = None
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EngineConfig":
        return cls(
            inference_timeout_s=d.get("inference_timeout_s"),
            stats_log_interval=d.get("stats_log_interval", 60.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inference_timeout_s": self.inference_timeout_s,
            "stats_log_interval": self.stats_log_interval,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    detection: DecoderConfig = field(default_factory=DecoderConfig)
    pose: PoseConfig = field(default_factory=PoseConfig)
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    log_path: str = "logs/ar_placement.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            detection=DecoderConfig.from_dict(d.get("detection", {}) or {}),
            pose=PoseConfig.from_dict(d.get("pose", {}) or {}),
            placement=PlacementConfig.from_dict(d.get("placement", {}) or {}),
            engine=EngineConfig.from_dict(d.get("engine", {}) or {}),
            log_path=d.get("log_path", "logs/ar_placement.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "detection": self.detection.to_dict(),
            "pose": self.pose.to_dict(),
            "placement": self.placement.to_dict(),
            "engine": self.engine.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
