"""
Per-frame processing: decode, resolve, and apply to the placement cache.

compute() is free of shared state and can run on a worker thread; apply()
mutates the placement cache and must stay on a single context.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from detection.base import ShapeMismatch
from detection.decoder import DetectionDecoder
from inference.backend import InferenceBackend, RayCaster
from models.config import Config
from models.detection import RawDetection
from models.frame import FrameInput, FrameResult, TrackingState
from models.marker import RenderCommand
from placement.cache import PlacementCache, PlacementUpdate
from pose.resolver import PoseResolver


class FrameProcessor:
    """
    Runs the detection → pose → placement flow for single frames.

    Every failure inside a frame degrades to "no results this frame"; nothing
    here raises into the caller.

    Example:
        processor = create_processor_from_config(Config())
        commands = processor.process_frame(output_tensor, ray_cast)
    """

    def __init__(
        self,
        decoder: DetectionDecoder,
        resolver: PoseResolver,
        cache: PlacementCache,
        inference: Optional[InferenceBackend] = None,
    ):
        self.decoder = decoder
        self.resolver = resolver
        self.cache = cache
        self.inference = inference
        self.last_update: Optional[PlacementUpdate] = None
        self.last_result: Optional[FrameResult] = None

    def run_inference(self, frame: FrameInput) -> Any:
        """Run the model on the frame's image tensor; None on failure."""
        if frame.image_tensor is None or self.inference is None:
            return None
        shape = frame.image_shape
        if shape is None:
            shape = getattr(frame.image_tensor, "shape", None)
        try:
            return self.inference.infer(frame.image_tensor, shape)
        except Exception as e:
            logging.warning(f"Inference failed on frame {frame.frame_index}: {e}")
            return None

    def decode(self, output: Any, shape_hint: Optional[Sequence[int]] = None) -> List[RawDetection]:
        if output is None:
            return []
        try:
            return self.decoder.decode(output, shape_hint)
        except ShapeMismatch as e:
            logging.warning(f"Dropping frame output: {e}")
            return []

    def compute(self, frame: FrameInput) -> Optional[FrameResult]:
        """
        Decode and resolve one frame without touching the cache.

        Returns:
            FrameResult, or None when the camera is not tracking.
        """
        if not frame.is_tracking:
            return None

        output, shape = frame.output_tensor, frame.output_shape
        if output is None:
            output, shape = self.run_inference(frame), None
        return self.resolve_output(frame, output, shape)

    def resolve_output(
        self,
        frame: FrameInput,
        output: Any,
        shape_hint: Optional[Sequence[int]] = None,
    ) -> FrameResult:
        """Decode an already computed model output and resolve its poses."""
        detections = self.decode(output, shape_hint)
        try:
            poses = self.resolver.resolve(detections, frame.ray_cast) if detections else []
        except Exception as e:
            logging.warning(f"Pose resolution failed on frame {frame.frame_index}: {e}")
            poses = []

        return FrameResult(
            frame_index=frame.frame_index,
            detections=detections,
            poses=poses,
            timestamp=frame.timestamp,
        )

    def apply(self, result: FrameResult) -> List[RenderCommand]:
        """Update the placement cache and return the render snapshot."""
        try:
            self.last_update = self.cache.update(result.poses)
            self.last_result = result
        except ValueError as e:
            logging.warning(f"Skipping cache update for frame {result.frame_index}: {e}")
            return []
        return self.cache.render_commands()

    def process_frame(
        self,
        tensor: Any,
        ray_cast: RayCaster,
        tracking_state: TrackingState = TrackingState.TRACKING,
        shape_hint: Optional[Sequence[int]] = None,
        frame_index: int = 0,
    ) -> List[RenderCommand]:
        """
        Synchronous compute + apply for one raw output tensor.

        Returns:
            Render commands for every marker, or [] when the frame was skipped.
        """
        frame = FrameInput(
            ray_cast=ray_cast,
            output_tensor=tensor,
            output_shape=shape_hint,
            tracking_state=tracking_state,
            frame_index=frame_index,
        )
        result = self.compute(frame)
        if result is None:
            logging.debug(f"Frame {frame_index} skipped: camera not tracking")
            return []
        return self.apply(result)

    def reset(self) -> None:
        self.cache.clear()
        self.last_update = None
        self.last_result = None


def create_processor_from_config(
    config: Config,
    inference: Optional[InferenceBackend] = None,
) -> FrameProcessor:
    """
    Factory function to build a FrameProcessor from a typed Config.
    """
    return FrameProcessor(
        decoder=DetectionDecoder(config.detection),
        resolver=PoseResolver(config.pose),
        cache=PlacementCache(reuse_radius=config.placement.reuse_radius),
        inference=inference,
    )
