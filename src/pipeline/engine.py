"""
Pipeline engine: runs frame processing off the render thread.

Flow:
- the AR frame callback calls submit(frame)
- a worker thread runs inference, decoding and pose resolution
- the render/main context calls apply_pending() to move the result into the
  placement cache and get render commands back

At most one frame is in flight between submit() and apply_pending(). Frames
submitted while one is in flight are dropped, not queued.

With an inference timeout, a call that overruns keeps its executor thread;
frames arriving before it finishes get no detections instead of queueing
behind it.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from models.config import Config, EngineConfig
from models.frame import FrameInput, FrameResult
from models.marker import RenderCommand
from pipeline.processor import FrameProcessor, create_processor_from_config


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frames_submitted: int = 0
    frames_processed: int = 0
    frames_applied: int = 0
    frames_dropped: int = 0
    frames_skipped: int = 0
    results_discarded: int = 0
    inference_timeouts: int = 0
    inference_skipped: int = 0
    detection_count: int = 0
    pose_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


class PipelineEngine:
    """
    Single-producer frame pipeline with a worker thread.

    All cache mutations happen inside apply_pending(), clear() or shutdown(),
    serialized by one lock, so they never interleave.

    Example:
        engine = PipelineEngine(processor, EngineConfig())
        engine.start()
        # AR frame callback
        engine.submit(frame)
        # render loop
        commands = engine.apply_pending()
        ...
        engine.shutdown()
    """

    def __init__(self, processor: FrameProcessor, config: Optional[EngineConfig] = None):
        self.processor = processor
        self.config = config or EngineConfig()
        self.stats = PipelineStats()
        self._state_lock = threading.Lock()
        self._apply_lock = threading.Lock()
        self._inbox: "queue.Queue[Optional[Tuple[int, FrameInput]]]" = queue.Queue(maxsize=1)
        self._results: "queue.Queue[Tuple[int, FrameResult]]" = queue.Queue(maxsize=1)
        self._busy = False
        self._generation = 0
        self._running = False
        self._worker: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending_inference: Optional[Future] = None
        self._callbacks: List[Callable[[List[RenderCommand]], None]] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_busy(self) -> bool:
        """True while a frame is being processed or waits to be applied."""
        with self._state_lock:
            return self._busy

    def add_callback(self, callback: Callable[[List[RenderCommand]], None]) -> None:
        """
        Add a callback to be called with the render commands of each applied frame.
        """
        self._callbacks.append(callback)

    def start(self) -> None:
        """
        Start the worker thread.

        Raises:
            RuntimeError: If the worker of a previous run has not exited yet.
        """
        if self._running:
            return
        if self._worker is not None and self._worker.is_alive():
            raise RuntimeError("Previous pipeline worker is still running; cannot restart yet")
        self._drain(self._inbox)
        self._drain(self._results)
        self._pending_inference = None
        self._running = True
        self.stats = PipelineStats()
        if self.config.inference_timeout_s is not None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")
        self._worker = threading.Thread(target=self._worker_loop, name="pipeline-worker", daemon=True)
        self._worker.start()
        logging.info("Pipeline engine started")

    def submit(self, frame: FrameInput) -> bool:
        """
        Hand a frame to the worker.

        Returns:
            True if the frame was accepted; False if it was dropped because
            another frame is in flight, skipped because the camera is not
            tracking, or the engine is stopped.
        """
        with self._state_lock:
            self.stats.frames_submitted += 1
            if not self._running:
                self.stats.frames_dropped += 1
                return False
            if not frame.is_tracking:
                self.stats.frames_skipped += 1
                return False
            if self._busy:
                self.stats.frames_dropped += 1
                logging.debug(f"Frame {frame.frame_index} dropped: previous frame still in flight")
                return False
            self._busy = True
            generation = self._generation

        self._inbox.put((generation, frame))
        return True

    def apply_pending(self) -> Optional[List[RenderCommand]]:
        """
        Apply the finished frame, if any. Call from the render/main context.

        Returns:
            Render commands for all markers, or None if nothing was ready.
        """
        try:
            generation, result = self._results.get_nowait()
        except queue.Empty:
            return None

        with self._apply_lock:
            with self._state_lock:
                stale = generation != self._generation
            if stale:
                self._release(discarded=True)
                return None
            commands = self.processor.apply(result)

        with self._state_lock:
            self.stats.frames_applied += 1
            self._busy = False

        for callback in self._callbacks:
            try:
                callback(commands)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

        self._handle_periodic_tasks()
        return commands

    def clear(self) -> None:
        """Remove all markers and discard any in-flight result."""
        with self._apply_lock:
            with self._state_lock:
                self._generation += 1
            self.processor.reset()

    def shutdown(self, timeout: float = 2.0) -> None:
        """
        Stop the worker, abandon in-flight work and clear the cache.

        A result that finishes after shutdown() started is never applied.
        """
        with self._apply_lock:
            with self._state_lock:
                self._generation += 1
                was_running = self._running
                self._running = False

            if was_running:
                self._put_sentinel()
                if self._worker is not None:
                    self._worker.join(timeout=timeout)
                    if self._worker.is_alive():
                        logging.warning("Pipeline worker did not stop in time")
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
            self._pending_inference = None

            self._drain(self._results)
            with self._state_lock:
                self._busy = False
            self.processor.reset()

        logging.info(
            f"Pipeline stopped: submitted={self.stats.frames_submitted}, "
            f"applied={self.stats.frames_applied}, dropped={self.stats.frames_dropped}"
        )

    def _worker_loop(self) -> None:
        while True:
            item = self._inbox.get()
            if item is None:
                break
            generation, frame = item
            try:
                result = self._compute(frame)
            except Exception as e:
                logging.error(f"Frame {frame.frame_index} processing error: {e}")
                result = None

            with self._state_lock:
                stale = generation != self._generation or not self._running
                if result is not None:
                    self.stats.frames_processed += 1
                    self.stats.detection_count += len(result.detections)
                    self.stats.pose_count += len(result.poses)

            if stale or result is None:
                self._release(discarded=stale)
                continue
            self._results.put((generation, result))

    def _compute(self, frame: FrameInput) -> Optional[FrameResult]:
        if frame.is_tracking and frame.output_tensor is None and self._executor is not None:
            return self.processor.resolve_output(frame, self._infer_with_timeout(frame))
        return self.processor.compute(frame)

    def _infer_with_timeout(self, frame: FrameInput) -> Any:
        # A timed-out call keeps running on the executor; never queue behind it
        pending = self._pending_inference
        if pending is not None and not pending.done():
            with self._state_lock:
                self.stats.inference_skipped += 1
            logging.debug(f"Frame {frame.frame_index}: previous inference still running; no detections this frame")
            return None

        future = self._executor.submit(self.processor.run_inference, frame)
        self._pending_inference = future
        try:
            result = future.result(timeout=self.config.inference_timeout_s)
            self._pending_inference = None
            return result
        except FutureTimeoutError:
            with self._state_lock:
                self.stats.inference_timeouts += 1
            logging.warning(
                f"Inference timed out after {self.config.inference_timeout_s}s "
                f"on frame {frame.frame_index}; no detections this frame"
            )
            return None

    def _release(self, discarded: bool) -> None:
        with self._state_lock:
            self._busy = False
            if discarded:
                self.stats.results_discarded += 1

    def _put_sentinel(self) -> None:
        self._drain(self._inbox)
        try:
            self._inbox.put_nowait(None)
        except queue.Full:
            pass

    @staticmethod
    def _drain(q: queue.Queue) -> None:
        while True:
            try:
                q.get_nowait()
            except queue.Empty:
                return

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Pipeline stats: applied={self.stats.frames_applied}, "
                f"dropped={self.stats.frames_dropped}, skipped={self.stats.frames_skipped}, "
                f"detections={self.stats.detection_count}, poses={self.stats.pose_count}, "
                f"markers={len(self.processor.cache)}"
            )
            self.stats.last_stats_log_time = now


def create_engine_from_config(config: Config, inference=None) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from a typed Config.

    Args:
        config: Full application config.
        inference: Optional InferenceBackend for frames that carry image tensors.
    """
    processor = create_processor_from_config(config, inference=inference)
    return PipelineEngine(processor, config.engine)
