# ar_engine/ar_processor.py
"""
Local AR pipeline: camera frames in, video-overlaid frames out.
Orchestrates detection, tracking and overlay rendering for a camera loop.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, asdict, field
from typing import Any, Callable, Dict, Optional

import cv2
import numpy as np

from .detector import ARDetector, MatchResult, TargetFeatures
from .tracker import TargetTracker, TrackingState
from .video_overlay import VideoOverlayEngine
from ..utils.video_frames import LoopingVideo

logger = logging.getLogger(__name__)


@dataclass
class ARConfig:
    """AR processing configuration"""
    # Detection settings
    max_features: int = 500
    max_match_distance: int = 50
    min_good_matches: int = 10
    ransac_threshold: float = 5.0
    min_corner_confidence: float = 0.3

    # Tracking settings
    smoothing: float = 0.6
    lock_confidence: float = 0.5
    lock_frames: int = 3
    lost_frames: int = 5

    # Overlay settings
    overlay_opacity: float = 1.0
    overlay_when_locked_only: bool = True

    # Camera settings
    camera_width: int = 1280
    camera_height: int = 720
    target_fps: int = 30

    # Debug settings
    show_debug_info: bool = False


@dataclass
class ARProcessingResult:
    """Result from AR frame processing"""
    success: bool
    output_frame: Optional[np.ndarray]
    detections: Dict[str, MatchResult] = field(default_factory=dict)
    tracking: Optional[TrackingState] = None
    processing_time: float = 0.0
    performance_metrics: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None


class ARProcessor:
    """Main AR processing pipeline"""

    def __init__(self, config: ARConfig = None):
        self.config = config or ARConfig()
        self.detector, self.tracker = self._build_components(self.config)

        self.overlay_engine = VideoOverlayEngine()
        self.video_sources: Dict[str, LoopingVideo] = {}

        # Processing state
        self.is_processing = False
        self.processing_thread = None
        self.output_callback = None

        self.processing_stats = {
            'frames_processed': 0,
            'frames_with_detection': 0,
            'frames_overlaid': 0,
            'total_processing_time': 0.0,
        }

        logger.info(f"AR Processor initialized ({self.config.max_features} ORB features)")

    @staticmethod
    def _build_components(config: ARConfig, targets: Optional[Dict[str, TargetFeatures]] = None):
        detector = ARDetector(
            n_features=config.max_features,
            max_match_distance=config.max_match_distance,
            min_good_matches=config.min_good_matches,
            ransac_threshold=config.ransac_threshold,
            min_corner_confidence=config.min_corner_confidence,
        )
        for target_id, features in (targets or {}).items():
            detector.add_target_features(target_id, features)

        tracker = TargetTracker(
            smoothing=config.smoothing,
            lock_confidence=config.lock_confidence,
            lock_frames=config.lock_frames,
            lost_frames=config.lost_frames,
        )
        return detector, tracker

    def add_target(self, target_id, image=None, features: TargetFeatures = None,
                   video_region=None, video_path: str = None) -> int:
        """
        Register a target from an image or precomputed features

        Returns:
            Keypoint count of the target
        """
        target_id = str(target_id)
        if features is not None:
            self.detector.add_target_features(target_id, features)
            count = features.feature_count
        elif image is not None:
            count = self.detector.add_target(target_id, image, video_region=video_region)
        else:
            raise ValueError("Either image or features is required")

        if video_path:
            self.set_video_source(target_id, video_path)
        return count

    def set_video_source(self, target_id, video_path: str) -> bool:
        """Attach a looping video to a target"""
        target_id = str(target_id)
        try:
            source = LoopingVideo(video_path)
        except ValueError as e:
            logger.error(f"Failed to set video source: {str(e)}")
            return False

        previous = self.video_sources.pop(target_id, None)
        if previous is not None:
            previous.release()
        self.video_sources[target_id] = source
        logger.info(f"Video source set for target {target_id}: {video_path}")
        return True

    def process_single_frame(self, camera_frame: np.ndarray,
                             video_frame: np.ndarray = None) -> ARProcessingResult:
        """
        Process single AR frame

        Args:
            camera_frame: Input camera frame (BGR)
            video_frame: Frame to overlay; read from the target's video source when omitted

        Returns:
            AR processing result
        """
        start_time = time.time()

        if camera_frame is None:
            return ARProcessingResult(False, None, error='No camera frame')

        if len(self.detector) == 0:
            return ARProcessingResult(False, camera_frame, processing_time=time.time() - start_time,
                                      error='No targets registered')

        detection_start = time.time()
        detections = self.detector.detect(camera_frame)
        detection_time = time.time() - detection_start

        state = self.tracker.update(detections)

        overlay_start = time.time()
        output_frame = camera_frame.copy()
        overlaid = False
        show = state.locked or not self.config.overlay_when_locked_only
        if show and state.target_id is not None:
            if video_frame is None:
                source = self.video_sources.get(state.target_id)
                video_frame = source.read() if source else None

            corners = state.video_corners or state.corners
            if video_frame is not None and corners:
                output_frame = self.overlay_engine.apply_overlay(
                    camera_frame, video_frame, corners,
                    opacity=self.config.overlay_opacity,
                )
                overlaid = True

        if self.config.show_debug_info and state.corners:
            self.overlay_engine.draw_target_outline(output_frame, state.corners, locked=state.locked)
            cv2.putText(output_frame, f"{state.status} {state.confidence:.2f}", (20, 40),
                        cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 255, 0), 2)

        overlay_time = time.time() - overlay_start
        total_time = time.time() - start_time

        self.processing_stats['frames_processed'] += 1
        if ARDetector.best_match(detections) is not None:
            self.processing_stats['frames_with_detection'] += 1
        if overlaid:
            self.processing_stats['frames_overlaid'] += 1
        self.processing_stats['total_processing_time'] += total_time

        return ARProcessingResult(
            success=True,
            output_frame=output_frame,
            detections=detections,
            tracking=state,
            processing_time=total_time,
            performance_metrics={
                'detection_time': detection_time * 1000,
                'overlay_time': overlay_time * 1000,
                'total_time': total_time * 1000,
                'fps': 1.0 / total_time if total_time > 0 else 0,
            },
        )

    def start_camera_stream(self, camera_index: int = 0,
                            output_callback: Callable = None) -> bool:
        """Start live camera processing on a background thread"""
        if self.is_processing:
            logger.warning("AR processing already running")
            return False

        if len(self.detector) == 0:
            logger.error("No targets registered")
            return False

        self.output_callback = output_callback
        self.is_processing = True

        self.processing_thread = threading.Thread(
            target=self._camera_processing_loop,
            args=(camera_index,),
            daemon=True,
        )
        self.processing_thread.start()

        logger.info(f"Started AR camera stream (camera {camera_index})")
        return True

    def stop_processing(self):
        """Stop AR processing"""
        self.is_processing = False

        if self.processing_thread:
            self.processing_thread.join(timeout=2.0)
            self.processing_thread = None

        for source in self.video_sources.values():
            source.rewind()

        logger.info("AR processing stopped")

    def release(self):
        self.stop_processing()
        for source in self.video_sources.values():
            source.release()
        self.video_sources.clear()

    def _camera_processing_loop(self, camera_index: int):
        cap = cv2.VideoCapture(camera_index)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.camera_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.camera_height)

        try:
            while self.is_processing:
                ret_cam, camera_frame = cap.read()
                if not ret_cam:
                    logger.error("Failed to read camera frame")
                    break

                result = self.process_single_frame(camera_frame)

                if self.output_callback and result.success:
                    self.output_callback(result)

                # Adaptive FPS control
                target_frame_time = 1.0 / self.config.target_fps
                if result.processing_time < target_frame_time:
                    time.sleep(target_frame_time - result.processing_time)
        finally:
            cap.release()
            self.is_processing = False

    def get_processing_stats(self) -> Dict[str, Any]:
        frames_processed = self.processing_stats['frames_processed']
        detected = self.processing_stats['frames_with_detection']
        total_time = self.processing_stats['total_processing_time']

        return {
            'processing': {
                'frames_processed': frames_processed,
                'frames_with_detection': detected,
                'frames_overlaid': self.processing_stats['frames_overlaid'],
                'detection_rate_percent': (detected / frames_processed * 100) if frames_processed > 0 else 0,
                'average_fps': frames_processed / total_time if total_time > 0 else 0,
                'total_processing_time': total_time,
            },
            'detector': self.detector.get_performance_report(),
            'tracking': self.tracker.state.to_dict(),
            'config': asdict(self.config),
        }

    def save_configuration(self, filepath: str):
        """Save current configuration to a JSON file"""
        with open(filepath, 'w') as f:
            json.dump(asdict(self.config), f, indent=2)
        logger.info(f"Configuration saved to {filepath}")

    def load_configuration(self, filepath: str) -> bool:
        """Load configuration from a JSON file, keeping registered targets"""
        try:
            with open(filepath, 'r') as f:
                config_dict = json.load(f)
            config = ARConfig(**config_dict)
            detector, tracker = self._build_components(config, targets=self.detector.targets)
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load configuration: {str(e)}")
            return False

        self.config = config
        self.detector = detector
        self.tracker = tracker
        logger.info(f"Configuration loaded from {filepath}")
        return True
