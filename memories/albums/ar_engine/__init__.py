# ar_engine/__init__.py
"""
Album page AR engine

Recognises printed album pages in camera frames with ORB features and a
RANSAC homography, smooths detections into a lock state, and composites
the page's video onto the detected region.
"""

from .detector import ARDetector, MatchResult, TargetFeatures
from .tracker import TargetTracker, TrackingState
from .video_overlay import VideoOverlayEngine
from .ar_processor import ARConfig, ARProcessingResult, ARProcessor

__all__ = [
    'ARDetector',
    'MatchResult',
    'TargetFeatures',
    'TargetTracker',
    'TrackingState',
    'VideoOverlayEngine',
    'ARConfig',
    'ARProcessingResult',
    'ARProcessor',
]
