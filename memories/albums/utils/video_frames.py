# albums/utils/video_frames.py
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _open(path: PathLike) -> cv2.VideoCapture:
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        cap.release()
        raise ValueError(f"Cannot open video: {path}")
    return cap


def video_info(path: PathLike) -> Dict[str, float]:
    """Basic stream properties of a video file"""
    cap = _open(path)
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        return {
            'fps': fps,
            'frame_count': frame_count,
            'duration': frame_count / fps if fps > 0 else 0.0,
            'width': int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            'height': int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        }
    finally:
        cap.release()


def extract_frame(path: PathLike, at_seconds: Optional[float] = None) -> np.ndarray:
    """
    Grab a still frame from a video.

    Defaults to the middle of the video. Times past the end are clamped to
    the last frame. Raises ValueError when nothing can be decoded.
    """
    cap = _open(path)
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)

        index = 0
        if frame_count > 0:
            if at_seconds is None or fps <= 0:
                index = frame_count // 2
            else:
                index = int(max(0.0, at_seconds) * fps)
            index = min(index, frame_count - 1)

        if index > 0:
            cap.set(cv2.CAP_PROP_POS_FRAMES, index)

        ret, frame = cap.read()
        if not ret and index > 0:
            logger.warning(f"Seek to frame {index} failed for {path}, using first frame")
            cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = cap.read()

        if not ret or frame is None:
            raise ValueError(f"Cannot read from video: {path}")

        return frame
    finally:
        cap.release()


class LoopingVideo:
    """Sequential frame reader that rewinds when the video ends"""

    def __init__(self, path: PathLike):
        self.path = str(path)
        self.cap = _open(path)

    def read(self) -> Optional[np.ndarray]:
        ret, frame = self.cap.read()
        if not ret:
            # Loop video
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self.cap.read()
        return frame if ret else None

    def rewind(self):
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()
