# ar_engine/video_overlay.py
import logging
from typing import Optional, Sequence

import cv2
import numpy as np

logger = logging.getLogger(__name__)

OUTLINE_DETECTING = (0, 200, 255)
OUTLINE_LOCKED = (0, 255, 0)


def _as_quad(corners) -> Optional[np.ndarray]:
    if corners is None or len(corners) != 4:
        return None
    quad = []
    for point in corners:
        if isinstance(point, dict):
            quad.append([point['x'], point['y']])
        else:
            quad.append([point[0], point[1]])
    return np.float32(quad)


class VideoOverlayEngine:
    """Warp video frames onto a detected album page"""

    def apply_overlay(self, camera_frame: np.ndarray, video_frame: np.ndarray,
                      corners: Sequence, opacity: float = 1.0,
                      draw_outline: bool = False) -> np.ndarray:
        """
        Composite a video frame into the quadrilateral given by corners

        Args:
            camera_frame: BGR camera frame
            video_frame: BGR video frame to overlay
            corners: Four points (top-left, top-right, bottom-right, bottom-left)
            opacity: Video opacity in [0, 1]
            draw_outline: Draw the quad outline on top

        Returns:
            New BGR frame; an unchanged copy when inputs are unusable
        """
        if camera_frame is None:
            raise ValueError("camera_frame is required")

        quad = _as_quad(corners)
        if video_frame is None or quad is None or video_frame.size == 0:
            return camera_frame.copy()

        try:
            frame_h, frame_w = camera_frame.shape[:2]
            video_h, video_w = video_frame.shape[:2]

            if video_frame.ndim == 2:
                video_frame = cv2.cvtColor(video_frame, cv2.COLOR_GRAY2BGR)

            video_corners = np.float32([[0, 0], [video_w, 0], [video_w, video_h], [0, video_h]])
            perspective_matrix = cv2.getPerspectiveTransform(video_corners, quad)

            warped_video = cv2.warpPerspective(video_frame, perspective_matrix, (frame_w, frame_h))

            mask = np.zeros((frame_h, frame_w), dtype=np.uint8)
            cv2.fillPoly(mask, [np.int32(np.round(quad))], 255)

            opacity = float(np.clip(opacity, 0.0, 1.0))
            if opacity >= 1.0:
                mask_inv = cv2.bitwise_not(mask)
                camera_bg = cv2.bitwise_and(camera_frame, camera_frame, mask=mask_inv)
                video_fg = cv2.bitwise_and(warped_video, warped_video, mask=mask)
                result = cv2.add(camera_bg, video_fg)
            else:
                blended = cv2.addWeighted(warped_video, opacity, camera_frame, 1.0 - opacity, 0)
                result = camera_frame.copy()
                result[mask > 0] = blended[mask > 0]

            if draw_outline:
                self.draw_target_outline(result, quad, locked=True)

            return result

        except cv2.error as e:
            logger.error(f"Video overlay failed: {str(e)}")
            return camera_frame.copy()

    def draw_target_outline(self, frame: np.ndarray, corners, locked: bool = False) -> np.ndarray:
        """Draw the detected page outline in place"""
        quad = _as_quad(corners)
        if quad is None:
            return frame
        color = OUTLINE_LOCKED if locked else OUTLINE_DETECTING
        cv2.polylines(frame, [np.int32(np.round(quad))], True, color, 2)
        return frame
