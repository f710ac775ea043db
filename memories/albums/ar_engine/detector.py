# ar_engine/detector.py
"""
Album page detection using OpenCV ORB features
Handles target registration, descriptor matching, and homography estimation
"""

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DESCRIPTOR_SIZE = 32  # ORB descriptors are 32 bytes

Point = Tuple[float, float]


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert a BGR, BGRA or already single-channel image to grayscale"""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def project_points(homography: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Apply a homography to an (N, 2) array of points"""
    src = np.float32(points).reshape(-1, 1, 2)
    return cv2.perspectiveTransform(src, homography).reshape(-1, 2)


def is_plausible_quad(quad: np.ndarray, min_area: float = 100.0) -> bool:
    """A projected page outline must be finite, convex and not collapsed"""
    if quad.shape != (4, 2) or not np.all(np.isfinite(quad)):
        return False
    contour = np.float32(quad).reshape(-1, 1, 2)
    if not cv2.isContourConvex(contour):
        return False
    return cv2.contourArea(contour) >= min_area


def preserves_orientation(quad: np.ndarray) -> bool:
    """Clockwise in image coordinates, i.e. the page is not seen mirrored"""
    x, y = quad[:, 0], quad[:, 1]
    signed_area = float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))
    return signed_area > 0


@dataclass
class TargetFeatures:
    """ORB features of a registered target image"""
    width: int
    height: int
    keypoints: List[Dict[str, float]]
    descriptors: Optional[np.ndarray]
    video_region: Optional[List[float]] = None

    @property
    def feature_count(self) -> int:
        return len(self.keypoints)

    @property
    def points(self) -> np.ndarray:
        return np.float32([[kp['x'], kp['y']] for kp in self.keypoints]).reshape(-1, 2)

    def corner_points(self) -> np.ndarray:
        w, h = self.width, self.height
        return np.float32([[0, 0], [w, 0], [w, h], [0, h]])

    def video_region_points(self) -> Optional[np.ndarray]:
        if not self.video_region:
            return None
        x0, y0, x1, y1 = self.video_region
        w, h = self.width, self.height
        return np.float32([[x0 * w, y0 * h], [x1 * w, y0 * h],
                           [x1 * w, y1 * h], [x0 * w, y1 * h]])

    def to_dict(self) -> Dict:
        """JSON-safe representation for storing on the album page record"""
        has_descriptors = self.descriptors is not None and len(self.descriptors) > 0
        return {
            'width': int(self.width),
            'height': int(self.height),
            'keypoints': self.keypoints,
            'descriptors': (base64.b64encode(self.descriptors.tobytes()).decode('ascii')
                            if has_descriptors else ''),
            'feature_count': self.feature_count,
            'video_region': self.video_region,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'TargetFeatures':
        for required in ('width', 'height', 'keypoints', 'descriptors'):
            if required not in data:
                raise ValueError(f"Missing field in target data: {required}")

        raw = base64.b64decode(data['descriptors']) if data['descriptors'] else b''
        descriptors = None
        if raw:
            descriptors = np.frombuffer(raw, dtype=np.uint8).reshape(-1, DESCRIPTOR_SIZE)
            if len(descriptors) != len(data['keypoints']):
                raise ValueError(
                    f"Descriptor count {len(descriptors)} does not match "
                    f"keypoint count {len(data['keypoints'])}"
                )

        return cls(
            width=int(data['width']),
            height=int(data['height']),
            keypoints=list(data['keypoints']),
            descriptors=descriptors,
            video_region=data.get('video_region'),
        )


@dataclass
class MatchResult:
    """Detection of one target in one camera frame"""
    target_id: str
    confidence: float
    homography: Optional[np.ndarray]
    inliers: int
    good_matches: int
    corners: List[Point] = field(default_factory=list)
    video_corners: List[Point] = field(default_factory=list)
    detection_time: float = 0.0

    @property
    def detected(self) -> bool:
        return len(self.corners) == 4

    def to_dict(self) -> Dict:
        return {
            'target_id': self.target_id,
            'detected': self.detected,
            'confidence': round(float(self.confidence), 4),
            'inliers': self.inliers,
            'good_matches': self.good_matches,
            'homography': self.homography.tolist() if self.homography is not None else None,
            'corners': [{'x': float(x), 'y': float(y)} for x, y in self.corners],
            'video_corners': [{'x': float(x), 'y': float(y)} for x, y in self.video_corners],
            'detection_time': self.detection_time,
        }


class ARDetector:
    """Recognise printed album pages in camera frames"""

    def __init__(self,
                 n_features=500,
                 scale_factor=1.2,
                 n_levels=8,
                 edge_threshold=31,
                 first_level=0,
                 wta_k=2,
                 patch_size=31,
                 fast_threshold=20,
                 max_match_distance=50,
                 min_good_matches=10,
                 ransac_threshold=5.0,
                 min_corner_confidence=0.3):
        """
        Initialize detector

        Args:
            n_features: Maximum ORB keypoints per image
            max_match_distance: Hamming distance below which a match is good
            min_good_matches: Good matches required before a homography is tried
            ransac_threshold: RANSAC reprojection threshold in pixels
            min_corner_confidence: Inlier ratio required to report corners
        """
        self.n_features = n_features
        self.max_match_distance = max_match_distance
        self.min_good_matches = min_good_matches
        self.ransac_threshold = ransac_threshold
        self.min_corner_confidence = min_corner_confidence

        self.orb = cv2.ORB_create(
            nfeatures=n_features,
            scaleFactor=scale_factor,
            nlevels=n_levels,
            edgeThreshold=edge_threshold,
            firstLevel=first_level,
            WTA_K=wta_k,
            scoreType=cv2.ORB_HARRIS_SCORE,
            patchSize=patch_size,
            fastThreshold=fast_threshold,
        )
        self.matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=True)

        self._targets: Dict[str, TargetFeatures] = {}

        self.performance_stats = {
            'total_frames': 0,
            'frames_with_detection': 0,
            'average_time': 0.0,
        }

    def __len__(self):
        return len(self._targets)

    def __contains__(self, target_id):
        return str(target_id) in self._targets

    @property
    def targets(self) -> Dict[str, TargetFeatures]:
        return dict(self._targets)

    def extract_features(self, image: Union[np.ndarray, str],
                         video_region: Optional[List[float]] = None) -> TargetFeatures:
        """
        Detect ORB features in a target image

        Args:
            image: BGR/BGRA/gray array, or a path to an image file
            video_region: Normalised [x0, y0, x1, y1] box the video covers

        Returns:
            TargetFeatures for the image
        """
        if isinstance(image, str):
            path = image
            image = cv2.imread(path)
            if image is None:
                raise ValueError(f"Could not load image: {path}")

        if image is None or image.size == 0:
            raise ValueError("Empty target image")

        gray = to_gray(image)
        keypoints, descriptors = self.orb.detectAndCompute(gray, None)

        kp_data = []
        for kp in keypoints:
            kp_data.append({
                'x': float(kp.pt[0]),
                'y': float(kp.pt[1]),
                'angle': float(kp.angle) if kp.angle >= 0 else 0.0,
                'size': float(kp.size),
                'response': float(kp.response)
            })

        return TargetFeatures(
            width=gray.shape[1],
            height=gray.shape[0],
            keypoints=kp_data,
            descriptors=descriptors,
            video_region=list(video_region) if video_region else None,
        )

    def add_target(self, target_id, image, video_region=None) -> int:
        """Register a target image; returns its keypoint count"""
        features = self.extract_features(image, video_region=video_region)
        self.add_target_features(target_id, features)
        return features.feature_count

    def add_target_features(self, target_id, features: TargetFeatures):
        """Register precomputed target features"""
        target_id = str(target_id)
        if features.feature_count < self.min_good_matches:
            logger.warning(f"Target {target_id} has only {features.feature_count} keypoints, "
                           f"it may never be detected")
        self._targets[target_id] = features
        logger.info(f"Target {target_id} added with {features.feature_count} keypoints")

    def remove_target(self, target_id) -> bool:
        return self._targets.pop(str(target_id), None) is not None

    def clear(self):
        """Forget every registered target"""
        self._targets.clear()

    def detect(self, frame: np.ndarray) -> Dict[str, MatchResult]:
        """
        Match a camera frame against every registered target

        Args:
            frame: Camera frame (BGR, BGRA or gray)

        Returns:
            Mapping of target id to MatchResult for targets with enough good matches
        """
        start_time = time.time()
        results: Dict[str, MatchResult] = {}

        if frame is None or frame.size == 0 or not self._targets:
            return results

        gray = to_gray(frame)
        kp_frame, des_frame = self.orb.detectAndCompute(gray, None)

        if des_frame is None or len(kp_frame) == 0:
            self._update_performance_stats(False, time.time() - start_time)
            return results

        frame_pts = np.float32([kp.pt for kp in kp_frame])

        for target_id, target in self._targets.items():
            result = self._match_target(target_id, target, frame_pts, des_frame)
            if result is not None:
                result.detection_time = time.time() - start_time
                results[target_id] = result

        detected = any(r.detected for r in results.values())
        self._update_performance_stats(detected, time.time() - start_time)
        return results

    def _match_target(self, target_id: str, target: TargetFeatures,
                      frame_pts: np.ndarray, des_frame: np.ndarray) -> Optional[MatchResult]:
        if target.descriptors is None or len(target.descriptors) == 0:
            return None

        # Query is the frame, train is the target
        matches = self.matcher.match(des_frame, target.descriptors)
        good_matches = [m for m in matches if m.distance < self.max_match_distance]

        if len(good_matches) < self.min_good_matches:
            return None

        target_pts = target.points
        src_pts = np.float32([target_pts[m.trainIdx] for m in good_matches]).reshape(-1, 1, 2)
        dst_pts = np.float32([frame_pts[m.queryIdx] for m in good_matches]).reshape(-1, 1, 2)

        homography, mask = cv2.findHomography(src_pts, dst_pts, cv2.RANSAC, self.ransac_threshold)

        if homography is None or homography.shape != (3, 3):
            return MatchResult(target_id, 0.0, None, 0, len(good_matches))

        inliers = int(mask.sum()) if mask is not None else 0
        confidence = inliers / len(good_matches)

        corners: List[Point] = []
        video_corners: List[Point] = []
        if confidence > self.min_corner_confidence:
            quad = project_points(homography, target.corner_points())
            if is_plausible_quad(quad) and preserves_orientation(quad):
                corners = [(float(x), float(y)) for x, y in quad]
                region = target.video_region_points()
                if region is not None:
                    video_quad = project_points(homography, region)
                    video_corners = [(float(x), float(y)) for x, y in video_quad]

        return MatchResult(
            target_id=target_id,
            confidence=confidence,
            homography=homography,
            inliers=inliers,
            good_matches=len(good_matches),
            corners=corners,
            video_corners=video_corners,
        )

    @staticmethod
    def best_match(results: Dict[str, MatchResult]) -> Optional[MatchResult]:
        """Highest-confidence detected result, if any"""
        detected = [r for r in results.values() if r.detected]
        if not detected:
            return None
        return max(detected, key=lambda r: (r.confidence, r.inliers))

    @staticmethod
    def calculate_quality_score(features: TargetFeatures, image_shape: Optional[Tuple[int, int]] = None) -> float:
        """
        Printability score based on feature count, strength and distribution

        Args:
            features: Extracted target features
            image_shape: (height, width) for coverage; defaults to the target size
        """
        if features.feature_count == 0:
            return 0.0

        # Feature count score (0-40 points)
        count_score = min(40.0, features.feature_count / 500 * 40)

        # Feature strength score (0-30 points)
        avg_response = float(np.mean([kp['response'] for kp in features.keypoints]))
        strength_score = min(30.0, avg_response * 1000)

        # Spatial distribution score (0-30 points)
        if features.feature_count >= 4:
            hull = cv2.convexHull(features.points)
            hull_area = cv2.contourArea(hull)
            height, width = image_shape[:2] if image_shape else (features.height, features.width)
            image_area = width * height
            distribution_score = min(30.0, (hull_area / image_area) * 60)
        else:
            distribution_score = 0.0

        total_score = (count_score + strength_score + distribution_score) / 100
        return min(1.0, total_score)

    def _update_performance_stats(self, detected: bool, detection_time: float):
        self.performance_stats['total_frames'] += 1
        if detected:
            self.performance_stats['frames_with_detection'] += 1

        total = self.performance_stats['total_frames']
        self.performance_stats['average_time'] = (
            (self.performance_stats['average_time'] * (total - 1) + detection_time) / total
        )

    def get_performance_report(self) -> Dict:
        total = self.performance_stats['total_frames']
        detected = self.performance_stats['frames_with_detection']
        return {
            'targets': len(self._targets),
            'total_frames': total,
            'frames_with_detection': detected,
            'detection_rate': (detected / total * 100) if total > 0 else 0,
            'average_detection_time': self.performance_stats['average_time'],
            'settings': {
                'n_features': self.n_features,
                'max_match_distance': self.max_match_distance,
                'min_good_matches': self.min_good_matches,
                'ransac_threshold': self.ransac_threshold,
                'min_corner_confidence': self.min_corner_confidence,
            }
        }
