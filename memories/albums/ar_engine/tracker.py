# ar_engine/tracker.py
"""
Frame-to-frame smoothing of detector output and target lock state
"""

import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Optional

from .detector import ARDetector, MatchResult

logger = logging.getLogger(__name__)

IDLE = 'idle'
DETECTING = 'detecting'
LOCKED = 'locked'


@dataclass
class TrackingState:
    """Smoothed view of the currently tracked target"""
    status: str = IDLE
    target_id: Optional[str] = None
    confidence: float = 0.0
    corners: List[List[float]] = field(default_factory=list)
    video_corners: List[List[float]] = field(default_factory=list)
    frames_seen: int = 0
    frames_missed: int = 0

    @property
    def locked(self) -> bool:
        return self.status == LOCKED

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['locked'] = self.locked
        return data


class TargetTracker:
    """Exponential confidence smoothing with lock/unlock hysteresis"""

    def __init__(self, smoothing=0.6, lock_confidence=0.5, lock_frames=3, lost_frames=5):
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        self.smoothing = smoothing
        self.lock_confidence = lock_confidence
        self.lock_frames = lock_frames
        self.lost_frames = lost_frames
        self.state = TrackingState()

    def reset(self):
        self.state = TrackingState()

    def update(self, results: Dict[str, MatchResult]) -> TrackingState:
        """Fold one frame of detector output into the tracking state"""
        best = ARDetector.best_match(results)
        if best is None:
            return self._miss()
        return self._hit(best)

    def _hit(self, result: MatchResult) -> TrackingState:
        state = self.state
        corners = [list(p) for p in result.corners]
        video_corners = [list(p) for p in result.video_corners]

        if state.target_id != result.target_id:
            if state.target_id is not None:
                logger.info(f"Tracked target switched {state.target_id} -> {result.target_id}")
            state = TrackingState(
                status=DETECTING,
                target_id=result.target_id,
                confidence=result.confidence,
                corners=corners,
                video_corners=video_corners,
                frames_seen=1,
            )
        else:
            a = self.smoothing
            state.confidence = a * state.confidence + (1 - a) * result.confidence
            state.corners = self._blend(state.corners, corners)
            state.video_corners = self._blend(state.video_corners, video_corners)
            state.frames_seen += 1
            state.frames_missed = 0

        if (state.status != LOCKED
                and state.frames_seen >= self.lock_frames
                and state.confidence >= self.lock_confidence):
            state.status = LOCKED
            logger.info(f"🔒 Target {state.target_id} locked (confidence {state.confidence:.2f})")
        elif state.status == IDLE:
            state.status = DETECTING

        self.state = state
        return state

    def _miss(self) -> TrackingState:
        state = self.state
        if state.target_id is None:
            return state

        state.frames_missed += 1
        state.confidence *= self.smoothing

        limit = self.lost_frames if state.status == LOCKED else 1
        if state.frames_missed >= limit:
            logger.info(f"Target {state.target_id} lost after {state.frames_missed} missed frames")
            self.state = TrackingState()
        return self.state

    def _blend(self, previous: List[List[float]], current: List[List[float]]) -> List[List[float]]:
        if len(previous) != len(current) or not current:
            return current
        a = self.smoothing
        return [
            [a * px + (1 - a) * cx, a * py + (1 - a) * cy]
            for (px, py), (cx, cy) in zip(previous, current)
        ]

    def to_dict(self) -> Dict:
        return {
            'settings': {
                'smoothing': self.smoothing,
                'lock_confidence': self.lock_confidence,
                'lock_frames': self.lock_frames,
                'lost_frames': self.lost_frames,
            },
            'state': asdict(self.state),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict], **defaults) -> 'TargetTracker':
        """Restore a tracker saved with to_dict(); empty data gives a fresh tracker"""
        data = data or {}
        tracker = cls(**{**defaults, **data.get('settings', {})})
        if data.get('state'):
            tracker.state = TrackingState(**data['state'])
        return tracker
