"""
Hold-to-calibrate flow.

The player pinches with the left hand and points with the right. While both
poses are held, hands are far enough apart and the right hand stays still,
samples of its position are collected. After `stability_required_ms` of
that, the mean sample becomes the screen-center offset and, optionally, the
averaged hand signatures become the identity lock. Locking happens once.

Detections and the timer tick are separate inputs: `observe()` (or
`report_detection()`) records when each side was last seen, `tick(now)`
evaluates liveness, validity, stillness and progress.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from Config import build_config
from FrameSource import Subscribers
from GestureClassifier import measure_hand
from HandFrame import InvalidHandError, MultiHandFrame, Role, sort_by_wrist_x
from HandSignature import HandSignature, average_signatures, compute_signature
from PoseEstimator import FingerCurlPoseEstimator
from helpers import dist2d, mean_point

logger = logging.getLogger(__name__)

Point2 = Tuple[float, float]


class CalibrationState(str, Enum):
    AWAITING_GESTURES = "awaiting_gestures"
    ACCUMULATING = "accumulating"
    LOCKED = "locked"


class CalibrationIssue(str, Enum):
    """Why the current tick is not valid, most important first."""

    BOTH_MISSING = "Show both hands: pinch with your left, point with your right"
    RIGHT_MISSING = "Point with your right hand"
    LEFT_MISSING = "Pinch with your left hand"
    TOO_CLOSE = "Move your hands further apart"


@dataclass(frozen=True)
class CalibrationStatus:
    state: CalibrationState
    progress: float
    reason: Optional[CalibrationIssue] = None
    offset: Optional[Point2] = None
    left_active: bool = False
    right_active: bool = False

    @property
    def locked(self) -> bool:
        return self.state is CalibrationState.LOCKED

    def to_dict(self):
        return {
            "state": self.state.value,
            "progress": self.progress,
            "reason": self.reason.value if self.reason else None,
            "offset": {"x": self.offset[0], "y": self.offset[1]} if self.offset else None,
            "left_active": self.left_active,
            "right_active": self.right_active,
        }


@dataclass
class _Side:
    last_seen: Optional[float] = None
    wrist: Optional[Point2] = None
    anchor: Optional[Point2] = None
    signature: Optional[HandSignature] = None
    signature_samples: List[HandSignature] = field(default_factory=list)

    def is_active(self, now, timeout_ms):
        return self.last_seen is not None and now - self.last_seen < timeout_ms


class CalibrationSession:
    def __init__(self, cfg=None, pose_estimator=None):
        self.cfg = build_config(cfg)
        c = self.cfg["calibration"]
        self.stability_required_ms = c["stability_required_ms"]
        self.detection_timeout_ms = c["detection_timeout_ms"]
        self.grace_period_ms = c["grace_period_ms"]
        self.tick_interval_ms = c["tick_interval_ms"]
        self.separation_threshold = c["spatial_separation_threshold"]
        self.movement_threshold = c["movement_threshold"]
        self.pinch_distance_threshold = c["pinch_distance_threshold"]
        self.point_score_threshold = c["point_score_threshold"]
        self.anchor_landmark = c["anchor_landmark"]
        self.capture_signatures = c["capture_signatures"]

        self.pose_estimator = pose_estimator or FingerCurlPoseEstimator()

        self._sides: Dict[Role, _Side] = {Role.LEFT: _Side(), Role.RIGHT: _Side()}
        self._state = CalibrationState.AWAITING_GESTURES
        self._started_at: Optional[float] = None
        self._last_valid_at: Optional[float] = None
        self._samples: List[Point2] = []
        self._progress = 0.0
        self._reason: Optional[CalibrationIssue] = CalibrationIssue.BOTH_MISSING
        self._offset: Optional[Point2] = None
        self._locked_signatures: Dict[Role, HandSignature] = {}
        self._subscribers = Subscribers()

    # ---------- accessors ----------
    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def is_locked(self) -> bool:
        return self._state is CalibrationState.LOCKED

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def offset(self) -> Optional[Point2]:
        return self._offset

    @property
    def samples(self) -> Tuple[Point2, ...]:
        return tuple(self._samples)

    @property
    def locked_signatures(self) -> Dict[Role, HandSignature]:
        return dict(self._locked_signatures)

    def status(self, now=None) -> CalibrationStatus:
        left = self._sides[Role.LEFT]
        right = self._sides[Role.RIGHT]
        return CalibrationStatus(
            state=self._state,
            progress=self._progress,
            reason=None if self.is_locked else self._reason,
            offset=self._offset,
            left_active=now is not None and left.is_active(now, self.detection_timeout_ms),
            right_active=now is not None and right.is_active(now, self.detection_timeout_ms),
        )

    def subscribe(self, listener):
        """`listener(status)` runs after every tick. Returns an unsubscribe callable."""
        return self._subscribers.add(listener)

    # ---------- detections ----------
    def observe(self, frame: MultiHandFrame):
        """
        Run both pose detectors on one frame. The leftmost hand is checked
        for the pinch, the rightmost for the point pose; a lone hand is
        checked for both (separation then keeps it from satisfying both).
        """
        if not isinstance(frame, MultiHandFrame):
            raise TypeError(f"expected MultiHandFrame, got {type(frame).__name__}")
        if self.is_locked:
            return

        hands = []
        for hand in frame.hands:
            try:
                hands.append(hand.validate())
            except InvalidHandError as e:
                logger.debug("calibration ignoring hand: %s", e)
        if not hands:
            return

        ordered = sort_by_wrist_x(hands)
        left_hand, right_hand = ordered[0], ordered[-1]

        if measure_hand(left_hand.landmarks).pinch_distance <= self.pinch_distance_threshold:
            self._report_hand(Role.LEFT, frame.timestamp, left_hand)

        estimate = self.pose_estimator.estimate(right_hand.flatten())
        if estimate.is_confident("point", self.point_score_threshold):
            self._report_hand(Role.RIGHT, frame.timestamp, right_hand)
        elif not estimate.available:
            logger.debug("pose estimate unavailable: %s", estimate.reason)

    def _report_hand(self, side, now, hand):
        anchor = hand.landmarks[self.anchor_landmark]
        self.report_detection(
            side,
            now,
            wrist=(hand.wrist.x, hand.wrist.y),
            anchor=(anchor.x, anchor.y),
            landmarks=hand.landmarks,
        )

    def report_detection(self, side, now, wrist, anchor=None, landmarks=None):
        """
        Record that `side` showed its calibration gesture at `now` (ms).
        `anchor` is the point whose rest position becomes the offset; it
        defaults to the wrist.
        """
        if self.is_locked:
            return
        s = self._sides[Role(side)]
        s.last_seen = now
        s.wrist = (float(wrist[0]), float(wrist[1]))
        s.anchor = s.wrist if anchor is None else (float(anchor[0]), float(anchor[1]))
        if landmarks is not None and self.capture_signatures:
            try:
                s.signature = compute_signature(landmarks)
            except InvalidHandError as e:
                logger.debug("no signature for %s hand: %s", Role(side).value, e)
                s.signature = None

    # ---------- timer ----------
    def tick(self, now) -> CalibrationStatus:
        if self.is_locked:
            return self.status(now)

        left = self._sides[Role.LEFT]
        right = self._sides[Role.RIGHT]
        left_active = left.is_active(now, self.detection_timeout_ms)
        right_active = right.is_active(now, self.detection_timeout_ms)

        reason = self._invalid_reason(left_active, right_active)
        self._reason = reason
        if reason is None:
            self._accumulate(now)
        elif self._last_valid_at is not None and now - self._last_valid_at <= self.grace_period_ms:
            # short flicker or occlusion, keep what we have
            pass
        else:
            self._reset_accumulator()

        status = self.status(now)
        self._subscribers.emit(status)
        return status

    def _invalid_reason(self, left_active, right_active) -> Optional[CalibrationIssue]:
        if not left_active and not right_active:
            return CalibrationIssue.BOTH_MISSING
        if not right_active:
            return CalibrationIssue.RIGHT_MISSING
        if not left_active:
            return CalibrationIssue.LEFT_MISSING
        separation = dist2d(self._sides[Role.LEFT].wrist, self._sides[Role.RIGHT].wrist)
        if separation < self.separation_threshold:
            return CalibrationIssue.TOO_CLOSE
        return None

    def _accumulate(self, now):
        self._last_valid_at = now
        pos = self._sides[Role.RIGHT].anchor

        if self._started_at is None:
            self._start(now, pos)
        elif dist2d(pos, self._samples[-1]) > self.movement_threshold:
            logger.debug("calibration hand moved, restarting hold timer")
            self._start(now, pos)
        else:
            self._samples.append(pos)
            self._sample_signatures()

        elapsed = now - self._started_at
        self._progress = min(elapsed / self.stability_required_ms, 1.0)
        if elapsed >= self.stability_required_ms:
            self._lock()

    def _start(self, now, pos):
        self._state = CalibrationState.ACCUMULATING
        self._started_at = now
        self._samples = [pos]
        for side in self._sides.values():
            side.signature_samples = []
        self._sample_signatures()

    def _sample_signatures(self):
        if not self.capture_signatures:
            return
        for side in self._sides.values():
            if side.signature is not None:
                side.signature_samples.append(side.signature)

    def _reset_accumulator(self):
        self._state = CalibrationState.AWAITING_GESTURES
        self._started_at = None
        self._last_valid_at = None
        self._samples = []
        self._progress = 0.0
        for side in self._sides.values():
            side.signature_samples = []

    def _lock(self):
        self._offset = mean_point(self._samples)
        if self.capture_signatures:
            self._locked_signatures = {
                role: average_signatures(side.signature_samples)
                for role, side in self._sides.items()
                if side.signature_samples
            }
        self._state = CalibrationState.LOCKED
        self._progress = 1.0
        self._reason = None
        logger.info(
            "Calibration locked at (%.3f, %.3f) from %d samples, signatures: %s",
            self._offset[0],
            self._offset[1],
            len(self._samples),
            ", ".join(r.value for r in self._locked_signatures) or "none",
        )
