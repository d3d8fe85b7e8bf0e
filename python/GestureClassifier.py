# GestureClassifier.py
from typing import List, NamedTuple, Optional, Sequence

from HandFrame import (
    INDEX_TIP,
    LANDMARK_COUNT,
    MIDDLE_TIP,
    PINKY_TIP,
    RING_TIP,
    THUMB_TIP,
    WRIST,
    Gesture,
    Landmark,
)
from helpers import bounding_diagonal, normalized_distance

FINGERTIPS = (INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP)


class HandMetrics(NamedTuple):
    curls: List[float]  # wrist -> tip distance per non-thumb finger, / hand diagonal
    avg_curl: float
    pinch_distance: float  # thumb tip -> index tip, / hand diagonal


def measure_hand(landmarks: Sequence[Landmark]) -> HandMetrics:
    scale = bounding_diagonal(landmarks)
    wrist = landmarks[WRIST]
    curls = [normalized_distance(landmarks[tip], wrist, scale) for tip in FINGERTIPS]
    pinch = normalized_distance(landmarks[THUMB_TIP], landmarks[INDEX_TIP], scale)
    return HandMetrics(curls=curls, avg_curl=sum(curls) / len(curls), pinch_distance=pinch)


def _usable(landmarks) -> bool:
    return landmarks is not None and len(landmarks) >= LANDMARK_COUNT


class GestureClassifier:
    """
    Scale-invariant point / pinch / fist / palm classifier.

    Priority, first match wins:
        fist  - fingertips close to the wrist (checked before pinch: a fist
                closes the thumb-index gap too)
        pinch - thumb tip touching index tip
        palm  - all four fingers extended and thumb spread
        point - default aiming pose
    """

    def __init__(self, cfg=None):
        # default config
        self.cfg = {
            "gestures": {
                "pinch_threshold": 0.05,
                "fist_threshold": 0.16,
                "extension_threshold": 0.55,
                "thumb_spread_threshold": 0.15,
            }
        }
        self.update_config(cfg)

    def update_config(self, cfg):
        if cfg:
            for k, v in cfg.items():
                if isinstance(v, dict):
                    self.cfg.setdefault(k, {}).update(v)
                else:
                    self.cfg[k] = v

        g = self.cfg.get("gestures", {})
        self.pinch_threshold = g.get("pinch_threshold", 0.05)
        self.fist_threshold = g.get("fist_threshold", 0.16)
        self.extension_threshold = g.get("extension_threshold", 0.55)
        self.thumb_spread_threshold = g.get("thumb_spread_threshold", 0.15)

    def _closed_pose(self, metrics: HandMetrics) -> Optional[Gesture]:
        if metrics.avg_curl <= self.fist_threshold:
            return Gesture.FIST
        if metrics.pinch_distance <= self.pinch_threshold:
            return Gesture.PINCH
        return None

    def _evaluate(self, metrics: HandMetrics) -> Gesture:
        closed = self._closed_pose(metrics)
        if closed is not None:
            return closed

        all_extended = all(c >= self.extension_threshold for c in metrics.curls)
        if all_extended and metrics.pinch_distance >= self.thumb_spread_threshold:
            return Gesture.PALM
        return Gesture.POINT

    def classify(self, landmarks, raw_landmarks=None) -> Gesture:
        """
        Classify one hand. When `raw_landmarks` (unfiltered) are usable, fist
        and pinch are tried on them first so fast clicks are not delayed by the
        filter; otherwise the whole sequence runs on `landmarks`.
        """
        if _usable(raw_landmarks):
            closed = self._closed_pose(measure_hand(raw_landmarks))
            if closed is not None:
                return closed

        if not _usable(landmarks):
            return Gesture.POINT
        return self._evaluate(measure_hand(landmarks))
