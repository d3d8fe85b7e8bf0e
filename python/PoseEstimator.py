import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np

from Angles import Curl, compute_finger_curls
from HandFrame import LANDMARK_COUNT

logger = logging.getLogger(__name__)

MAX_SCORE = 10.0


@dataclass(frozen=True)
class PoseEstimate:
    """
    Result of scoring canned poses for one hand.
    `available` is False when the hand could not be scored at all; that is a
    normal outcome, not an error.
    """

    available: bool
    scores: Dict[str, float] = field(default_factory=dict)
    reason: Optional[str] = None

    def score(self, name: str) -> float:
        return self.scores.get(name, 0.0) if self.available else 0.0

    def is_confident(self, name: str, threshold: float) -> bool:
        return self.available and self.score(name) >= threshold

    @classmethod
    def unavailable(cls, reason: str) -> "PoseEstimate":
        return cls(available=False, reason=reason)


# finger -> {curl: weight}; fingers left out do not matter for the pose
POSE_DESCRIPTIONS: Dict[str, Dict[str, Dict[Curl, float]]] = {
    "point": {
        "index": {Curl.NONE: 1.0},
        "middle": {Curl.FULL: 1.0, Curl.HALF: 0.9},
        "ring": {Curl.FULL: 1.0, Curl.HALF: 0.9},
        "pinky": {Curl.FULL: 1.0, Curl.HALF: 0.9},
    },
    "open_palm": {
        "thumb": {Curl.NONE: 1.0, Curl.HALF: 0.5},
        "index": {Curl.NONE: 1.0},
        "middle": {Curl.NONE: 1.0},
        "ring": {Curl.NONE: 1.0},
        "pinky": {Curl.NONE: 1.0},
    },
    "fist": {
        "index": {Curl.FULL: 1.0, Curl.HALF: 0.7},
        "middle": {Curl.FULL: 1.0, Curl.HALF: 0.7},
        "ring": {Curl.FULL: 1.0, Curl.HALF: 0.7},
        "pinky": {Curl.FULL: 1.0, Curl.HALF: 0.7},
    },
}


class PoseEstimator:
    """Interface of the pose-scoring collaborator."""

    def estimate(self, flat_landmarks: Sequence[float]) -> PoseEstimate:
        raise NotImplementedError


class FingerCurlPoseEstimator(PoseEstimator):
    """
    Scores named poses 0..10 from how curled each finger is.
    Each finger contributes the weight of the curl it shows (0 if the pose
    does not allow that curl); the sum is scaled to 10.
    """

    def __init__(self, descriptions=None):
        self.descriptions = descriptions or POSE_DESCRIPTIONS

    def estimate(self, flat_landmarks: Sequence[float]) -> PoseEstimate:
        arr = np.asarray(flat_landmarks, dtype=float)
        if arr.size != LANDMARK_COUNT * 3:
            return PoseEstimate.unavailable(
                f"expected {LANDMARK_COUNT * 3} values, got {arr.size}"
            )
        if not np.all(np.isfinite(arr)):
            return PoseEstimate.unavailable("landmarks contain non-finite values")

        points = [tuple(row) for row in arr.reshape(LANDMARK_COUNT, 3)]
        curls = compute_finger_curls(points)

        scores = {}
        for name, description in self.descriptions.items():
            total = sum(description[finger].get(curls[finger], 0.0) for finger in description)
            scores[name] = MAX_SCORE * total / max(len(description), 1)
        return PoseEstimate(available=True, scores=scores)
