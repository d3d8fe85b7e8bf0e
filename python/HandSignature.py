"""
Hand proportion signature used to lock play to the calibrated player's hands.

Every ratio is taken between knuckle (MCP) and wrist landmarks only. Those
points keep their relative positions whether the hand is open, pointing or
closed into a fist, so the same hand yields a similar signature in any pose.
Ratios are scale-invariant and work at any distance from the camera.

The signature only lives for the current calibration lock; it is not an
identity credential.
"""

import logging
from dataclasses import asdict, dataclass, fields

import numpy as np

from HandFrame import (
    INDEX_MCP,
    LANDMARK_COUNT,
    MIDDLE_MCP,
    PINKY_MCP,
    RING_MCP,
    THUMB_MCP,
    WRIST,
    InvalidHandError,
)
from helpers import dist

logger = logging.getLogger(__name__)

MIN_LENGTH = 0.001

# Default score a candidate hand needs to be accepted
SIGNATURE_MATCH_THRESHOLD = 0.60

# palm aspect is the most pose-stable ratio and dominates the score
SIGNATURE_WEIGHTS = {
    "palm_aspect": 3.0,
    "thumb_base": 1.0,
    "palm_taper": 1.5,
    "thumb_wrist": 1.0,
    "knuckle_spacing": 1.5,
}


@dataclass(frozen=True)
class HandSignature:
    # palm width (index MCP -> pinky MCP) / palm height (wrist -> middle MCP)
    palm_aspect: float
    # thumb MCP -> index MCP, relative to palm width
    thumb_base: float
    # wrist -> index MCP over wrist -> pinky MCP
    palm_taper: float
    # wrist -> thumb MCP, relative to palm height
    thumb_wrist: float
    # index-middle knuckle gap over ring-pinky knuckle gap
    knuckle_spacing: float

    def as_array(self):
        return np.array([getattr(self, f.name) for f in fields(self)], dtype=float)

    def to_dict(self):
        return asdict(self)


def _ratio(num, den):
    return num / max(den, MIN_LENGTH)


def compute_signature(landmarks) -> HandSignature:
    """Compute the signature of one hand. Needs all 21 landmarks."""
    if landmarks is None or len(landmarks) < LANDMARK_COUNT:
        n = 0 if landmarks is None else len(landmarks)
        raise InvalidHandError(f"Hand must have {LANDMARK_COUNT} landmarks, got {n}")

    wrist = landmarks[WRIST]
    thumb_mcp = landmarks[THUMB_MCP]
    index_mcp = landmarks[INDEX_MCP]
    middle_mcp = landmarks[MIDDLE_MCP]
    ring_mcp = landmarks[RING_MCP]
    pinky_mcp = landmarks[PINKY_MCP]

    palm_width = dist(index_mcp, pinky_mcp)
    palm_height = dist(wrist, middle_mcp)

    return HandSignature(
        palm_aspect=_ratio(palm_width, palm_height),
        thumb_base=_ratio(dist(thumb_mcp, index_mcp), palm_width),
        palm_taper=_ratio(dist(wrist, index_mcp), dist(wrist, pinky_mcp)),
        thumb_wrist=_ratio(dist(wrist, thumb_mcp), palm_height),
        knuckle_spacing=_ratio(dist(index_mcp, middle_mcp), dist(ring_mcp, pinky_mcp)),
    )


def average_signatures(signatures) -> HandSignature:
    """Component-wise mean of several samples of the same hand."""
    signatures = list(signatures)
    if not signatures:
        raise ValueError("Need at least one signature to average")
    mean = np.mean([s.as_array() for s in signatures], axis=0)
    return HandSignature(*(float(v) for v in mean))


def match_signature(candidate: HandSignature, locked: HandSignature) -> float:
    """
    Score how well a hand matches the locked signature.
    Returns 0..1 where 1 = identical proportions; a weighted relative
    difference of 100% or more scores 0.
    """
    total = 0.0
    weight_sum = 0.0
    for name, weight in SIGNATURE_WEIGHTS.items():
        ref = getattr(locked, name)
        diff = abs(getattr(candidate, name) - ref) / max(ref, MIN_LENGTH)
        total += weight * diff
        weight_sum += weight
    return max(0.0, 1.0 - total / weight_sum)


def score_hand(landmarks, locked: HandSignature):
    """
    Match score of a raw hand against a locked signature.
    A hand that cannot be measured scores None instead of raising.
    """
    try:
        return match_signature(compute_signature(landmarks), locked)
    except InvalidHandError as e:
        logger.debug("signature unavailable for candidate hand: %s", e)
        return None
