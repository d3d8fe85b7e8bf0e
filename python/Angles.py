import math
from enum import Enum
from typing import Dict, List, Sequence, Tuple

# Each tuple describes (previous, joint, next) landmark indices for a finger joint.
FINGER_JOINTS: Dict[str, Tuple[Tuple[int, int, int], ...]] = {
    "thumb": ((1, 2, 3), (2, 3, 4)),
    "index": ((0, 5, 6), (5, 6, 7), (6, 7, 8)),
    "middle": ((0, 9, 10), (9, 10, 11), (10, 11, 12)),
    "ring": ((0, 13, 14), (13, 14, 15), (14, 15, 16)),
    "pinky": ((0, 17, 18), (17, 18, 19), (18, 19, 20)),
}

Point = Tuple[float, float, float]


class Curl(str, Enum):
    NONE = "no_curl"
    HALF = "half_curl"
    FULL = "full_curl"


# Summed joint bend (degrees) at which a finger counts as half / fully curled.
# The thumb has one joint less and bends less overall.
CURL_LIMITS: Dict[str, Tuple[float, float]] = {
    "thumb": (40.0, 80.0),
    "index": (60.0, 150.0),
    "middle": (60.0, 150.0),
    "ring": (60.0, 150.0),
    "pinky": (60.0, 150.0),
}


def _extract_point(entry) -> Point:
    if hasattr(entry, "x") and hasattr(entry, "y") and hasattr(entry, "z"):
        return (float(entry.x), float(entry.y), float(entry.z))
    if isinstance(entry, (list, tuple)) and len(entry) >= 3:
        return (float(entry[0]), float(entry[1]), float(entry[2]))
    raise ValueError("Unsupported landmark format; expected object with x,y,z or sequence of 3 values.")


def _vec(a: Point, b: Point) -> Point:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _dot(a: Point, b: Point) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _length(v: Point) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def joint_bend(points: Sequence[object], triplet: Tuple[int, int, int]) -> float:
    """
    How far a joint deviates from straight, in degrees (0 = straight, 180 = folded back).
    """
    a_idx, b_idx, c_idx = triplet
    a = _extract_point(points[a_idx])
    b = _extract_point(points[b_idx])
    c = _extract_point(points[c_idx])

    v1 = _vec(a, b)
    v2 = _vec(c, b)
    len1 = _length(v1)
    len2 = _length(v2)
    if len1 <= 1e-6 or len2 <= 1e-6:
        return 0.0

    cosine = _dot(v1, v2) / (len1 * len2)
    cosine = max(min(cosine, 1.0), -1.0)
    return 180.0 - math.degrees(math.acos(cosine))


def compute_finger_bends(landmarks: Sequence[object]) -> Dict[str, List[float]]:
    """Per-finger list of joint bends, ordered from the palm outwards."""
    if not landmarks:
        return {}
    return {
        finger: [joint_bend(landmarks, triplet) for triplet in joints]
        for finger, joints in FINGER_JOINTS.items()
    }


def classify_curl(finger: str, bends: Sequence[float]) -> Curl:
    half, full = CURL_LIMITS[finger]
    total = sum(bends)
    if total >= full:
        return Curl.FULL
    if total >= half:
        return Curl.HALF
    return Curl.NONE


def compute_finger_curls(landmarks: Sequence[object]) -> Dict[str, Curl]:
    return {
        finger: classify_curl(finger, bends)
        for finger, bends in compute_finger_bends(landmarks).items()
    }
