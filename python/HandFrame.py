import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC = 1
THUMB_MCP = 2
THUMB_IP = 3
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_TIP = 12
RING_MCP = 13
RING_TIP = 16
PINKY_MCP = 17
PINKY_TIP = 20

LANDMARK_COUNT = 21


class InvalidHandError(ValueError):
    """A hand that does not carry exactly 21 landmarks."""


class Role(str, Enum):
    """Spatial role of a hand, derived from wrist x, not from tracker handedness."""

    LEFT = "Left"
    RIGHT = "Right"


class Gesture(str, Enum):
    POINT = "point"
    PINCH = "pinch"
    FIST = "fist"
    PALM = "palm"


class Landmark(NamedTuple):
    x: float
    y: float
    z: float = 0.0


Cursor = Tuple[float, float]


def _to_landmark(entry) -> Landmark:
    if isinstance(entry, Landmark):
        return entry
    if hasattr(entry, "x") and hasattr(entry, "y") and hasattr(entry, "z"):
        return Landmark(float(entry.x), float(entry.y), float(entry.z))
    if isinstance(entry, dict):
        try:
            return Landmark(float(entry["x"]), float(entry["y"]), float(entry.get("z", 0.0)))
        except KeyError as e:
            raise InvalidHandError(f"landmark is missing coordinate {e}") from e
    if isinstance(entry, (list, tuple)) and len(entry) == 3:
        return Landmark(float(entry[0]), float(entry[1]), float(entry[2]))
    raise InvalidHandError(
        "Unsupported landmark format; expected object with x,y,z or sequence of 3 values."
    )


@dataclass(frozen=True)
class HandFrame:
    """
    One tracked hand at one instant.
    `handedness` is whatever the tracker reported and is not used for role assignment.
    """

    handedness: str
    landmarks: Tuple[Landmark, ...]
    timestamp: float  # milliseconds

    def __post_init__(self):
        object.__setattr__(self, "landmarks", tuple(_to_landmark(lm) for lm in self.landmarks))
        object.__setattr__(self, "timestamp", float(self.timestamp))

    @property
    def is_finite(self) -> bool:
        return all(math.isfinite(c) for lm in self.landmarks for c in lm)

    @property
    def is_valid(self) -> bool:
        return len(self.landmarks) == LANDMARK_COUNT and self.is_finite

    def validate(self) -> "HandFrame":
        if len(self.landmarks) != LANDMARK_COUNT:
            raise InvalidHandError(
                f"Hand must have {LANDMARK_COUNT} landmarks, got {len(self.landmarks)}"
            )
        if not self.is_finite:
            raise InvalidHandError("Hand has non-finite landmark coordinates")
        return self

    @property
    def wrist(self) -> Landmark:
        return self.landmarks[WRIST]

    def flatten(self) -> List[float]:
        """21 x (x, y, z) as a flat list of 63 floats."""
        return [c for lm in self.landmarks for c in lm]

    def to_dict(self):
        return {
            "handedness": self.handedness,
            "timestamp": self.timestamp,
            "landmarks": [lm._asdict() for lm in self.landmarks],
        }

    @classmethod
    def from_dict(cls, payload, timestamp: Optional[float] = None) -> "HandFrame":
        if not isinstance(payload, dict) or "landmarks" not in payload:
            raise InvalidHandError("hand payload must be a dict with 'landmarks'")
        ts = payload.get("timestamp", timestamp)
        if ts is None:
            raise InvalidHandError("hand payload has no timestamp")
        return cls(
            handedness=str(payload.get("handedness", "Unknown")),
            landmarks=payload["landmarks"],
            timestamp=ts,
        )


@dataclass(frozen=True)
class MultiHandFrame:
    """All hands captured at the same instant. Zero hands is a valid frame."""

    timestamp: float
    hands: Tuple[HandFrame, ...] = field(default_factory=tuple)

    def __post_init__(self):
        hands = tuple(self.hands)
        for hand in hands:
            if not isinstance(hand, HandFrame):
                raise TypeError(f"MultiHandFrame.hands must contain HandFrame, got {type(hand).__name__}")
        object.__setattr__(self, "hands", hands)
        object.__setattr__(self, "timestamp", float(self.timestamp))

    @property
    def is_empty(self) -> bool:
        return not self.hands

    def to_dict(self):
        return {"timestamp": self.timestamp, "hands": [h.to_dict() for h in self.hands]}

    @classmethod
    def from_dict(cls, payload) -> "MultiHandFrame":
        if not isinstance(payload, dict) or "timestamp" not in payload:
            raise TypeError("frame payload must be a dict with a 'timestamp'")
        hands = payload.get("hands", [])
        if not isinstance(hands, list):
            raise TypeError("frame payload 'hands' must be a list")
        ts = payload["timestamp"]
        return cls(timestamp=ts, hands=tuple(HandFrame.from_dict(h, ts) for h in hands))


def sort_by_wrist_x(hands: Sequence[HandFrame]) -> List[HandFrame]:
    return sorted(hands, key=lambda h: h.wrist.x)
