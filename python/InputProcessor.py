import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from AdaptiveFilter import AdaptiveFilter
from Config import build_config
from CursorMapper import CENTER, CursorMapper
from FrameSource import Subscribers
from GestureClassifier import GestureClassifier
from HandFrame import (
    INDEX_TIP,
    MIDDLE_TIP,
    PINKY_TIP,
    RING_TIP,
    THUMB_MCP,
    THUMB_TIP,
    WRIST,
    Cursor,
    Gesture,
    HandFrame,
    InvalidHandError,
    Landmark,
    MultiHandFrame,
    Role,
    sort_by_wrist_x,
)
from HandSignature import HandSignature, score_hand
from helpers import dist2d

logger = logging.getLogger(__name__)

# Only these landmarks are smoothed; cursor and gesture logic read nothing else.
FILTERED_LANDMARKS = (WRIST, THUMB_MCP, THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP)
AXES = ("x", "y", "z")

NEUTRAL_GESTURE = Gesture.POINT
RAW_TOLERANCE_FACTOR = 1.5


@dataclass(frozen=True)
class ProcessedHand:
    role: Role
    handedness: str
    landmarks: Tuple[Landmark, ...]  # after filtering
    cursor: Cursor
    gesture: Gesture
    match_score: Optional[float] = None

    def to_dict(self):
        return {
            "role": self.role.value,
            "handedness": self.handedness,
            "cursor": {"x": self.cursor[0], "y": self.cursor[1]},
            "gesture": self.gesture.value,
            "match_score": self.match_score,
            "landmarks": [lm._asdict() for lm in self.landmarks],
        }


@dataclass(frozen=True)
class DetectedHand:
    """Every hand seen in a frame, including the ones gating rejected."""

    handedness: str
    role: Role  # provisional role used for gating
    wrist: Landmark
    matched: bool
    score: Optional[float]
    landmarks: Tuple[Landmark, ...]

    def to_dict(self):
        return {
            "handedness": self.handedness,
            "role": self.role.value,
            "wrist": self.wrist._asdict(),
            "matched": self.matched,
            "score": self.score,
        }


@dataclass(frozen=True)
class ProcessedHandEvent:
    timestamp: float
    cursor: Cursor  # right hand when present
    gesture: Gesture  # left hand when present
    stable: bool
    hands: Dict[Role, ProcessedHand] = field(default_factory=dict)
    detected: Tuple[DetectedHand, ...] = ()

    @property
    def left(self) -> Optional[ProcessedHand]:
        return self.hands.get(Role.LEFT)

    @property
    def right(self) -> Optional[ProcessedHand]:
        return self.hands.get(Role.RIGHT)

    def to_dict(self):
        return {
            "timestamp": self.timestamp,
            "cursor": {"x": self.cursor[0], "y": self.cursor[1]},
            "gesture": self.gesture.value,
            "stable": self.stable,
            "hands": {role.value.lower(): hand.to_dict() for role, hand in self.hands.items()},
            "detected": [d.to_dict() for d in self.detected],
        }


class InputProcessor:
    """
    Turns raw multi-hand frames into one cursor / gesture / stability event per frame.

    Per frame: drop invalid hands, sort by wrist x, gate against the locked
    signatures, assign Left/Right roles, smooth the curated landmarks, map
    the index fingertip to a cursor, classify the gesture, aggregate.
    """

    def __init__(self, frame_source=None, cfg=None):
        self.cfg = build_config(cfg)

        pad = self.cfg["virtual_pad"]
        identity = self.cfg["identity"]
        self.stability_tolerance = pad["stability_tolerance"]
        self.split_x = self.cfg["roles"]["split_x"]
        self.match_threshold = identity["signature_match_threshold"]
        self.continuity_distance = identity["continuity_distance"]
        self.continuity_memory_ms = identity["continuity_memory_ms"]

        self.classifier = GestureClassifier(self.cfg)

        # (role, landmark index, axis) -> filter, created on first use
        self._filters: Dict[Tuple[Role, int, str], AdaptiveFilter] = {}
        self._mappers = {role: CursorMapper.from_config(self.cfg) for role in Role}
        # unfiltered twin, so stability checks do not disturb the main dead zone
        self._raw_mappers = {role: CursorMapper.from_config(self.cfg) for role in Role}
        self._calibration = CENTER

        self._locked: Dict[Role, HandSignature] = {}
        # role -> (x, y, timestamp) of the last hand that passed gating
        self._last_wrist: Dict[Role, Tuple[float, float, float]] = {}

        self._last_cursor: Optional[Cursor] = None
        self._last_raw_cursor: Optional[Cursor] = None

        self._subscribers = Subscribers()
        self._unsubscribe_source = None
        if frame_source is not None:
            self._unsubscribe_source = frame_source.subscribe(self.process_frame)

    # ---------- subscription ----------
    def subscribe(self, listener):
        """Register `listener(event)`. Returns a callable that detaches it."""
        return self._subscribers.add(listener)

    def dispose(self):
        if self._unsubscribe_source is not None:
            self._unsubscribe_source()
            self._unsubscribe_source = None
        self._subscribers.clear()

    # ---------- calibration / identity ----------
    @property
    def calibration(self) -> Cursor:
        return self._calibration

    def set_calibration(self, offset):
        self._calibration = (float(offset[0]), float(offset[1]))
        for mapper in list(self._mappers.values()) + list(self._raw_mappers.values()):
            mapper.set_calibration(self._calibration)

    @property
    def locked_signatures(self) -> Dict[Role, HandSignature]:
        return dict(self._locked)

    @property
    def signature_lock_active(self) -> bool:
        return bool(self._locked)

    def set_locked_signatures(self, signatures):
        """`signatures` maps a role (or "Left"/"Right") to its locked HandSignature."""
        locked = {}
        for role, signature in (signatures or {}).items():
            if signature is None:
                continue
            if not isinstance(signature, HandSignature):
                raise TypeError(f"expected HandSignature for {role}, got {type(signature).__name__}")
            locked[Role(role)] = signature
        self._locked = locked
        self._last_wrist.clear()
        logger.info("Signature lock set for %s", ", ".join(r.value for r in locked) or "no roles")

    def clear_signature_lock(self):
        self._locked = {}
        self._last_wrist.clear()
        logger.info("Signature lock cleared")

    # ---------- roles ----------
    def provisional_role(self, hand: HandFrame) -> Role:
        return Role.LEFT if hand.wrist.x < self.split_x else Role.RIGHT

    def assign_roles(self, hands) -> Dict[Role, HandFrame]:
        """
        One hand: by wrist x against the split line. Two or more: leftmost
        wrist is Left, rightmost is Right, anything between is ignored.
        """
        ordered = sort_by_wrist_x(hands)
        if not ordered:
            return {}
        if len(ordered) == 1:
            return {self.provisional_role(ordered[0]): ordered[0]}
        return {Role.LEFT: ordered[0], Role.RIGHT: ordered[-1]}

    # ---------- per frame ----------
    def process_frame(self, frame: MultiHandFrame) -> Optional[ProcessedHandEvent]:
        if not isinstance(frame, MultiHandFrame):
            raise TypeError(f"expected MultiHandFrame, got {type(frame).__name__}")

        hands = self._valid_hands(frame)
        if not hands:
            return None

        ordered = sort_by_wrist_x(hands)
        accepted, detected = self._gate(ordered)

        processed: Dict[Role, ProcessedHand] = {}
        raw_cursors: Dict[Role, Cursor] = {}
        for role, hand in self.assign_roles(accepted).items():
            processed[role], raw_cursors[role] = self._process_hand(role, hand, detected)

        for role in Role:
            if role not in processed:
                self._mappers[role].reset_last_position()
                self._raw_mappers[role].reset_last_position()

        primary = Role.RIGHT if Role.RIGHT in processed else (Role.LEFT if processed else None)
        if primary is None:
            # every hand was rejected by gating
            cursor, stable = CENTER, True
        else:
            cursor = processed[primary].cursor
            raw_cursor = raw_cursors[primary]
            stable = self._is_stable(cursor, raw_cursor)
            self._last_cursor = cursor
            self._last_raw_cursor = raw_cursor

        gesture = NEUTRAL_GESTURE
        if Role.LEFT in processed:
            gesture = processed[Role.LEFT].gesture
        elif Role.RIGHT in processed:
            gesture = processed[Role.RIGHT].gesture

        event = ProcessedHandEvent(
            timestamp=frame.timestamp,
            cursor=cursor,
            gesture=gesture,
            stable=stable,
            hands=processed,
            detected=tuple(detected.values()),
        )
        self._subscribers.emit(event)
        return event

    def _valid_hands(self, frame: MultiHandFrame) -> List[HandFrame]:
        hands = []
        for hand in frame.hands:
            try:
                hands.append(hand.validate())
            except InvalidHandError as e:
                logger.debug("dropping hand at t=%.1f: %s", frame.timestamp, e)
        return hands

    def _gate(self, hands):
        """
        Split hands into accepted ones and diagnostics for all of them.
        Roles without a locked signature accept any hand.
        """
        accepted = []
        detected: Dict[int, DetectedHand] = {}
        for hand in hands:
            role = self.provisional_role(hand)
            locked = self._locked.get(role)
            score = None
            matched = True
            if locked is not None:
                score = score_hand(hand.landmarks, locked)
                matched = (
                    score is not None
                    and score >= self.match_threshold
                    and self._is_continuous(role, hand)
                )
                if matched:
                    self._last_wrist[role] = (hand.wrist.x, hand.wrist.y, hand.timestamp)
                else:
                    logger.debug("rejected %s hand at x=%.3f (score=%s)", role.value, hand.wrist.x, score)
            if matched:
                accepted.append(hand)
            detected[id(hand)] = DetectedHand(
                handedness=hand.handedness,
                role=role,
                wrist=hand.wrist,
                matched=matched,
                score=score,
                landmarks=hand.landmarks,
            )
        return accepted, detected

    def _is_continuous(self, role: Role, hand: HandFrame) -> bool:
        """A hand that jumps far from where this role was last seen is someone else."""
        last = self._last_wrist.get(role)
        if last is None or hand.timestamp - last[2] > self.continuity_memory_ms:
            return True
        return dist2d((hand.wrist.x, hand.wrist.y), last[:2]) <= self.continuity_distance

    def _process_hand(self, role: Role, hand: HandFrame, detected) -> Tuple[ProcessedHand, Cursor]:
        filtered = self._filter_landmarks(role, hand)

        anchor = filtered[INDEX_TIP] if len(filtered) > INDEX_TIP else filtered[WRIST]
        cursor = self._mappers[role].to_cursor((anchor.x, anchor.y))

        raw = hand.landmarks
        raw_anchor = raw[INDEX_TIP] if len(raw) > INDEX_TIP else raw[WRIST]
        raw_cursor = self._raw_mappers[role].to_cursor((raw_anchor.x, raw_anchor.y))

        gesture = self.classifier.classify(filtered, raw_landmarks=raw)
        info = detected.get(id(hand))
        return (
            ProcessedHand(
                role=role,
                handedness=hand.handedness,
                landmarks=filtered,
                cursor=cursor,
                gesture=gesture,
                match_score=info.score if info is not None else None,
            ),
            raw_cursor,
        )

    def _filter_landmarks(self, role: Role, hand: HandFrame) -> Tuple[Landmark, ...]:
        out = list(hand.landmarks)
        for idx in FILTERED_LANDMARKS:
            if idx >= len(out):
                continue
            lm = out[idx]
            out[idx] = Landmark(
                *(
                    self._channel(role, idx, axis).filter(value, hand.timestamp)
                    for axis, value in zip(AXES, lm)
                )
            )
        return tuple(out)

    def _channel(self, role: Role, idx: int, axis: str) -> AdaptiveFilter:
        key = (role, idx, axis)
        f = self._filters.get(key)
        if f is None:
            f = AdaptiveFilter.from_config(self.cfg)
            self._filters[key] = f
        return f

    def _is_stable(self, cursor: Cursor, raw_cursor: Cursor) -> bool:
        if self._last_cursor is None or self._last_raw_cursor is None:
            return True
        tolerance = self.stability_tolerance
        return (
            dist2d(cursor, self._last_cursor) <= tolerance
            and dist2d(raw_cursor, self._last_raw_cursor) <= tolerance * RAW_TOLERANCE_FACTOR
        )
