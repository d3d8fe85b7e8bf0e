import pytest

from Config import ConfigError
from FrameSource import InMemoryFrameSource
from HandFrame import Gesture, HandFrame, Landmark, MultiHandFrame, Role
from HandSignature import compute_signature
from InputProcessor import InputProcessor
from hand_fixtures import (
    BASE_TS,
    FIST,
    OPEN_PALM,
    PINCH,
    POINT,
    frame,
    hand,
    jittered_open_palm,
    other_person,
    shifted,
)


def collect(processor):
    events = []
    processor.subscribe(events.append)
    return events


def test_classifies_pinch_fist_and_palm_in_frame_order():
    source = InMemoryFrameSource()
    processor = InputProcessor(source)
    gestures = []
    processor.subscribe(lambda event: gestures.append(event.gesture))

    source.emit(frame(OPEN_PALM))
    source.emit(frame(PINCH, offset_ms=10))
    source.emit(frame(FIST, offset_ms=20))

    assert gestures == [Gesture.PALM, Gesture.PINCH, Gesture.FIST]
    processor.dispose()


def test_empty_frame_emits_nothing():
    processor = InputProcessor()
    events = collect(processor)
    assert processor.process_frame(MultiHandFrame(timestamp=BASE_TS)) is None
    assert events == []


def test_hand_with_missing_landmarks_is_treated_as_absent():
    processor = InputProcessor()
    events = collect(processor)
    broken = HandFrame(handedness="Right", landmarks=OPEN_PALM[:20], timestamp=BASE_TS)
    assert processor.process_frame(MultiHandFrame(timestamp=BASE_TS, hands=(broken,))) is None

    good = hand(OPEN_PALM)
    event = processor.process_frame(MultiHandFrame(timestamp=BASE_TS, hands=(broken, good)))
    assert event is not None and list(event.hands) == [Role.RIGHT]
    assert len(events) == 1


def test_rejects_frames_of_the_wrong_type():
    with pytest.raises(TypeError):
        InputProcessor().process_frame({"timestamp": 0, "hands": []})


def test_roles_follow_wrist_position_not_input_order():
    processor = InputProcessor()
    right_side = shifted(OPEN_PALM, dx=0.3)  # wrist x = 0.8
    left_side = shifted(OPEN_PALM, dx=-0.3)  # wrist x = 0.2
    # tracker labels deliberately disagree with the spatial layout
    event = processor.process_frame(frame(right_side, left_side, handedness=["Left", "Right"]))

    assert event.left.landmarks[0].x == pytest.approx(0.2)
    assert event.right.landmarks[0].x == pytest.approx(0.8)
    assert event.left.handedness == "Right"
    assert event.cursor == event.right.cursor


def test_hands_between_the_outermost_two_are_ignored():
    processor = InputProcessor()
    event = processor.process_frame(
        frame(shifted(OPEN_PALM, dx=0.0), shifted(OPEN_PALM, dx=-0.3), shifted(OPEN_PALM, dx=0.3))
    )
    assert set(event.hands) == {Role.LEFT, Role.RIGHT}
    assert event.left.landmarks[0].x == pytest.approx(0.2)
    assert event.right.landmarks[0].x == pytest.approx(0.8)
    assert len(event.detected) == 3


def test_single_hand_role_uses_split_line():
    processor = InputProcessor()
    event = processor.process_frame(frame(shifted(OPEN_PALM, dx=-0.2)))  # wrist x = 0.3
    assert list(event.hands) == [Role.LEFT]
    event = processor.process_frame(frame(shifted(OPEN_PALM, dx=-0.05), offset_ms=16))  # wrist x = 0.45
    assert list(event.hands) == [Role.RIGHT]


def test_gesture_comes_from_left_hand_and_cursor_from_right():
    processor = InputProcessor()
    event = processor.process_frame(frame(shifted(PINCH, dx=-0.25), shifted(POINT, dx=0.2)))
    assert event.left.gesture is Gesture.PINCH
    assert event.right.gesture is Gesture.POINT
    assert event.gesture is Gesture.PINCH
    assert event.cursor == event.right.cursor


def test_cursor_tracks_index_fingertip():
    processor = InputProcessor(cfg={"virtual_pad": {"dead_zone": 0.0}, "axes": {"invert_x": False}})
    event = processor.process_frame(frame(POINT))
    tip = POINT[8]
    assert event.cursor == pytest.approx(((tip.x - 0.5) / 0.4 + 0.5, (tip.y - 0.5) / 0.4 + 0.5))


def test_calibration_offset_moves_the_center():
    processor = InputProcessor(cfg={"virtual_pad": {"dead_zone": 0.0}})
    tip = POINT[8]
    processor.set_calibration((tip.x, tip.y))
    assert processor.calibration == (tip.x, tip.y)
    event = processor.process_frame(frame(POINT))
    assert event.cursor == pytest.approx((0.5, 0.5))


def test_smoothing_damps_jitter():
    processor = InputProcessor(cfg={"smoothing": {"min_cutoff": 1.2, "beta": 0.004}, "virtual_pad": {"stability_tolerance": 0.02}})
    events = collect(processor)

    processor.process_frame(frame(OPEN_PALM))
    processor.process_frame(frame(jittered_open_palm(0.06), offset_ms=8))
    processor.process_frame(frame(jittered_open_palm(-0.04), offset_ms=16))

    xs = [e.cursor[0] for e in events]
    assert 0.0 < xs[0] <= 1.0
    raw_delta = 0.06 / 0.4
    assert abs(xs[1] - xs[0]) < raw_delta
    assert abs(xs[2] - xs[1]) <= raw_delta


def test_stability_follows_cursor_drift():
    processor = InputProcessor(cfg={"virtual_pad": {"stability_tolerance": 0.015}})
    events = collect(processor)

    processor.process_frame(frame(OPEN_PALM))
    processor.process_frame(frame(jittered_open_palm(0.005), offset_ms=12))
    assert [e.stable for e in events] == [True, True]

    processor.process_frame(frame(jittered_open_palm(0.05), offset_ms=24))
    assert events[2].stable is False


def test_invalid_config_fails_fast():
    with pytest.raises(ConfigError):
        InputProcessor(cfg={"virtual_pad": {"width": 0}})
    with pytest.raises(ConfigError):
        InputProcessor(cfg={"gestures": {"pinch_threshold": 1.5}})


# ---------- identity lock ----------
def locked_processor(**cfg):
    processor = InputProcessor(cfg=cfg or None)
    processor.set_locked_signatures({Role.RIGHT: compute_signature(POINT)})
    return processor


def test_matching_hand_passes_the_lock():
    processor = locked_processor()
    event = processor.process_frame(frame(shifted(POINT, dx=0.2)))
    assert processor.signature_lock_active
    assert event.right is not None
    assert event.right.match_score == pytest.approx(1.0)
    assert event.detected[0].matched


def test_stranger_hand_is_rejected_but_reported():
    processor = locked_processor()
    event = processor.process_frame(frame(shifted(other_person(POINT), dx=0.2)))
    assert event.hands == {}
    assert event.cursor == (0.5, 0.5)
    assert event.gesture is Gesture.POINT
    assert len(event.detected) == 1
    detected = event.detected[0]
    assert detected.matched is False
    assert detected.role is Role.RIGHT
    assert detected.score < 0.6


def test_player_kept_and_stranger_dropped_in_same_frame():
    processor = locked_processor()
    event = processor.process_frame(
        frame(shifted(POINT, dx=0.2), shifted(other_person(OPEN_PALM), dx=0.45))
    )
    assert list(event.hands) == [Role.RIGHT]
    assert event.right.landmarks[0].x == pytest.approx(0.7)
    assert [d.matched for d in event.detected] == [True, False]


def test_roles_without_a_locked_signature_accept_anything():
    processor = locked_processor()
    event = processor.process_frame(frame(shifted(other_person(PINCH), dx=-0.25), shifted(POINT, dx=0.2)))
    assert set(event.hands) == {Role.LEFT, Role.RIGHT}
    assert event.left.match_score is None


def test_teleporting_hand_is_rejected_even_if_it_matches():
    processor = locked_processor()
    first = processor.process_frame(frame(shifted(POINT, dx=-0.05)))  # wrist x = 0.45
    assert first.right is not None

    jumped = processor.process_frame(frame(shifted(POINT, dx=0.3), offset_ms=33))  # wrist x = 0.8
    assert jumped.hands == {}
    assert jumped.detected[0].score == pytest.approx(1.0)
    assert jumped.detected[0].matched is False

    # after the continuity memory runs out the hand may reappear anywhere
    later = processor.process_frame(frame(shifted(POINT, dx=0.3), offset_ms=1200))
    assert later.right is not None


def test_clear_signature_lock_accepts_everyone_again():
    processor = locked_processor()
    processor.clear_signature_lock()
    assert not processor.signature_lock_active
    event = processor.process_frame(frame(shifted(other_person(POINT), dx=0.2)))
    assert event.right is not None


def test_set_locked_signatures_accepts_role_names():
    processor = InputProcessor()
    processor.set_locked_signatures({"Left": compute_signature(PINCH)})
    assert list(processor.locked_signatures) == [Role.LEFT]
    with pytest.raises(TypeError):
        processor.set_locked_signatures({"Left": "not a signature"})


# ---------- subscription ----------
def test_every_subscriber_sees_the_same_event_in_order():
    processor = InputProcessor()
    seen = []
    processor.subscribe(lambda e: seen.append(("a", e)))
    processor.subscribe(lambda e: seen.append(("b", e)))
    processor.process_frame(frame(OPEN_PALM))
    assert [tag for tag, _ in seen] == ["a", "b"]
    assert seen[0][1] is seen[1][1]


def test_unsubscribe_and_dispose_stop_delivery():
    source = InMemoryFrameSource()
    processor = InputProcessor(source)
    events = []
    unsubscribe = processor.subscribe(events.append)

    source.emit(frame(OPEN_PALM))
    unsubscribe()
    source.emit(frame(OPEN_PALM, offset_ms=16))
    assert len(events) == 1

    processor.subscribe(events.append)
    processor.dispose()
    source.emit(frame(OPEN_PALM, offset_ms=32))
    assert len(events) == 1


def test_processors_do_not_share_state():
    a = InputProcessor()
    b = InputProcessor()
    a.set_calibration((0.2, 0.2))
    a.set_locked_signatures({Role.RIGHT: compute_signature(POINT)})
    assert b.calibration == (0.5, 0.5)
    assert not b.signature_lock_active


def test_event_serializes_to_plain_types():
    processor = InputProcessor()
    payload = processor.process_frame(frame(shifted(PINCH, dx=-0.25), shifted(POINT, dx=0.2))).to_dict()
    assert payload["gesture"] == "pinch"
    assert set(payload["hands"]) == {"left", "right"}
    assert len(payload["hands"]["right"]["landmarks"]) == 21
    assert payload["detected"][0]["matched"] is True


# ---------- robustness ----------
def test_non_finite_hand_is_dropped_without_poisoning_the_filter():
    processor = InputProcessor()
    first = processor.process_frame(frame(POINT))
    assert first.cursor == pytest.approx((0.35, 0.4))

    broken = list(POINT)
    broken[8] = Landmark(float("nan"), float("nan"), 0.02)
    assert processor.process_frame(frame(broken, offset_ms=16)) is None

    for i in range(2, 10):
        event = processor.process_frame(frame(POINT, offset_ms=16 * i))
    assert event.cursor == pytest.approx((0.35, 0.4))
    assert event.right.landmarks[8] == pytest.approx(POINT[8])


def test_filter_channels_are_not_shared_between_roles():
    processor = InputProcessor()
    left = shifted(POINT, dx=-0.2)  # wrist x = 0.3
    processor.process_frame(frame(left))
    processor.process_frame(frame(shifted(left, dx=0.01), offset_ms=16))

    # first Right sample: nothing to blend with, so it comes out unfiltered
    right = shifted(POINT, dx=0.2)
    event = processor.process_frame(frame(right, offset_ms=32))
    assert list(event.hands) == [Role.RIGHT]
    assert event.right.landmarks == tuple(right)


def test_only_raw_cursor_jump_breaks_stability():
    # filter so slow that the smoothed cursor barely moves
    cfg = {"smoothing": {"min_cutoff": 0.01, "beta": 0.0}, "virtual_pad": {"stability_tolerance": 0.015}}

    processor = InputProcessor(cfg=cfg)
    events = collect(processor)
    processor.process_frame(frame(OPEN_PALM))
    # raw cursor moves 0.02: above the smoothed tolerance, below 1.5x of it
    processor.process_frame(frame(jittered_open_palm(0.008), offset_ms=16))
    assert events[-1].stable is True

    processor = InputProcessor(cfg=cfg)
    events = collect(processor)
    processor.process_frame(frame(OPEN_PALM))
    processor.process_frame(frame(jittered_open_palm(0.02), offset_ms=16))
    assert events[-1].cursor == events[0].cursor
    assert events[-1].stable is False


def test_lost_hand_reanchors_its_dead_zone_at_center():
    processor = InputProcessor(cfg={"virtual_pad": {"dead_zone": 0.1}, "axes": {"invert_x": False}})
    first = processor.process_frame(frame(shifted(POINT, dx=0.1)))  # tip x = 0.66
    assert first.right.cursor == pytest.approx((0.9, 0.4))

    # right hand gone, only a left hand in view
    gone = processor.process_frame(frame(shifted(POINT, dx=-0.25), offset_ms=16))
    assert list(gone.hands) == [Role.LEFT]

    # back within the old dead zone: a stale anchor would pin it to 0.9
    back = processor.process_frame(frame(shifted(POINT, dx=0.08), offset_ms=10000))
    assert back.right.cursor[0] == pytest.approx(0.85, abs=0.01)
    assert back.right.cursor[0] < 0.89
