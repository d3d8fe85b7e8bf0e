import math

import pytest

from Angles import Curl, compute_finger_curls
from HandFrame import HandFrame
from PoseEstimator import FingerCurlPoseEstimator, PoseEstimate
from hand_fixtures import BASE_TS, FIST, OPEN_PALM, PINCH, POINT


def flat(landmarks):
    return HandFrame(handedness="Right", landmarks=landmarks, timestamp=BASE_TS).flatten()


def test_finger_curls_of_fixture_poses():
    open_curls = compute_finger_curls(OPEN_PALM)
    assert all(open_curls[f] is Curl.NONE for f in ("index", "middle", "ring", "pinky"))

    point_curls = compute_finger_curls(POINT)
    assert point_curls["index"] is Curl.NONE
    assert point_curls["middle"] is Curl.FULL


def test_point_pose_scores_high():
    estimate = FingerCurlPoseEstimator().estimate(flat(POINT))
    assert estimate.available
    assert estimate.score("point") == pytest.approx(10.0)
    assert estimate.is_confident("point", 7.0)


def test_open_palm_is_not_a_point():
    estimate = FingerCurlPoseEstimator().estimate(flat(OPEN_PALM))
    assert estimate.score("point") < 7.0
    assert estimate.score("open_palm") == pytest.approx(10.0)


def test_pinch_is_not_a_point():
    assert FingerCurlPoseEstimator().estimate(flat(PINCH)).score("point") < 7.0


def test_fist_scores_as_fist():
    estimate = FingerCurlPoseEstimator().estimate(flat(FIST))
    assert estimate.score("fist") >= 7.0


def test_wrong_length_is_unavailable_not_an_error():
    estimate = FingerCurlPoseEstimator().estimate([0.5] * 60)
    assert not estimate.available
    assert "63" in estimate.reason
    assert estimate.score("point") == 0.0
    assert not estimate.is_confident("point", 0.0)


def test_non_finite_values_are_unavailable():
    values = flat(POINT)
    values[10] = math.nan
    assert not FingerCurlPoseEstimator().estimate(values).available


def test_unavailable_helper():
    estimate = PoseEstimate.unavailable("no model")
    assert estimate.reason == "no model"
    assert estimate.scores == {}
