import math

import pytest

from AdaptiveFilter import AdaptiveFilter, smoothing_factor


def test_first_sample_passes_through_unchanged():
    f = AdaptiveFilter(min_cutoff=1.2, beta=0.002, d_cutoff=1.0)
    assert f.filter(0.4217, 1000.0) == 0.4217


def test_constant_input_converges():
    f = AdaptiveFilter(min_cutoff=1.2, beta=0.002, d_cutoff=1.0)
    f.filter(0.0, 0.0)
    out = None
    for i in range(1, 500):
        out = f.filter(1.0, i * 16.0)
    assert out == pytest.approx(1.0, abs=1e-6)


def test_output_lags_a_step_change():
    f = AdaptiveFilter(min_cutoff=1.2, beta=0.0, d_cutoff=1.0)
    f.filter(0.0, 0.0)
    out = f.filter(1.0, 16.0)
    assert 0.0 < out < 1.0


def test_higher_beta_follows_fast_motion_closer():
    slow = AdaptiveFilter(min_cutoff=1.0, beta=0.0, d_cutoff=1.0)
    fast = AdaptiveFilter(min_cutoff=1.0, beta=5.0, d_cutoff=1.0)
    for f in (slow, fast):
        f.filter(0.0, 0.0)
    for i in range(1, 10):
        target = i * 0.1
        a = slow.filter(target, i * 16.0)
        b = fast.filter(target, i * 16.0)
    assert abs(target - b) < abs(target - a)


def test_state_is_overwritten_after_each_call():
    f = AdaptiveFilter()
    f.filter(0.0, 0.0)
    out = f.filter(0.5, 20.0)
    assert f.last_value == out
    assert f.last_timestamp == 20.0
    assert f.last_derivative is not None and f.last_derivative > 0.0


def test_duplicate_timestamp_does_not_blow_up():
    f = AdaptiveFilter()
    f.filter(0.3, 100.0)
    out = f.filter(0.9, 100.0)
    assert math.isfinite(out)
    assert out == pytest.approx(0.3, abs=1e-6)


def test_reset_makes_next_sample_a_first_sample():
    f = AdaptiveFilter()
    f.filter(0.0, 0.0)
    f.filter(1.0, 16.0)
    f.reset()
    assert f.filter(0.75, 32.0) == 0.75


def test_smoothing_factor_grows_with_cutoff():
    assert smoothing_factor(0.016, 1.0) < smoothing_factor(0.016, 10.0) < 1.0


def test_from_config_reads_smoothing_section():
    f = AdaptiveFilter.from_config({"smoothing": {"min_cutoff": 2.0, "beta": 0.5, "d_cutoff": 3.0}})
    assert (f.min_cutoff, f.beta, f.d_cutoff) == (2.0, 0.5, 3.0)
