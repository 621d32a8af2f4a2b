"""Tests for the orientation smoothing filter."""

import pytest

from lunar_guide.orientation import Orientation, OrientationSmoother


def test_first_sample_adopted_raw():
    smoother = OrientationSmoother(alpha=0.05)
    sample = Orientation(heading=123.0, pitch=45.0, roll=3.0)

    assert smoother.update(sample) == sample
    assert smoother.state == sample


def test_unknown_axes_pass_through_unchanged():
    smoother = OrientationSmoother()
    smoother.update(Orientation(heading=100.0, pitch=50.0, roll=0.0))

    partial = Orientation(heading=None, pitch=60.0, roll=None)
    assert smoother.update(partial) == partial
    assert smoother.state.heading is None

    # Previous state has no heading, so the next full sample is adopted raw
    full = Orientation(heading=10.0, pitch=20.0, roll=1.0)
    assert smoother.update(full) == full


def test_unknown_is_not_zero():
    orientation = Orientation.from_dict({"heading": None, "pitch": 0, "roll": None})
    assert orientation.heading is None
    assert orientation.pitch == 0.0
    assert not orientation.has_aim


def test_linear_smoothing_of_heading_and_pitch():
    smoother = OrientationSmoother(alpha=0.5)
    smoother.update(Orientation(heading=100.0, pitch=40.0, roll=0.0))

    result = smoother.update(Orientation(heading=110.0, pitch=60.0, roll=10.0))

    assert result.heading == pytest.approx(105.0)
    assert result.pitch == pytest.approx(50.0)
    assert result.roll == pytest.approx(5.0)


def test_roll_defaults_unknown_to_zero():
    smoother = OrientationSmoother(alpha=0.5)
    smoother.update(Orientation(heading=0.0, pitch=90.0, roll=None))

    result = smoother.update(Orientation(heading=0.0, pitch=90.0, roll=8.0))
    assert result.roll == pytest.approx(4.0)


def test_wraparound_moves_forward():
    smoother = OrientationSmoother(alpha=0.05)
    smoother.update(Orientation(heading=350.0, pitch=60.0))

    result = smoother.update(Orientation(heading=10.0, pitch=60.0))

    assert result.heading == pytest.approx(351.0)


def test_wraparound_moves_backward_across_zero():
    smoother = OrientationSmoother(alpha=0.05)
    smoother.update(Orientation(heading=10.0, pitch=60.0))

    result = smoother.update(Orientation(heading=350.0, pitch=60.0))

    assert result.heading == pytest.approx(9.0)


def test_repeated_sample_converges_monotonically():
    smoother = OrientationSmoother(alpha=0.05)
    smoother.update(Orientation(heading=300.0, pitch=10.0, roll=0.0))
    target = Orientation(heading=20.0, pitch=80.0, roll=0.0)

    last_heading_error = 80.0
    last_pitch_error = 70.0
    for _ in range(200):
        state = smoother.update(target)
        heading_error = abs(((target.heading - state.heading) + 180.0) % 360.0 - 180.0)
        pitch_error = abs(target.pitch - state.pitch)
        assert heading_error < last_heading_error
        assert pitch_error < last_pitch_error
        last_heading_error = heading_error
        last_pitch_error = pitch_error

    assert last_heading_error < 0.01
    assert last_pitch_error < 0.01


def test_reset_forgets_state():
    smoother = OrientationSmoother(alpha=0.05)
    smoother.update(Orientation(heading=100.0, pitch=50.0))
    smoother.reset()

    assert smoother.state is None
    sample = Orientation(heading=250.0, pitch=10.0)
    assert smoother.update(sample) == sample


@pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
def test_invalid_alpha_rejected(alpha):
    with pytest.raises(ValueError):
        OrientationSmoother(alpha=alpha)
