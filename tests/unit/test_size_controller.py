"""Tests for the size-variation state machines."""

import math

import pytest
import torch

from pointcloth.core.size_controller import (
    ConstantSize,
    InterpolatedSize,
    RandomWalkSize,
    scale_bounds,
)
from pointcloth.errors import ConfigurationError


def _gen(seed=0):
    return torch.Generator().manual_seed(seed)


class TestScaleBounds:
    def test_angular_limits_relative_to_diagonal(self):
        low, high = scale_bounds(100.0, 1.6, 7.3, 50.0)
        assert low == pytest.approx(0.8)
        assert high == pytest.approx(3.65)

    def test_non_positive_diagonal(self):
        with pytest.raises(ValueError):
            scale_bounds(0.0)

    def test_min_above_max(self):
        with pytest.raises(ConfigurationError):
            scale_bounds(100.0, 8.0, 2.0)

    def test_bad_pixels_per_degree(self):
        with pytest.raises(ConfigurationError):
            scale_bounds(100.0, pixels_per_degree=0.0)


class TestRandomWalkSize:
    def test_initial_state_within_bounds(self):
        walk = RandomWalkSize(0.5, 4.0, generator=_gen(1))
        assert 0.5 <= walk.scale <= 4.0
        assert walk.direction in (1, -1)
        assert walk.bounds == (0.5, 4.0)

    @pytest.mark.parametrize("pattern", ["up", "down", "alternate", "random"])
    def test_scale_stays_in_bounds_for_any_direction_sequence(self, pattern):
        walk = RandomWalkSize(0.5, 4.0, scaling_ratio=1.75, generator=_gen(2))
        for i in range(500):
            if pattern == "up":
                scale = walk.step(1)
            elif pattern == "down":
                scale = walk.step(-1)
            elif pattern == "alternate":
                scale = walk.step(1 if i % 2 else -1)
            else:
                scale = walk.step()
            assert 0.5 - 1e-9 <= scale <= 4.0 + 1e-9

    def test_reflects_at_upper_bound(self):
        walk = RandomWalkSize(0.5, 4.0, generator=_gen(3))
        walk.log_scale = walk.log_max
        walk.step(1)
        assert walk.direction == -1
        assert walk.log_scale == pytest.approx(walk.log_max - walk.log_step)

    def test_reflects_at_lower_bound(self):
        walk = RandomWalkSize(0.5, 4.0, generator=_gen(3))
        walk.log_scale = walk.log_min
        walk.step(-1)
        assert walk.direction == 1
        assert walk.log_scale == pytest.approx(walk.log_min + walk.log_step)

    def test_step_is_one_ratio(self):
        walk = RandomWalkSize(0.01, 100.0, scaling_ratio=1.75, generator=_gen(4))
        walk.log_scale = 0.0
        assert walk.step(1) == pytest.approx(1.75)
        assert walk.step(-1) == pytest.approx(1.0)

    def test_reading_scale_has_no_side_effects(self):
        walk = RandomWalkSize(0.5, 4.0, generator=_gen(5))
        state = walk.state
        _ = walk.scale
        _ = walk.scale
        assert walk.state == state

    def test_invalid_direction(self):
        walk = RandomWalkSize(0.5, 4.0, generator=_gen(6))
        with pytest.raises(ValueError):
            walk.step(2)

    def test_ratio_must_exceed_one(self):
        with pytest.raises(ConfigurationError):
            RandomWalkSize(0.5, 4.0, scaling_ratio=1.0)

    def test_bad_bounds(self):
        with pytest.raises(ConfigurationError):
            RandomWalkSize(2.0, 1.0)

    def test_warns_when_step_exceeds_range(self):
        with pytest.warns(UserWarning, match="exceeds"):
            RandomWalkSize(1.0, 1.5, scaling_ratio=1.75, generator=_gen(7))

    def test_keep_direction_holds_for_run_length(self):
        walk = RandomWalkSize(
            0.001, 1000.0, keep_direction=True, direction_steps=3, generator=_gen(8)
        )
        walk.log_scale = 0.0
        directions = []
        for _ in range(9):
            walk.step()
            directions.append(walk.direction)
        for block in range(3):
            run = directions[block * 3:(block + 1) * 3]
            assert len(set(run)) == 1

    def test_default_redraws_direction_every_step(self):
        # direction_steps is ignored unless keep_direction is set
        walk = RandomWalkSize(
            0.001, 1000.0, keep_direction=False, direction_steps=5, generator=_gen(13)
        )
        walk.log_scale = 0.0
        draws = iter([1, -1] * 10)
        calls = []

        def alternate():
            calls.append(1)
            return next(draws)

        walk._random_direction = alternate
        directions = []
        for _ in range(10):
            walk.step()
            directions.append(walk.direction)

        assert len(calls) == 10
        assert directions == [1, -1] * 5
        assert walk.log_scale == pytest.approx(0.0)

    def test_default_direction_changes_inside_would_be_runs(self):
        walk = RandomWalkSize(
            0.001, 1000.0, keep_direction=False, direction_steps=3, generator=_gen(14)
        )
        walk.log_scale = 0.0
        directions = []
        for _ in range(30):
            walk.step()
            directions.append(walk.direction)
        runs = [directions[i:i + 3] for i in range(0, 30, 3)]
        assert any(len(set(run)) > 1 for run in runs)

    def test_seeded_walks_match(self):
        a = RandomWalkSize(0.5, 4.0, generator=_gen(9))
        b = RandomWalkSize(0.5, 4.0, generator=_gen(9))
        assert [a.step() for _ in range(20)] == [b.step() for _ in range(20)]


class TestInterpolatedSize:
    def test_linear_ramp_reaches_target(self):
        ctl = InterpolatedSize(0.5, 4.0, scaling_ratio=1.75, frame_count=4, generator=_gen(10))
        start, target = ctl.start_log, ctl.target_log
        assert ctl.log_min <= target <= ctl.log_max

        ctl.step()
        ctl.step()
        assert ctl.log_scale == pytest.approx(start + (target - start) * 0.5)
        ctl.step()
        ctl.step()
        assert ctl.log_scale == pytest.approx(target)
        # A new cycle starts from the reached target
        assert ctl.start_log == pytest.approx(target)
        assert ctl.progress == 0

    def test_stays_in_bounds(self):
        ctl = InterpolatedSize(0.5, 4.0, frame_count=3, generator=_gen(11))
        for _ in range(300):
            scale = ctl.step()
            assert 0.5 - 1e-9 <= scale <= 4.0 + 1e-9

    def test_frame_count_validated(self):
        with pytest.raises(ConfigurationError):
            InterpolatedSize(0.5, 4.0, frame_count=0)


class TestConstantSize:
    def test_scale_is_exactly_one(self):
        ctl = ConstantSize()
        assert ctl.scale == 1.0
        for _ in range(5):
            assert ctl.step() == 1.0
        assert ctl.bounds == (1.0, 1.0)
        assert ctl.to_dict()["mode"] == "none"


def test_log_space_constants():
    walk = RandomWalkSize(0.5, 4.0, scaling_ratio=1.75, generator=_gen(12))
    assert walk.log_step == pytest.approx(math.log(1.75))
    assert walk.log_min == pytest.approx(math.log(0.5))
    assert walk.log_max == pytest.approx(math.log(4.0))
