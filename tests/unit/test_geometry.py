"""Tests for bounding boxes and re-centering."""

import math

import pytest
import torch

from pointcloth.core.geometry import BoundingBox, bounding_center, recenter


def test_bounding_center_extent_and_center():
    box = bounding_center(torch.tensor([[0.0, 0.0], [4.0, 2.0], [1.0, 1.0]]))
    assert box.width == pytest.approx(4.0)
    assert box.height == pytest.approx(2.0)
    assert box.center == pytest.approx((2.0, 1.0))
    assert box.diagonal == pytest.approx(math.sqrt(20.0))


def test_empty_point_set_gives_zero_box_at_origin():
    box = bounding_center(torch.zeros((0, 2)))
    assert box == BoundingBox(0.0, 0.0, 0.0, 0.0)
    assert box.is_empty
    assert box.diagonal == 0.0


def test_expanded_grows_every_side():
    box = BoundingBox(0.0, 0.0, 10.0, 5.0).expanded(2.0)
    assert (box.min_x, box.min_y, box.max_x, box.max_y) == (-2.0, -2.0, 12.0, 7.0)


def test_recenter_moves_reference_center_to_target():
    torch.manual_seed(0)
    positions = torch.rand(5, 4, 2, dtype=torch.float64) * 50.0
    before = positions.clone()

    box = recenter(positions, (400.0, 300.0))

    assert box.center == pytest.approx((400.0, 300.0))
    assert bounding_center(positions[:, 0]).center == pytest.approx((400.0, 300.0))
    # Every frame of every dot moves by the same translation
    delta = positions - before
    assert torch.allclose(delta, delta[0, 0].expand_as(delta))


def test_recenter_uses_reference_frame():
    positions = torch.tensor(
        [[[0.0, 0.0], [10.0, 10.0]], [[2.0, 2.0], [20.0, 20.0]]], dtype=torch.float64
    )
    recenter(positions, (0.0, 0.0), reference_frame=1)
    assert bounding_center(positions[:, 1]).center == pytest.approx((0.0, 0.0))
