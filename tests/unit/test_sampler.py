"""Tests for grid-based spatial downsampling."""

import torch

from pointcloth.core.sampler import GridSampler
from pointcloth.core.trajectory import Cloth


def _static_cloth(points):
    positions = torch.tensor(points, dtype=torch.float64).unsqueeze(1)
    return Cloth(dot_ids=list(range(len(points))), positions=positions, frame_numbers=[0])


def test_two_by_two_grid_picks_nearest_corners():
    cloth = _static_cloth([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0], [10.0, 10.0]])
    selection = GridSampler(2, 2, jitter=0.0).sample(cloth)

    assert selection.cells == {(0, 0): 0, (0, 1): 2, (1, 0): 1, (1, 1): 3}
    # Scan order is x outer, y inner
    assert selection.indices == [0, 2, 1, 3]
    assert selection.anchors[(1, 1)] == (7.5, 7.5)


def test_selection_bounded_by_grid_and_unique(lattice_cloth):
    generator = torch.Generator().manual_seed(3)
    selection = GridSampler(4, 4, jitter=0.5, generator=generator).sample(lattice_cloth)
    assert len(selection) == 16
    assert len(set(selection.indices)) == len(selection.indices)


def test_exhausted_pool_leaves_cells_empty():
    cloth = _static_cloth([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0], [10.0, 10.0]])
    selection = GridSampler(3, 3).sample(cloth)
    assert len(selection) == 4
    assert sorted(selection.indices) == [0, 1, 2, 3]


def test_non_positive_grid_selects_nothing(lattice_cloth):
    assert len(GridSampler(0, 4).sample(lattice_cloth)) == 0
    assert len(GridSampler(4, -1).sample(lattice_cloth)) == 0
    assert GridSampler(0, 4).capacity == 0


def test_ties_go_to_input_order():
    cloth = _static_cloth([[0.0, 0.0], [0.0, 0.0], [10.0, 10.0]])
    selection = GridSampler(1, 1).sample(cloth)
    assert selection.indices == [0]


def test_seeded_jitter_is_reproducible(lattice_cloth):
    a = GridSampler(3, 3, jitter=1.0, generator=torch.Generator().manual_seed(11)).sample(lattice_cloth)
    b = GridSampler(3, 3, jitter=1.0, generator=torch.Generator().manual_seed(11)).sample(lattice_cloth)
    assert a.cells == b.cells


def test_sampler_does_not_touch_global_rng(lattice_cloth):
    torch.manual_seed(123)
    expected = torch.rand(1)
    torch.manual_seed(123)
    GridSampler(3, 3, jitter=1.0, generator=torch.Generator().manual_seed(5)).sample(lattice_cloth)
    assert torch.equal(torch.rand(1), expected)
