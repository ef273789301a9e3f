"""Tests for scrambled-motion noise dots."""

import torch

from pointcloth.core.geometry import BoundingBox, bounding_center
from pointcloth.core.noise import NoiseField


def _positions(lattice_cloth):
    return lattice_cloth.positions.clone()


def test_disabled_noise_is_empty(lattice_cloth):
    positions = _positions(lattice_cloth)
    noise = NoiseField(num_dots=0).build(positions, bounding_center(positions[:, 0]))
    assert noise.shape == (0, positions.shape[1], 2)


def test_seeds_inside_buffered_region(lattice_cloth):
    positions = _positions(lattice_cloth)
    box = bounding_center(positions[:, 0])
    field = NoiseField(num_dots=50, buffer=2.0, dot_radius=3.0,
                       generator=torch.Generator().manual_seed(1))
    noise = field.build(positions, box)

    area = field.region(box)
    assert area == box.expanded(6.0)
    seeds = noise[:, 0]
    assert bool((seeds[:, 0] >= area.min_x).all() and (seeds[:, 0] <= area.max_x).all())
    assert bool((seeds[:, 1] >= area.min_y).all() and (seeds[:, 1] <= area.max_y).all())


def test_noise_follows_source_dot_motion(lattice_cloth):
    positions = _positions(lattice_cloth)
    field = NoiseField(num_dots=8, generator=torch.Generator().manual_seed(2))
    noise = field.build(positions, bounding_center(positions[:, 0]))

    assert noise.shape == (8, positions.shape[1], 2)
    source_motion = positions[field.sources] - positions[field.sources][:, :1]
    noise_motion = noise - noise[:, :1]
    assert torch.allclose(noise_motion, source_motion)


def test_seeded_noise_is_reproducible(lattice_cloth):
    positions = _positions(lattice_cloth)
    box = bounding_center(positions[:, 0])
    a = NoiseField(5, generator=torch.Generator().manual_seed(3)).build(positions, box)
    b = NoiseField(5, generator=torch.Generator().manual_seed(3)).build(positions, box)
    assert torch.equal(a, b)


def test_no_cloth_dots():
    positions = torch.zeros((0, 4, 2), dtype=torch.float64)
    noise = NoiseField(5).build(positions, BoundingBox(0.0, 0.0, 0.0, 0.0))
    assert noise.shape == (0, 4, 2)
