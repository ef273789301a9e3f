"""Bounding boxes and cloth re-centering."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import torch


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box of a 2-D point set, in screen pixels.

    Attributes:
        min_x: Smallest x coordinate.
        min_y: Smallest y coordinate.
        max_x: Largest x coordinate.
        max_y: Largest y coordinate.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def diagonal(self) -> float:
        """Diagonal extent ``sqrt(width² + height²)``."""
        return math.hypot(self.width, self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return (
            self.min_x + self.width / 2.0,
            self.min_y + self.height / 2.0,
        )

    def expanded(self, margin: float) -> "BoundingBox":
        """Return a copy grown by ``margin`` pixels on every side."""
        return BoundingBox(
            self.min_x - margin,
            self.min_y - margin,
            self.max_x + margin,
            self.max_y + margin,
        )

    @property
    def is_empty(self) -> bool:
        return self.width == 0.0 and self.height == 0.0


def bounding_center(points: torch.Tensor) -> BoundingBox:
    """Compute the bounding box of a point set.

    Args:
        points: Positions with shape ``[N, 2]``.

    Returns:
        :class:`BoundingBox`; its ``center`` is ``min + (max - min) / 2``.
        An empty point set yields a zero-sized box at the origin.
    """
    if points.numel() == 0:
        return BoundingBox(0.0, 0.0, 0.0, 0.0)
    mins = points.min(dim=0).values
    maxs = points.max(dim=0).values
    return BoundingBox(
        float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1])
    )


def recenter(
    positions: torch.Tensor,
    target_center: Tuple[float, float],
    reference_frame: int = 0,
) -> BoundingBox:
    """Translate a trajectory set so its reference-frame center hits a target.

    The translation is applied in place to every frame of every dot.

    Args:
        positions: Trajectories ``[dots, frames, 2]``; modified in place.
        target_center: Desired ``(x, y)`` center in pixels.
        reference_frame: Frame whose bounding box defines the current center.

    Returns:
        Bounding box of ``positions[:, reference_frame]`` after the move.
    """
    if positions.shape[0] == 0 or positions.shape[1] == 0:
        return bounding_center(positions.reshape(-1, 2))
    current = bounding_center(positions[:, reference_frame])
    cx, cy = current.center
    delta = torch.tensor(
        [target_center[0] - cx, target_center[1] - cy],
        dtype=positions.dtype,
        device=positions.device,
    )
    positions += delta
    return bounding_center(positions[:, reference_frame])
