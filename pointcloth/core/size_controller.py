"""Size-variation state machines for the point-light cloth.

The cloth's displayed size is a multiplicative factor relative to its sampled
size. Bounds are specified as absolute visual angles, so every cloth varies
over the same perceptual range regardless of its native pixel extent::

    min_scale = min_deg * pixels_per_degree / initial_diagonal_px
    max_scale = max_deg * pixels_per_degree / initial_diagonal_px

Controllers work on ``log(scale)`` so that equal steps are equal ratios.
Every controller exposes the same two operations: :meth:`step`, called once
per change of the displayed frame, and the side-effect-free :attr:`scale`.

Modes:
    frameByFrame: :class:`RandomWalkSize`, a reflecting log-scale random walk.
    interpolated: :class:`InterpolatedSize`, smooth log-space ramps between
        randomly chosen targets.
    none: :class:`ConstantSize`, scale fixed at 1.
"""

from __future__ import annotations

import math
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import torch

from pointcloth.errors import ConfigurationError

DEFAULT_PIXELS_PER_DEGREE = 50.0
DEFAULT_MIN_SIZE_DEG = 1.6
DEFAULT_MAX_SIZE_DEG = 7.3
DEFAULT_SCALING_RATIO = 1.75


def scale_bounds(
    diagonal_px: float,
    min_size_deg: float = DEFAULT_MIN_SIZE_DEG,
    max_size_deg: float = DEFAULT_MAX_SIZE_DEG,
    pixels_per_degree: float = DEFAULT_PIXELS_PER_DEGREE,
) -> Tuple[float, float]:
    """Convert absolute angular size limits to scale factors.

    Args:
        diagonal_px: Initial diagonal extent of the sampled cloth in pixels.
        min_size_deg: Smallest allowed cloth diagonal in degrees.
        max_size_deg: Largest allowed cloth diagonal in degrees.
        pixels_per_degree: Display conversion constant.

    Returns:
        ``(min_scale, max_scale)`` relative to the initial cloth size.

    Raises:
        ValueError: If ``diagonal_px`` is not positive.
        ConfigurationError: If the angular limits are not ``0 < min <= max``
            or ``pixels_per_degree`` is not positive.
    """
    if diagonal_px <= 0:
        raise ValueError(f"diagonal_px must be positive, got {diagonal_px}")
    if pixels_per_degree <= 0:
        raise ConfigurationError(
            f"pixels_per_degree must be positive, got {pixels_per_degree}"
        )
    if not 0 < min_size_deg <= max_size_deg:
        raise ConfigurationError(
            f"Size limits must satisfy 0 < min_size_deg <= max_size_deg, "
            f"got {min_size_deg} and {max_size_deg}"
        )
    return (
        min_size_deg * pixels_per_degree / diagonal_px,
        max_size_deg * pixels_per_degree / diagonal_px,
    )


@dataclass(frozen=True)
class SizeState:
    """Snapshot of a controller's internal log-scale state."""

    log_scale: float
    log_min: float
    log_max: float
    log_step: float
    direction: int


class BaseSizeController(ABC):
    """Common interface of size-variation controllers."""

    mode: str = "base"

    @property
    @abstractmethod
    def scale(self) -> float:
        """Current linear scale factor. Reading it never changes state."""
        ...

    @abstractmethod
    def step(self, direction: Optional[int] = None) -> float:
        """Advance once, for one change of the displayed frame.

        Args:
            direction: Force the proposed direction (``+1`` or ``-1``) instead
                of drawing it at random.

        Returns:
            The new linear scale.
        """
        ...

    @property
    def bounds(self) -> Tuple[float, float]:
        return (1.0, 1.0)

    def to_dict(self) -> Dict[str, Any]:
        low, high = self.bounds
        return {"mode": self.mode, "scale": self.scale, "min_scale": low, "max_scale": high}


class ConstantSize(BaseSizeController):
    """Size variation switched off: the scale is always exactly 1."""

    mode = "none"

    @property
    def scale(self) -> float:
        return 1.0

    def step(self, direction: Optional[int] = None) -> float:
        return 1.0


class _LogScaleController(BaseSizeController):
    """Shared log-space setup for the random-walk and interpolated modes."""

    def __init__(
        self,
        min_scale: float,
        max_scale: float,
        scaling_ratio: float = DEFAULT_SCALING_RATIO,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        if min_scale <= 0 or max_scale < min_scale:
            raise ConfigurationError(
                f"Scale bounds must satisfy 0 < min_scale <= max_scale, "
                f"got {min_scale} and {max_scale}"
            )
        if scaling_ratio <= 1.0:
            raise ConfigurationError(
                f"scaling_ratio must be greater than 1, got {scaling_ratio}"
            )
        self.min_scale = float(min_scale)
        self.max_scale = float(max_scale)
        self.scaling_ratio = float(scaling_ratio)
        self.generator = generator

        self.log_step = math.log(self.scaling_ratio)
        self.log_min = math.log(self.min_scale)
        self.log_max = math.log(self.max_scale)
        if self.log_step > self.log_max - self.log_min:
            warnings.warn(
                f"Scaling step ln({self.scaling_ratio:g}) exceeds the log-scale "
                f"range {self.log_max - self.log_min:.4f}; a reflected step can "
                f"leave the size bounds",
                UserWarning,
            )

        self.log_scale = self.log_min + self._uniform() * (self.log_max - self.log_min)
        self.direction = self._random_direction()

    def _uniform(self) -> float:
        return float(torch.rand(1, generator=self.generator, dtype=torch.float64))

    def _random_direction(self) -> int:
        return 1 if self._uniform() < 0.5 else -1

    def _in_bounds(self, value: float) -> bool:
        return self.log_min <= value <= self.log_max

    @property
    def scale(self) -> float:
        return math.exp(self.log_scale)

    @property
    def bounds(self) -> Tuple[float, float]:
        return (self.min_scale, self.max_scale)

    @property
    def state(self) -> SizeState:
        return SizeState(
            log_scale=self.log_scale,
            log_min=self.log_min,
            log_max=self.log_max,
            log_step=self.log_step,
            direction=self.direction,
        )


class RandomWalkSize(_LogScaleController):
    """Bounded, reflecting random walk on ``log(scale)``.

    Each step proposes ``log_scale + direction * ln(scaling_ratio)``. A
    proposal outside ``[log_min, log_max]`` is reflected: the direction flips
    and the flipped step is taken instead.

    Args:
        min_scale: Lower scale bound (inclusive).
        max_scale: Upper scale bound (inclusive).
        scaling_ratio: Multiplicative step, must be > 1.
        keep_direction: Keep the same direction for ``direction_steps``
            consecutive steps instead of redrawing it every step.
        direction_steps: Run length used when ``keep_direction`` is set.
        generator: Optional ``torch.Generator`` for all random draws.
    """

    mode = "frameByFrame"

    def __init__(
        self,
        min_scale: float,
        max_scale: float,
        scaling_ratio: float = DEFAULT_SCALING_RATIO,
        keep_direction: bool = False,
        direction_steps: int = 1,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        if direction_steps < 1:
            raise ConfigurationError(
                f"direction_steps must be at least 1, got {direction_steps}"
            )
        super().__init__(min_scale, max_scale, scaling_ratio, generator)
        self.keep_direction = bool(keep_direction)
        self.direction_steps = int(direction_steps)
        self._run_length = 0
        self.steps_taken = 0

    def _propose_direction(self) -> int:
        if self.keep_direction and 0 < self._run_length < self.direction_steps:
            return self.direction
        self._run_length = 0
        return self._random_direction()

    def step(self, direction: Optional[int] = None) -> float:
        if direction is None:
            direction = self._propose_direction()
        elif direction not in (1, -1):
            raise ValueError(f"direction must be +1 or -1, got {direction}")

        candidate = self.log_scale + direction * self.log_step
        if not self._in_bounds(candidate):
            direction = -direction
            self._run_length = 0
        self.log_scale += direction * self.log_step
        self.direction = direction
        self._run_length += 1
        self.steps_taken += 1
        return self.scale

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            scaling_ratio=self.scaling_ratio,
            keep_direction=self.keep_direction,
            direction_steps=self.direction_steps,
        )
        return data


class InterpolatedSize(_LogScaleController):
    """Smooth size changes between randomly chosen targets.

    A cycle picks a random direction, sets the target one ratio step away
    (clamped to the bounds) and ramps ``log(scale)`` linearly towards it over
    ``frame_count`` steps. When the target is reached a new cycle starts.

    Args:
        min_scale: Lower scale bound (inclusive).
        max_scale: Upper scale bound (inclusive).
        scaling_ratio: Ratio between a cycle's start and its target.
        frame_count: Steps per interpolation cycle.
        generator: Optional ``torch.Generator`` for all random draws.
    """

    mode = "interpolated"

    def __init__(
        self,
        min_scale: float,
        max_scale: float,
        scaling_ratio: float = DEFAULT_SCALING_RATIO,
        frame_count: int = 100,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        if frame_count < 1:
            raise ConfigurationError(f"frame_count must be at least 1, got {frame_count}")
        super().__init__(min_scale, max_scale, scaling_ratio, generator)
        self.frame_count = int(frame_count)
        self._begin_cycle(self.direction)

    def _begin_cycle(self, direction: int) -> None:
        self.direction = direction
        self.start_log = self.log_scale
        target = self.log_scale + direction * self.log_step
        self.target_log = min(max(target, self.log_min), self.log_max)
        self.progress = 0

    def step(self, direction: Optional[int] = None) -> float:
        self.progress += 1
        fraction = self.progress / self.frame_count
        self.log_scale = self.start_log + (self.target_log - self.start_log) * fraction
        if self.progress >= self.frame_count:
            self.log_scale = self.target_log
            if direction is None:
                direction = self._random_direction()
            self._begin_cycle(direction)
        return self.scale

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(scaling_ratio=self.scaling_ratio, frame_count=self.frame_count)
        return data
