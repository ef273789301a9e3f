"""Scrambled-motion distractor dots.

Noise dots share the local motion of the cloth but not its global form: each
noise dot starts at a uniformly random position inside the cloth's reference
bounding box (grown by ``buffer * dot_radius`` on every side) and then follows
the frame-to-frame displacement of one randomly chosen cloth dot.
"""

from typing import Optional

import torch

from pointcloth.core.geometry import BoundingBox


class NoiseField:
    """Generate distractor trajectories for a sampled cloth.

    Uses a per-instance ``torch.Generator`` when given so that noise placement
    never touches the global RNG state.

    Args:
        num_dots: Number of noise dots (0 disables noise).
        buffer: Margin around the cloth, in units of ``dot_radius``.
        dot_radius: Dot radius in pixels.
        generator: Optional random generator.
    """

    def __init__(
        self,
        num_dots: int = 0,
        buffer: float = 0.0,
        dot_radius: float = 3.0,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        self.num_dots = max(int(num_dots), 0)
        self.buffer = float(buffer)
        self.dot_radius = float(dot_radius)
        self.generator = generator
        self.sources: Optional[torch.Tensor] = None

    def region(self, reference_box: BoundingBox) -> BoundingBox:
        """Area in which noise dots are seeded."""
        return reference_box.expanded(self.buffer * self.dot_radius)

    def build(
        self,
        positions: torch.Tensor,
        reference_box: BoundingBox,
        reference_frame: int = 0,
    ) -> torch.Tensor:
        """Create noise trajectories.

        Args:
            positions: Cloth trajectories ``[dots, frames, 2]``.
            reference_box: Cloth bounding box at ``reference_frame``.
            reference_frame: Frame at which noise dots sit at their seeds.

        Returns:
            Noise trajectories ``[num_dots, frames, 2]``; an empty tensor when
            noise is disabled or the cloth has no dots.
        """
        dots, frames = int(positions.shape[0]), int(positions.shape[1])
        if self.num_dots == 0 or dots == 0 or frames == 0:
            self.sources = torch.empty(0, dtype=torch.long)
            return positions.new_zeros((0, frames, 2))

        area = self.region(reference_box)
        u = torch.rand(self.num_dots, 2, generator=self.generator, dtype=positions.dtype)
        seeds = torch.empty_like(u)
        seeds[:, 0] = area.min_x + u[:, 0] * area.width
        seeds[:, 1] = area.min_y + u[:, 1] * area.height

        self.sources = torch.randint(0, dots, (self.num_dots,), generator=self.generator)
        borrowed = positions.index_select(0, self.sources)
        displacement = borrowed - borrowed[:, reference_frame : reference_frame + 1]
        return seeds.unsqueeze(1) + displacement
