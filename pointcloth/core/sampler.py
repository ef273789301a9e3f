"""Grid-based spatial downsampling of a dense dot cloud.

The cloth's reference-frame bounding box is partitioned into a
``grid_x`` x ``grid_y`` lattice. Cells are visited in scan order (x outer,
y inner); each cell claims the nearest dot that no earlier cell has claimed,
measured from a (optionally jittered) anchor at the cell center.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import torch

from pointcloth.core.trajectory import Cloth

Cell = Tuple[int, int]


@dataclass
class GridSelection:
    """Result of grid sampling.

    Attributes:
        cells: Mapping ``(ix, iy) -> row index`` into the source cloth, in
            insertion (scan) order. Unfilled cells are absent.
        anchors: Anchor point used for each filled cell.
    """

    cells: Dict[Cell, int] = field(default_factory=dict)
    anchors: Dict[Cell, Tuple[float, float]] = field(default_factory=dict)

    @property
    def indices(self) -> List[int]:
        return list(self.cells.values())

    def __len__(self) -> int:
        return len(self.cells)


class GridSampler:
    """Pick one representative dot per grid cell.

    Args:
        grid_x: Number of cells along x. Values <= 0 select nothing.
        grid_y: Number of cells along y. Values <= 0 select nothing.
        jitter: Anchor randomisation as a fraction of the cell size; 0 puts
            every anchor exactly at its cell center.
        generator: Optional ``torch.Generator`` for the anchor jitter. Without
            one the global torch RNG is used.

    Example:
        >>> sampler = GridSampler(4, 4, jitter=0.5, generator=torch.Generator().manual_seed(1))
        >>> selection = sampler.sample(cloth)
        >>> len(selection) <= 16
        True
    """

    def __init__(
        self,
        grid_x: int,
        grid_y: int,
        jitter: float = 0.0,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        self.grid_x = int(grid_x)
        self.grid_y = int(grid_y)
        self.jitter = float(jitter)
        self.generator = generator

    @property
    def capacity(self) -> int:
        if self.grid_x <= 0 or self.grid_y <= 0:
            return 0
        return self.grid_x * self.grid_y

    def _uniform_pair(self) -> torch.Tensor:
        return torch.rand(2, generator=self.generator, dtype=torch.float64)

    def sample(self, cloth: Cloth, reference_frame: int = 0) -> GridSelection:
        """Select dots from ``cloth`` using its ``reference_frame`` positions.

        Returns:
            :class:`GridSelection` with at most ``grid_x * grid_y`` entries and
            no repeated dot. Ties in distance go to the earlier dot.
        """
        selection = GridSelection()
        if self.capacity == 0 or cloth.num_dots == 0 or cloth.num_frames == 0:
            return selection

        points = cloth.frame_points(reference_frame)
        box = cloth.bounding_box(reference_frame)
        cell_w = box.width / self.grid_x
        cell_h = box.height / self.grid_y

        available = torch.ones(cloth.num_dots, dtype=torch.bool)
        inf = torch.tensor(float("inf"), dtype=points.dtype)

        for ix in range(self.grid_x):
            for iy in range(self.grid_y):
                if not bool(available.any()):
                    return selection
                u = self._uniform_pair()
                anchor_x = box.min_x + (ix + self.jitter * (float(u[0]) - 0.5) + 0.5) * cell_w
                anchor_y = box.min_y + (iy + self.jitter * (float(u[1]) - 0.5) + 0.5) * cell_h
                anchor = torch.tensor([anchor_x, anchor_y], dtype=points.dtype)

                distances = torch.linalg.norm(points - anchor, dim=1)
                distances = torch.where(available, distances, inf)
                # argmin returns the first minimum, so ties favour input order
                best = int(torch.argmin(distances))
                available[best] = False
                selection.cells[(ix, iy)] = best
                selection.anchors[(ix, iy)] = (anchor_x, anchor_y)

        return selection

    def to_dict(self) -> Dict[str, Any]:
        return {"grid_x": self.grid_x, "grid_y": self.grid_y, "jitter": self.jitter}
