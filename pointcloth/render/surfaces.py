"""Drawing surfaces the renderer paints dots onto.

A surface is a narrow port: the renderer clears it, adds dot sets and then
presents the composed frame. Hosts provide the concrete surface (an
offscreen matplotlib canvas, a pyqtgraph scatter item, or a recording buffer
in tests).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

Color = Tuple[float, float, float]


class DrawingSurface(ABC):
    """Abstract drawing surface.

    Subclasses implement :meth:`clear` and :meth:`draw_dots`; :meth:`present`
    and :meth:`close` are optional hooks.
    """

    @abstractmethod
    def clear(self) -> None:
        """Start a new, empty frame."""
        ...

    @abstractmethod
    def draw_dots(
        self,
        points: torch.Tensor,
        radius: float,
        color: Color = (1.0, 1.0, 1.0),
    ) -> None:
        """Add dots at ``points`` (``[N, 2]`` pixels) to the current frame."""
        ...

    def present(self) -> None:
        """Show the composed frame."""

    def close(self) -> None:
        """Release any resources held by the surface."""


class RecordingSurface(DrawingSurface):
    """Headless surface that keeps every presented frame in memory.

    Attributes:
        frames: One ``[K, 2]`` tensor per presented frame, all dot sets of the
            frame concatenated. Blank frames are ``[0, 2]``.
    """

    def __init__(self) -> None:
        self.frames: List[torch.Tensor] = []
        self._pending: List[torch.Tensor] = []
        self.clear_count = 0
        self.closed = False

    def clear(self) -> None:
        self._pending = []
        self.clear_count += 1

    def draw_dots(
        self,
        points: torch.Tensor,
        radius: float,
        color: Color = (1.0, 1.0, 1.0),
    ) -> None:
        self._pending.append(points.detach().reshape(-1, 2).clone())

    def present(self) -> None:
        if self._pending:
            self.frames.append(torch.cat(self._pending, dim=0))
        else:
            self.frames.append(torch.zeros((0, 2), dtype=torch.float64))
        self._pending = []

    def close(self) -> None:
        self.closed = True

    @property
    def blank_frames(self) -> int:
        return sum(1 for f in self.frames if f.shape[0] == 0)


class MatplotlibSurface(DrawingSurface):
    """Offscreen matplotlib canvas that captures each presented frame.

    Frames are rendered with the Agg backend, black background and white
    dots. When ``frames_dir`` is set every frame is written as
    ``frame_00000.png``; otherwise RGB arrays are kept in :attr:`images`.

    Args:
        width: Canvas width in pixels.
        height: Canvas height in pixels.
        frames_dir: Optional directory for PNG output.
        background: Background RGB color.
        dpi: Figure resolution.
    """

    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        frames_dir: Optional[Union[str, Path]] = None,
        background: Color = (0.0, 0.0, 0.0),
        dpi: int = 100,
    ) -> None:
        from matplotlib.backends.backend_agg import FigureCanvasAgg
        from matplotlib.figure import Figure

        self.width = int(width)
        self.height = int(height)
        self.dpi = int(dpi)
        self.frames_dir = Path(frames_dir) if frames_dir is not None else None
        if self.frames_dir is not None:
            self.frames_dir.mkdir(parents=True, exist_ok=True)

        self.figure = Figure(figsize=(self.width / self.dpi, self.height / self.dpi), dpi=self.dpi)
        self.canvas = FigureCanvasAgg(self.figure)
        self.axes = self.figure.add_axes([0.0, 0.0, 1.0, 1.0])
        self.background = background
        self.images: List[np.ndarray] = []
        self.frame_count = 0
        self._prepare_axes()

    def _prepare_axes(self) -> None:
        self.axes.set_facecolor(self.background)
        self.axes.set_xlim(0, self.width)
        # Screen y grows downward
        self.axes.set_ylim(self.height, 0)
        self.axes.set_axis_off()
        self.figure.patch.set_facecolor(self.background)

    def clear(self) -> None:
        self.axes.clear()
        self._prepare_axes()

    def draw_dots(
        self,
        points: torch.Tensor,
        radius: float,
        color: Color = (1.0, 1.0, 1.0),
    ) -> None:
        if points.numel() == 0:
            return
        xy = points.detach().cpu().numpy()
        # scatter sizes are in points², radius is in pixels
        size_pt = (2.0 * radius * 72.0 / self.dpi) ** 2
        self.axes.scatter(xy[:, 0], xy[:, 1], s=size_pt, c=[color], linewidths=0)

    def present(self) -> None:
        self.canvas.draw()
        if self.frames_dir is not None:
            path = self.frames_dir / f"frame_{self.frame_count:05d}.png"
            self.figure.savefig(path, dpi=self.dpi, facecolor=self.background)
        else:
            rgba = np.asarray(self.canvas.buffer_rgba())
            self.images.append(rgba[..., :3].copy())
        self.frame_count += 1

    def close(self) -> None:
        self.figure.clear()


def stack_frames(frames: Sequence[np.ndarray]) -> np.ndarray:
    """Stack captured RGB frames into ``[T, H, W, 3]``."""
    if not frames:
        return np.zeros((0, 0, 0, 3), dtype=np.uint8)
    return np.stack(list(frames), axis=0)
