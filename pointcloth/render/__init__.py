"""Rendering: drawing-surface ports and the per-tick renderer."""

from .renderer import Renderer
from .surfaces import (
    DrawingSurface,
    MatplotlibSurface,
    RecordingSurface,
    stack_frames,
)

__all__ = [
    "Renderer",
    "DrawingSurface",
    "MatplotlibSurface",
    "RecordingSurface",
    "stack_frames",
]
