"""Compose and draw one tick of the point-light cloth."""

from __future__ import annotations

from typing import Optional, Tuple

import torch

from pointcloth.render.surfaces import Color, DrawingSurface


class Renderer:
    """Scale, mirror and draw the selected dots for one display tick.

    The cloth is scaled about ``anchor`` (its reference-frame center);
    ``flipped`` mirrors horizontally and ``inverted`` vertically, both about
    the screen center. Noise dots are mirrored but never scaled.

    Args:
        surface: Drawing surface port.
        screen_center: ``(x, y)`` screen center in pixels.
        anchor: Scaling center in pixels.
        dot_radius: Dot radius in pixels.
        flipped: Mirror left/right.
        inverted: Mirror top/bottom.
        dot_color: RGB color of cloth dots.
        noise_color: RGB color of noise dots.
    """

    def __init__(
        self,
        surface: DrawingSurface,
        screen_center: Tuple[float, float],
        anchor: Tuple[float, float],
        dot_radius: float = 3.0,
        flipped: bool = False,
        inverted: bool = False,
        dot_color: Color = (1.0, 1.0, 1.0),
        noise_color: Optional[Color] = None,
    ) -> None:
        self.surface = surface
        self.screen_center = (float(screen_center[0]), float(screen_center[1]))
        self.anchor = (float(anchor[0]), float(anchor[1]))
        self.dot_radius = float(dot_radius)
        self.flipped = bool(flipped)
        self.inverted = bool(inverted)
        self.dot_color = dot_color
        self.noise_color = noise_color if noise_color is not None else dot_color

    def _mirror(self, points: torch.Tensor) -> torch.Tensor:
        if not (self.flipped or self.inverted):
            return points
        out = points.clone()
        cx, cy = self.screen_center
        if self.flipped:
            out[:, 0] = 2.0 * cx - out[:, 0]
        if self.inverted:
            out[:, 1] = 2.0 * cy - out[:, 1]
        return out

    def compose(
        self,
        points: torch.Tensor,
        scale: float = 1.0,
        noise: Optional[torch.Tensor] = None,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Screen positions of the cloth and noise dots for one tick.

        Args:
            points: Cloth positions ``[dots, 2]`` at the displayed frame.
            scale: Size factor applied as ``anchor + (p - anchor) * scale``.
            noise: Noise positions ``[noise, 2]``, drawn unscaled.

        Returns:
            ``(cloth_points, noise_points)``.
        """
        anchor = torch.tensor(self.anchor, dtype=points.dtype, device=points.device)
        cloth = anchor + (points - anchor) * scale
        cloth = self._mirror(cloth)
        if noise is None:
            noise = points.new_zeros((0, 2))
        else:
            noise = self._mirror(noise)
        return cloth, noise

    def draw(
        self,
        points: torch.Tensor,
        scale: float = 1.0,
        noise: Optional[torch.Tensor] = None,
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Clear the surface, draw the composed tick and present it."""
        cloth, noise_pts = self.compose(points, scale, noise)
        self.surface.clear()
        self.surface.draw_dots(cloth, self.dot_radius, self.dot_color)
        if noise_pts.shape[0] > 0:
            self.surface.draw_dots(noise_pts, self.dot_radius, self.noise_color)
        self.surface.present()
        return cloth, noise_pts

    def blank(self) -> None:
        """Present an empty frame."""
        self.surface.clear()
        self.surface.present()
