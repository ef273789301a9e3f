"""Live stimulus window.

An axis-free pyqtgraph view draws the cloth on a black background; a
``QTimer`` supplies the display ticks and the engine decides what each tick
shows. Ticking stops when the trial ends, and closing the window early
cancels the trial.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional, Tuple

import torch
from PyQt5 import QtCore, QtWidgets
import pyqtgraph as pg  # type: ignore

from pointcloth.core.engine import TrialEngine, TrialResult
from pointcloth.render.surfaces import Color, DrawingSurface


def _to_rgb255(color: Color) -> Tuple[int, int, int]:
    return tuple(int(round(255 * c)) for c in color)  # type: ignore[return-value]


class ScatterSurface(DrawingSurface):
    """Drawing surface backed by a ``pg.ScatterPlotItem``.

    Dot sets added between :meth:`clear` and :meth:`present` are pushed to
    the scatter item in one ``setData`` call.

    Args:
        width: View width in pixels.
        height: View height in pixels.
        background: RGB background color in [0, 1].
    """

    def __init__(
        self,
        width: int = 1280,
        height: int = 720,
        background: Color = (0.0, 0.0, 0.0),
    ) -> None:
        self.width = int(width)
        self.height = int(height)
        self.widget = pg.PlotWidget()
        self.widget.setBackground(_to_rgb255(background))
        self.widget.hideAxis("left")
        self.widget.hideAxis("bottom")
        self.widget.setMouseEnabled(x=False, y=False)
        self.widget.setMenuEnabled(False)
        view = self.widget.getViewBox()
        view.setRange(xRange=(0, self.width), yRange=(0, self.height), padding=0)
        # Screen y grows downward
        view.invertY(True)
        view.setAspectLocked(True)

        self.scatter = pg.ScatterPlotItem(pxMode=True)
        self.widget.addItem(self.scatter)
        self._spots: List[dict] = []

    def clear(self) -> None:
        self._spots = []

    def draw_dots(
        self,
        points: torch.Tensor,
        radius: float,
        color: Color = (1.0, 1.0, 1.0),
    ) -> None:
        xy = points.detach().cpu().numpy()
        brush = pg.mkBrush(*_to_rgb255(color))
        for x, y in xy:
            self._spots.append(
                {"pos": (float(x), float(y)), "size": 2.0 * radius, "brush": brush, "pen": None}
            )

    def present(self) -> None:
        if self._spots:
            self.scatter.setData(self._spots)
        else:
            self.scatter.clear()

    def close(self) -> None:
        self.scatter.clear()


class DisplayWindow(QtWidgets.QWidget):
    """Window that runs a trial at the display refresh rate.

    Signals:
        trial_finished(object): emitted once with the :class:`TrialResult`.
    """

    trial_finished = QtCore.pyqtSignal(object)

    def __init__(
        self,
        engine_factory: Callable[..., TrialEngine],
        width: int = 1280,
        height: int = 720,
        background: Color = (0.0, 0.0, 0.0),
        interval_ms: int = 0,
        clock: Callable[[], float] = time.perf_counter,
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("pointcloth")
        self.surface = ScatterSurface(width, height, background)
        self.engine = engine_factory(surface=self.surface, on_complete=self._on_complete)
        self.result: Optional[TrialResult] = None
        self._clock = clock

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.surface.widget)
        self.resize(width, height)

        self._timer = QtCore.QTimer(self)
        self._timer.setTimerType(QtCore.Qt.PreciseTimer)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._on_tick)

    def start(self) -> None:
        self._timer.start()

    @property
    def running(self) -> bool:
        return self._timer.isActive()

    def _on_tick(self) -> None:
        if not self.engine.tick(self._clock()):
            self._timer.stop()

    def _on_complete(self, result: TrialResult) -> None:
        self._timer.stop()
        self.result = result
        self.trial_finished.emit(result)

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self._timer.stop()
        if self.engine.is_running:
            self.engine.cancel()
        self.surface.close()
        super().closeEvent(event)
