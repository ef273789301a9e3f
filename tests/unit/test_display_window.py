"""Tests for the live pyqtgraph display window.

Note: These require PyQt5 and pyqtgraph; skip if unavailable.
"""
import os

import pytest
import torch

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
pytest.importorskip("PyQt5")
pytest.importorskip("pyqtgraph")

from pointcloth.core.engine import TrialEngine  # noqa: E402
from pointcloth.export.sinks import MemorySink  # noqa: E402


class _StepClock:
    """Deterministic clock advancing one refresh per call."""

    def __init__(self, hz=60.0):
        self.k = 0
        self.hz = hz

    def __call__(self):
        t = self.k / self.hz
        self.k += 1
        return t


class TestDisplayWindow:
    @pytest.fixture(autouse=True)
    def _ensure_qapp(self):
        """Ensure QApplication exists for widget tests."""
        from PyQt5.QtWidgets import QApplication
        app = QApplication.instance()
        if app is None:
            self._app = QApplication([])
        else:
            self._app = app

    @pytest.fixture
    def make_window(self, trial_config, lattice_cloth):
        from pointcloth.gui.display_window import DisplayWindow

        sinks = []

        def make():
            def factory(surface, on_complete):
                sink = MemorySink()
                sinks.append(sink)
                return TrialEngine(trial_config, lattice_cloth, surface=surface,
                                   sink=sink, on_complete=on_complete)

            return DisplayWindow(factory, width=800, height=600, clock=_StepClock())

        return make, sinks

    def test_scatter_surface_present(self):
        from pointcloth.gui.display_window import ScatterSurface

        surface = ScatterSurface(200, 100)
        surface.clear()
        surface.draw_dots(torch.tensor([[10.0, 10.0], [20.0, 30.0]]), 3.0)
        surface.present()
        assert len(surface.scatter.points()) == 2

        surface.clear()
        surface.present()
        assert len(surface.scatter.points()) == 0

    def test_ticks_until_finished(self, make_window):
        make, sinks = make_window
        window = make()
        received = []
        window.trial_finished.connect(received.append)

        for _ in range(1000):
            if not window.engine.is_running:
                break
            window._on_tick()

        assert len(received) == 1
        assert window.result is received[0]
        assert not window.result.cancelled
        assert sinks[0].write_count == 1
        assert not window.running

    def test_close_cancels_trial(self, make_window):
        make, sinks = make_window
        window = make()
        window.show()
        for _ in range(5):
            window._on_tick()
        window.close()

        assert window.result is not None
        assert window.result.cancelled
        assert len(window.result.records) == 5
        assert sinks[0].closed
