"""
Test configuration and shared fixtures for pointcloth.
"""
import math
import os
import sys
from pathlib import Path

import pytest
import torch

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")
os.environ.setdefault("NUMEXPR_NUM_THREADS", "1")

try:
    torch.set_num_threads(1)
except RuntimeError:  # pragma: no cover - fallback when backend disallows
    pass


def make_lattice_records(nx=6, ny=6, frames=30, spacing=10.0, origin=(100.0, 100.0)):
    """Records of an ``nx`` x ``ny`` dot lattice drifting right and waving in y."""
    records = []
    for i in range(nx):
        for j in range(ny):
            dot_id = i * ny + j
            for f in range(frames):
                x = origin[0] + i * spacing + 2.0 * f
                y = origin[1] + j * spacing + 3.0 * math.sin(0.2 * f + 0.5 * i)
                records.append((dot_id, f, x, y))
    return records


@pytest.fixture
def lattice_records():
    """Factory for lattice trajectory records."""
    return make_lattice_records


@pytest.fixture
def lattice_cloth():
    """A 6 x 6 lattice cloth with 30 frames."""
    from pointcloth.core.trajectory import cloth_from_records

    return cloth_from_records(make_lattice_records())


@pytest.fixture
def trial_config():
    """Small, seeded trial: 4 x 4 grid, 30 frames at 30 fps, 60 Hz display."""
    return {
        "sampling": {"grid_x": 4, "grid_y": 4, "jitter": 0.0},
        "size": {"enabled": True, "mode": "frameByFrame", "scaling_ratio": 1.75},
        "isi": {"isi_ms": 0, "isi_slows": True, "mode": "blank", "hold_ms": 100},
        "playback": {"fps": 30.0},
        "display": {"screen_width": 800, "screen_height": 600, "refresh_hz": 60.0},
        "output": {"format": "memory", "cloth_name": "lattice"},
        "seed": 7,
    }


@pytest.fixture
def fixtures_dir():
    """Directory holding the YAML fixture files."""
    return Path(__file__).resolve().parent / "fixtures"
