"""pointcloth: timing and rendering engine for point-light cloth stimuli.

A dense motion-capture dot cloud of a moving cloth is downsampled onto a
grid, centered on screen and shown frame by frame to a participant, with a
bounded random walk on its size and an inter-stimulus interval (ISI) between
frame advances. Every display tick is logged for later analysis.

Key Components:
    - core: Sampling, geometry, size variation, frame scheduling, telemetry
    - render: Drawing-surface ports and the per-tick renderer
    - export: CSV / HDF5 telemetry sinks
    - gui: PyQt5 live display window
    - cli: Command-line interface for headless runs and batch sweeps

Example:
    >>> from pointcloth import PointClothConfig, TrialEngine, run_headless
    >>> engine = TrialEngine.from_config(PointClothConfig(), "cloth.csv")
    >>> result = run_headless(engine)
"""

__version__ = "0.1.0"
__author__ = "pointcloth contributors"
__license__ = "MIT"

from pointcloth.config.schema import PointClothConfig
from pointcloth.core.engine import TrialEngine, TrialResult, run_headless
from pointcloth.core.trajectory import Cloth, cloth_from_records, load_cloth
from pointcloth.errors import ConfigurationError, DataError, DegeneracyWarning, PointClothError

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "PointClothConfig",
    "TrialEngine",
    "TrialResult",
    "run_headless",
    "Cloth",
    "cloth_from_records",
    "load_cloth",
    "PointClothError",
    "ConfigurationError",
    "DataError",
    "DegeneracyWarning",
]
