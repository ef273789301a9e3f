"""Core stimulus timing and rendering engine.

Modules:
    trajectory: Dot trajectory data model and CSV/JSON loaders
    geometry: Bounding boxes and cloth re-centering
    sampler: Grid-based spatial downsampling
    size_controller: Size-variation state machines
    scheduler: ISI-driven frame-advance state machine
    telemetry: Per-tick telemetry recorder
    noise: Scrambled-motion distractor dots
    engine: Trial setup pipeline and tick driver
    batch_executor: Parameter sweeps over trials
"""

from .geometry import BoundingBox, bounding_center, recenter
from .trajectory import Cloth, cloth_from_records, load_cloth
from .sampler import GridSampler, GridSelection
from .size_controller import (
    BaseSizeController,
    ConstantSize,
    InterpolatedSize,
    RandomWalkSize,
    scale_bounds,
)
from .scheduler import (
    FrameScheduler,
    Phase,
    ScheduleParams,
    TickAction,
    TickDecision,
    TrialStatus,
    decide,
    target_index,
)
from .telemetry import TelemetryRecord, TelemetryRecorder, records_to_csv
from .noise import NoiseField
from .engine import TrialEngine, TrialResult, run_headless

__all__ = [
    "BoundingBox",
    "bounding_center",
    "recenter",
    "Cloth",
    "cloth_from_records",
    "load_cloth",
    "GridSampler",
    "GridSelection",
    "BaseSizeController",
    "ConstantSize",
    "InterpolatedSize",
    "RandomWalkSize",
    "scale_bounds",
    "FrameScheduler",
    "Phase",
    "ScheduleParams",
    "TickAction",
    "TickDecision",
    "TrialStatus",
    "decide",
    "target_index",
    "TelemetryRecord",
    "TelemetryRecorder",
    "records_to_csv",
    "NoiseField",
    "TrialEngine",
    "TrialResult",
    "run_headless",
]
