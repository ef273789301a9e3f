"""Telemetry export sinks.

The engine hands the complete, immutable telemetry log and the trial summary
to a sink exactly once, at trial end. Sinks decide where the data goes:
memory (tests), a CSV file plus a JSON summary, or an HDF5 file.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from pointcloth.core.telemetry import TelemetryRecord, records_to_csv

PathLike = Union[str, Path]


def default_filename(cloth_name: str, timestamp: Optional[str] = None, suffix: str = ".csv") -> str:
    """Build ``<clothName>_frameByFrame_<timestamp><suffix>``."""
    if timestamp is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_name = "".join(c if c.isalnum() or c in "_-" else "_" for c in cloth_name)
    return f"{safe_name}_frameByFrame_{timestamp}{suffix}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return float(value)
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


class ExportSink(ABC):
    """Destination of a finished trial's telemetry."""

    @abstractmethod
    def write(
        self,
        records: Sequence[TelemetryRecord],
        summary: Dict[str, Any],
    ) -> Optional[Path]:
        """Persist the log and summary; return the main output path if any."""
        ...

    def close(self) -> None:
        """Release resources. Safe to call more than once."""


class MemorySink(ExportSink):
    """Keep the exported log in memory."""

    def __init__(self) -> None:
        self.records: Tuple[TelemetryRecord, ...] = ()
        self.summary: Dict[str, Any] = {}
        self.write_count = 0
        self.closed = False

    def write(
        self,
        records: Sequence[TelemetryRecord],
        summary: Dict[str, Any],
    ) -> Optional[Path]:
        self.records = tuple(records)
        self.summary = dict(summary)
        self.write_count += 1
        return None

    def close(self) -> None:
        self.closed = True

    def csv_text(self) -> str:
        return records_to_csv(self.records)


class CsvExportSink(ExportSink):
    """Write ``<clothName>_frameByFrame_<timestamp>.csv`` plus a JSON summary.

    Args:
        output_dir: Directory for output files (created if missing).
        cloth_name: Stimulus name used in the file name.
        timestamp: Fixed timestamp string; the current time when ``None``.
    """

    def __init__(
        self,
        output_dir: PathLike,
        cloth_name: str = "cloth",
        timestamp: Optional[str] = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.cloth_name = cloth_name
        self.timestamp = timestamp
        self.path: Optional[Path] = None
        self.summary_path: Optional[Path] = None

    def write(
        self,
        records: Sequence[TelemetryRecord],
        summary: Dict[str, Any],
    ) -> Optional[Path]:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.output_dir / default_filename(self.cloth_name, self.timestamp)
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(records_to_csv(records))

        self.summary_path = self.path.with_name(self.path.stem + "_summary.json")
        with open(self.summary_path, "w") as f:
            json.dump(_jsonable(summary), f, indent=2)
        return self.path


class Hdf5ExportSink(ExportSink):
    """Write telemetry columns and the summary into one HDF5 file.

    Layout: ``/telemetry/<column>`` datasets (NaN for absent values, frame
    index -1 for blank ticks) and the summary as attributes of ``/summary``.

    Raises:
        ImportError: At write time if h5py is not installed.
    """

    def __init__(
        self,
        output_dir: PathLike,
        cloth_name: str = "cloth",
        timestamp: Optional[str] = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.cloth_name = cloth_name
        self.timestamp = timestamp
        self.path: Optional[Path] = None

    def write(
        self,
        records: Sequence[TelemetryRecord],
        summary: Dict[str, Any],
    ) -> Optional[Path]:
        try:
            import h5py
        except ImportError:
            raise ImportError(
                "h5py is required for HDF5 output. Install with: pip install h5py"
            )

        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.output_dir / default_filename(
            self.cloth_name, self.timestamp, suffix=".h5"
        )

        def numeric(values):
            return np.array([np.nan if v is None else v for v in values], dtype=np.float64)

        with h5py.File(self.path, "w") as f:
            grp = f.create_group("telemetry")
            grp.create_dataset("cloth_width", data=numeric(r.cloth_width for r in records))
            grp.create_dataset("cloth_height", data=numeric(r.cloth_height for r in records))
            grp.create_dataset("scale", data=numeric(r.scale for r in records))
            grp.create_dataset(
                "frame",
                data=np.array([-1 if r.is_blank else r.frame for r in records], dtype=np.int64),
            )
            grp.create_dataset(
                "schedule_frame",
                data=np.array(
                    [-1 if r.schedule_frame is None else r.schedule_frame for r in records],
                    dtype=np.int64,
                ),
            )
            grp.create_dataset("elapsed_s", data=numeric(r.elapsed_s for r in records))
            grp.create_dataset("phase_s", data=numeric(r.phase_s for r in records))
            grp.attrs["isi_ms"] = records[0].isi_ms if records else 0.0
            grp.attrs["isi_mode"] = records[0].isi_mode if records else ""

            meta = f.create_group("summary")
            for key, value in summary.items():
                if isinstance(value, (bool, int, float, str)):
                    meta.attrs[key] = value
                else:
                    meta.attrs[key] = json.dumps(_jsonable(value))
        return self.path
