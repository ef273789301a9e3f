"""Per-tick telemetry of a point-light cloth trial.

One :class:`TelemetryRecord` is appended for every executed display tick.
Blank ISI ticks carry ``None`` geometry and scale and the ``"blank"`` frame
sentinel. The log is append-only and handed out as an immutable tuple at the
end of the trial.
"""

from __future__ import annotations

import csv
import io
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import torch

from pointcloth.core.geometry import bounding_center

BLANK = "blank"

CSV_COLUMNS = (
    "clothWidth_px",
    "clothHeight_px",
    "scalingFactor",
    "isi_ms",
    "isiSlows",
    "displayFrameNumber",
    "timeElapsed_s",
    "timeInCurrentDisplayFrame_s",
    "isiMode",
)


@dataclass(frozen=True)
class TelemetryRecord:
    """One display tick.

    Attributes:
        cloth_width: Width of the drawn cloth in pixels (``None`` if blank).
        cloth_height: Height of the drawn cloth in pixels (``None`` if blank).
        scale: Size factor used for the tick (``None`` if blank).
        isi_ms: Configured ISI.
        isi_slows: Whether the ISI extends the trial duration.
        frame: Displayed frame index or ``"blank"``.
        elapsed_s: Seconds since trial start.
        phase_s: Seconds since the displayed frame began.
        isi_mode: ``"blank"`` or ``"hold"``.
        phase: Scheduler phase name.
        schedule_frame: Frame index chosen by the scheduler (``None`` if
            blank). Differs from ``frame`` after a wrap or in static mode.
    """

    cloth_width: Optional[float]
    cloth_height: Optional[float]
    scale: Optional[float]
    isi_ms: float
    isi_slows: bool
    frame: Union[int, str]
    elapsed_s: float
    phase_s: float
    isi_mode: str
    phase: str = "visible"
    schedule_frame: Optional[int] = None

    @property
    def is_blank(self) -> bool:
        return self.frame == BLANK

    def to_row(self) -> Tuple[Any, ...]:
        """CSV row; absent values become empty cells."""

        def cell(value: Any) -> Any:
            return "" if value is None else value

        return (
            cell(self.cloth_width),
            cell(self.cloth_height),
            cell(self.scale),
            _format_number(self.isi_ms),
            "true" if self.isi_slows else "false",
            self.frame,
            self.elapsed_s,
            self.phase_s,
            self.isi_mode,
        )


def _format_number(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else value


class TelemetryRecorder:
    """Append-only per-tick recorder.

    Args:
        isi_ms: ISI copied into every record.
        isi_slows: ISI-extends-duration flag copied into every record.
        isi_mode: ISI mode copied into every record.
        keep_positions: Retain the drawn positions of visible ticks so that
            cloth and noise speeds can be summarised at the end.
    """

    def __init__(
        self,
        isi_ms: float,
        isi_slows: bool,
        isi_mode: str,
        keep_positions: bool = True,
    ) -> None:
        self.isi_ms = isi_ms
        self.isi_slows = isi_slows
        self.isi_mode = isi_mode
        self.keep_positions = keep_positions
        self._records: List[TelemetryRecord] = []
        self._cloth_positions: List[torch.Tensor] = []
        self._noise_positions: List[torch.Tensor] = []
        self._frozen = False

    def __len__(self) -> int:
        return len(self._records)

    def _check_open(self) -> None:
        if self._frozen:
            raise RuntimeError("Telemetry log is closed; no further records accepted")

    def record_visible(
        self,
        frame: int,
        cloth_points: torch.Tensor,
        scale: float,
        elapsed_s: float,
        phase_s: float,
        phase: str = "visible",
        noise_points: Optional[torch.Tensor] = None,
        schedule_frame: Optional[int] = None,
    ) -> TelemetryRecord:
        """Record a tick on which the cloth was drawn.

        Args:
            frame: Displayed frame index.
            cloth_points: Drawn cloth positions ``[dots, 2]`` (noise excluded).
            scale: Size factor applied this tick.
            elapsed_s: Seconds since trial start.
            phase_s: Seconds since the displayed frame began.
            phase: Scheduler phase name.
            noise_points: Drawn noise positions, kept for speed summaries.
            schedule_frame: Scheduler index of the tick; ``frame`` when None.
        """
        self._check_open()
        box = bounding_center(cloth_points)
        record = TelemetryRecord(
            cloth_width=box.width,
            cloth_height=box.height,
            scale=float(scale),
            isi_ms=self.isi_ms,
            isi_slows=self.isi_slows,
            frame=int(frame),
            elapsed_s=float(elapsed_s),
            phase_s=float(phase_s),
            isi_mode=self.isi_mode,
            phase=phase,
            schedule_frame=int(frame if schedule_frame is None else schedule_frame),
        )
        self._records.append(record)
        if self.keep_positions:
            self._cloth_positions.append(cloth_points.detach().clone())
            if noise_points is not None and noise_points.numel() > 0:
                self._noise_positions.append(noise_points.detach().clone())
        return record

    def record_blank(self, elapsed_s: float, phase_s: float) -> TelemetryRecord:
        """Record a blank ISI tick."""
        self._check_open()
        record = TelemetryRecord(
            cloth_width=None,
            cloth_height=None,
            scale=None,
            isi_ms=self.isi_ms,
            isi_slows=self.isi_slows,
            frame=BLANK,
            elapsed_s=float(elapsed_s),
            phase_s=float(phase_s),
            isi_mode=self.isi_mode,
            phase="blank_wait",
        )
        self._records.append(record)
        return record

    def freeze(self) -> Tuple[TelemetryRecord, ...]:
        """Close the log and return it in tick order."""
        self._frozen = True
        return tuple(self._records)

    @property
    def records(self) -> Tuple[TelemetryRecord, ...]:
        return tuple(self._records)

    @property
    def visible_count(self) -> int:
        return sum(1 for r in self._records if not r.is_blank)

    @property
    def blank_count(self) -> int:
        return sum(1 for r in self._records if r.is_blank)

    @property
    def distinct_frames(self) -> int:
        return len({r.frame for r in self._records if not r.is_blank})

    def cloth_speed(self) -> float:
        return mean_speed(self._cloth_positions)

    def noise_speed(self) -> float:
        return mean_speed(self._noise_positions)


def mean_speed(frames: Sequence[torch.Tensor]) -> float:
    """Mean per-dot displacement between consecutive drawn ticks (px/tick).

    Ticks whose dot count differs from the previous one are skipped.
    """
    steps: List[torch.Tensor] = []
    for prev, cur in zip(frames[:-1], frames[1:]):
        if prev.shape != cur.shape or cur.numel() == 0:
            continue
        steps.append(torch.linalg.norm(cur - prev, dim=1))
    if not steps:
        return 0.0
    return float(torch.cat(steps).mean())


def records_to_csv(records: Sequence[TelemetryRecord]) -> str:
    """Render records as CSV text with the standard column header."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for record in records:
        writer.writerow(record.to_row())
    return buffer.getvalue()


def records_to_columns(records: Sequence[TelemetryRecord]) -> Dict[str, List[Any]]:
    """Column-oriented view of the records, keyed by dataclass field name."""
    columns: Dict[str, List[Any]] = {}
    for record in records:
        for key, value in asdict(record).items():
            columns.setdefault(key, []).append(value)
    return columns
