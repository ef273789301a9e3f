"""Dot trajectory data model and loaders.

Motion-capture exports of a simulated cloth arrive as flat records
``(dot_id, frame, x, y)``. :func:`cloth_from_records` validates them and packs
them into a dense ``[dots, frames, 2]`` tensor held by :class:`Cloth`.

Example:
    >>> records = [(0, 0, 0.0, 0.0), (1, 0, 1.0, 1.0)]
    >>> cloth = cloth_from_records(records)
    >>> cloth.positions.shape
    torch.Size([2, 1, 2])
"""

from __future__ import annotations

import csv
import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import torch

from pointcloth.core.geometry import BoundingBox, bounding_center
from pointcloth.errors import DataError

DotRecord = Union[Sequence[Any], Mapping[str, Any]]

_FIELD_ALIASES = {
    "id": ("id", "dot", "dot_id", "dotid"),
    "frame": ("frame", "frame_num", "framenumber"),
    "x": ("x",),
    "y": ("y",),
}


@dataclass
class Cloth:
    """A set of dot trajectories sharing one frame axis.

    Attributes:
        dot_ids: Dot identifiers, one per row of ``positions``.
        positions: Trajectories ``[dots, frames, 2]`` in float64.
        frame_numbers: Source frame number of each column of ``positions``.
    """

    dot_ids: List[Any]
    positions: torch.Tensor
    frame_numbers: List[int] = field(default_factory=list)

    @property
    def num_dots(self) -> int:
        return int(self.positions.shape[0])

    @property
    def num_frames(self) -> int:
        return int(self.positions.shape[1])

    def frame_points(self, frame: int = 0) -> torch.Tensor:
        """Positions of every dot at ``frame`` as ``[dots, 2]``."""
        if self.num_frames == 0:
            return self.positions.new_zeros((0, 2))
        return self.positions[:, frame]

    def bounding_box(self, frame: int = 0) -> BoundingBox:
        return bounding_center(self.frame_points(frame))

    def subset(self, indices: Sequence[int]) -> "Cloth":
        """Return a new cloth holding copies of the given rows, in order."""
        idx = torch.as_tensor(list(indices), dtype=torch.long)
        return Cloth(
            dot_ids=[self.dot_ids[i] for i in indices],
            positions=self.positions.index_select(0, idx).clone(),
            frame_numbers=list(self.frame_numbers),
        )

    def project(
        self,
        scaling: float,
        screen_center: Tuple[float, float],
    ) -> "Cloth":
        """Map model coordinates to screen pixels.

        ``px = x * scaling + cx`` and ``py = -y * scaling + cy``; the y flip
        turns an upward model axis into the downward screen axis.
        """
        projected = self.positions.clone()
        projected[..., 0] = projected[..., 0] * scaling + screen_center[0]
        projected[..., 1] = -projected[..., 1] * scaling + screen_center[1]
        return Cloth(self.dot_ids, projected, list(self.frame_numbers))

    def cut(self, num_frames: int) -> "Cloth":
        """Drop the first ``num_frames`` frames."""
        if num_frames <= 0:
            return self
        return Cloth(
            self.dot_ids,
            self.positions[:, num_frames:].clone(),
            self.frame_numbers[num_frames:],
        )

    def cycle(self, cycles: int) -> "Cloth":
        """Repeat the frame sequence ``cycles`` times end to end."""
        if cycles <= 1:
            return self
        return Cloth(
            self.dot_ids,
            self.positions.repeat(1, cycles, 1),
            self.frame_numbers * cycles,
        )


def _normalise_record(record: DotRecord, row: int) -> Tuple[Any, int, float, float]:
    if isinstance(record, Mapping):
        lowered = {str(k).strip().lower(): v for k, v in record.items()}
        values = []
        for name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if alias in lowered:
                    values.append(lowered[alias])
                    break
            else:
                raise DataError(f"Record {row} is missing field '{name}': {record!r}")
        dot_id, frame, x, y = values
    else:
        if len(record) != 4:
            raise DataError(
                f"Record {row} must have 4 fields (id, frame, x, y), got {len(record)}"
            )
        dot_id, frame, x, y = record

    try:
        frame_i = int(frame)
        x_f = float(x)
        y_f = float(y)
    except (TypeError, ValueError) as exc:
        raise DataError(f"Record {row} has non-numeric fields: {record!r}") from exc

    if not (math.isfinite(x_f) and math.isfinite(y_f)):
        raise DataError(f"Record {row} has non-finite coordinates: {record!r}")
    if isinstance(dot_id, float) and dot_id.is_integer():
        dot_id = int(dot_id)
    return dot_id, frame_i, x_f, y_f


def cloth_from_records(records: Iterable[DotRecord]) -> Cloth:
    """Build a :class:`Cloth` from ``(dot_id, frame, x, y)`` records.

    Records may arrive in any order. Dots keep the order of their first
    appearance; frames are sorted by frame number.

    Args:
        records: Tuples ``(dot_id, frame, x, y)`` or mappings with ``id``,
            ``frame``, ``X`` and ``Y`` keys (case-insensitive).

    Returns:
        Dense cloth with positions ``[dots, frames, 2]``.

    Raises:
        DataError: If the input is empty, a ``(dot, frame)`` pair repeats, a
            dot is missing a frame, or a field is not a finite number.
    """
    table: Dict[Any, Dict[int, Tuple[float, float]]] = {}
    frames: set = set()
    count = 0
    for row, record in enumerate(records):
        dot_id, frame, x, y = _normalise_record(record, row)
        per_dot = table.setdefault(dot_id, {})
        if frame in per_dot:
            raise DataError(f"Duplicate record for dot {dot_id!r} at frame {frame}")
        per_dot[frame] = (x, y)
        frames.add(frame)
        count += 1

    if count == 0:
        raise DataError("No trajectory records supplied")

    frame_numbers = sorted(frames)
    dot_ids = list(table.keys())
    expected = len(dot_ids) * len(frame_numbers)
    if count != expected:
        incomplete = [d for d in dot_ids if len(table[d]) != len(frame_numbers)]
        raise DataError(
            f"Inconsistent trajectories: {len(dot_ids)} dots x "
            f"{len(frame_numbers)} frames needs {expected} records, got {count}. "
            f"Dots with missing frames: {incomplete[:10]}"
        )

    positions = torch.empty((len(dot_ids), len(frame_numbers), 2), dtype=torch.float64)
    for i, dot_id in enumerate(dot_ids):
        per_dot = table[dot_id]
        positions[i] = torch.tensor(
            [per_dot[f] for f in frame_numbers], dtype=torch.float64
        )
    return Cloth(dot_ids=dot_ids, positions=positions, frame_numbers=frame_numbers)


def read_csv_records(path: Union[str, Path]) -> List[Dict[str, str]]:
    """Read dot records from a CSV file with an ``id,frame,X,Y`` header."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise DataError(f"CSV file has no header: {path}")
        return list(reader)


def read_json_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read dot records from a JSON array of ``{id, frame, X, Y}`` objects."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise DataError(f"Invalid JSON in {path}: {exc}") from exc
    if isinstance(data, dict) and "dot_pos" in data:
        data = data["dot_pos"]
    if not isinstance(data, list):
        raise DataError(f"Expected a list of dot records in {path}")
    return data


def load_cloth(path: Union[str, Path]) -> Cloth:
    """Load a cloth from a ``.csv`` or ``.json`` trajectory file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        DataError: If the format is unsupported or the content is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trajectory file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return cloth_from_records(read_csv_records(path))
    if suffix == ".json":
        return cloth_from_records(read_json_records(path))
    raise DataError(f"Unsupported trajectory format '{suffix}' (use .csv or .json)")
