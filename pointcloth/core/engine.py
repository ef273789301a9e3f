"""Trial engine: setup pipeline and per-tick driver.

A :class:`TrialEngine` owns one trial. Construction runs the setup pipeline
once (project, sample, recenter, cut/cycle, size and timing setup) and raises
:class:`~pointcloth.errors.ConfigurationError` or
:class:`~pointcloth.errors.DataError` before any tick. The host then calls
:meth:`TrialEngine.tick` once per display refresh until it returns False.

Degenerate inputs (empty selection, zero-extent cloth, no frames, non-positive
duration) are not errors: the trial degrades to an empty presentation, a
:class:`~pointcloth.errors.DegeneracyWarning` is emitted and the condition is
listed in the summary.

Example:
    >>> engine = TrialEngine.from_config(config, records, sink=MemorySink())
    >>> result = run_headless(engine, refresh_hz=60.0)
    >>> result.summary["shown_ticks"]
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import torch

import pointcloth.register_components  # noqa: F401
from pointcloth.config.schema import PointClothConfig
from pointcloth.core.geometry import BoundingBox, recenter
from pointcloth.core.noise import NoiseField
from pointcloth.core.sampler import GridSampler, GridSelection
from pointcloth.core.scheduler import FrameScheduler, ScheduleParams, TickAction, TickDecision
from pointcloth.core.size_controller import BaseSizeController, scale_bounds
from pointcloth.core.telemetry import TelemetryRecord, TelemetryRecorder
from pointcloth.core.trajectory import Cloth, DotRecord, cloth_from_records, load_cloth
from pointcloth.errors import ConfigurationError, DegeneracyWarning
from pointcloth.export.sinks import ExportSink
from pointcloth.registry import SINK_REGISTRY, SIZE_MODE_REGISTRY
from pointcloth.render.renderer import Renderer
from pointcloth.render.surfaces import DrawingSurface, RecordingSurface

ClothSource = Union[Cloth, str, Path, Iterable[DotRecord]]

_FRAME_EPS = 1e-9


@dataclass
class TrialResult:
    """Payload handed to the host when a trial ends.

    Attributes:
        records: Immutable telemetry log in tick order.
        summary: Summary metrics of the trial.
        output_path: Main file written by the sink, if any.
    """

    records: Tuple[TelemetryRecord, ...] = ()
    summary: Dict[str, Any] = field(default_factory=dict)
    output_path: Optional[Path] = None

    @property
    def cancelled(self) -> bool:
        return bool(self.summary.get("cancelled", False))


def sink_from_config(config: PointClothConfig) -> ExportSink:
    """Create the export sink named by ``config.output.format``."""
    output = config.output
    if output.format == "memory":
        return SINK_REGISTRY.create("memory")
    return SINK_REGISTRY.create(
        output.format,
        output_dir=output.directory,
        cloth_name=output.cloth_name,
    )


class TrialEngine:
    """Run one point-light cloth trial.

    Args:
        config: Trial configuration (a dict is converted and validated).
        cloth: Raw trajectories as loaded, before projection and sampling.
        surface: Drawing surface; a :class:`RecordingSurface` when None.
        sink: Export sink receiving the log once at trial end.
        on_complete: Called exactly once with the :class:`TrialResult`.
        generator: Random generator for sampling, size and noise draws.
            Seeded from ``config.seed`` when None.

    Raises:
        ConfigurationError: On invalid configuration values.
    """

    def __init__(
        self,
        config: Union[PointClothConfig, Dict[str, Any]],
        cloth: Cloth,
        surface: Optional[DrawingSurface] = None,
        sink: Optional[ExportSink] = None,
        on_complete: Optional[Callable[[TrialResult], None]] = None,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        if isinstance(config, dict):
            config = PointClothConfig.from_dict(config)
        config.validate()
        self.config = config

        if generator is None:
            generator = torch.Generator()
            if config.seed is not None:
                generator.manual_seed(config.seed)
            else:
                generator.seed()
        self.generator = generator

        self.surface = surface if surface is not None else RecordingSurface()
        self.sink = sink
        self.on_complete = on_complete
        self.degeneracies: List[str] = []
        self.result: Optional[TrialResult] = None
        self.size_steps = 0

        self._in_tick = False
        self._completed = False
        self._last_elapsed = 0.0

        self._setup(cloth)

    @classmethod
    def from_config(
        cls,
        config: Union[PointClothConfig, Dict[str, Any]],
        records: ClothSource,
        surface: Optional[DrawingSurface] = None,
        sink: Optional[ExportSink] = None,
        on_complete: Optional[Callable[[TrialResult], None]] = None,
        generator: Optional[torch.Generator] = None,
    ) -> "TrialEngine":
        """Build an engine from a cloth, a trajectory file path or raw records.

        Raises:
            ConfigurationError: On invalid configuration.
            DataError: On malformed trajectory input.
            FileNotFoundError: If a trajectory path does not exist.
        """
        if isinstance(records, Cloth):
            cloth = records
        elif isinstance(records, (str, Path)):
            cloth = load_cloth(records)
        else:
            cloth = cloth_from_records(records)
        return cls(config, cloth, surface, sink, on_complete, generator)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _degenerate(self, flag: str, message: str) -> None:
        self.degeneracies.append(flag)
        warnings.warn(message, DegeneracyWarning, stacklevel=3)

    def _setup(self, cloth: Cloth) -> None:
        config = self.config
        display = config.display
        playback = config.playback
        self.screen_center = display.screen_center

        if display.coordinate_scaling is not None:
            cloth = cloth.project(display.coordinate_scaling, self.screen_center)
        self.source = cloth

        sampler = GridSampler(
            config.sampling.grid_x,
            config.sampling.grid_y,
            jitter=config.sampling.jitter,
            generator=self.generator,
        )
        self.selection: GridSelection = sampler.sample(cloth, reference_frame=0)
        sampled = cloth.subset(self.selection.indices)
        if len(self.selection) == 0:
            self._degenerate("empty_selection", "Grid sampling selected no dots; nothing will be drawn")
        elif len(self.selection) < sampler.capacity:
            self._degenerate(
                "sampling_pool_exhausted",
                f"Only {len(self.selection)} dots available for "
                f"{sampler.capacity} grid cells; remaining cells left empty",
            )

        if display.center_cloth and sampled.num_dots > 0 and sampled.num_frames > 0:
            self.reference_box: BoundingBox = recenter(sampled.positions, self.screen_center)
        else:
            self.reference_box = sampled.bounding_box(0)
        self.anchor = self.reference_box.center
        self.initial_diagonal = self.reference_box.diagonal

        self.cloth = sampled.cut(playback.cut_frames).cycle(playback.cycles)
        available = self.cloth.num_frames

        self.noise_field = NoiseField(
            config.noise.num_dots,
            config.noise.buffer,
            display.dot_radius,
            generator=self.generator,
        )
        self.noise_positions = self.noise_field.build(self.cloth.positions, self.reference_box)

        self.size: BaseSizeController = self._build_size_controller()

        if playback.duration_s is None:
            total_frames = available
            base_duration = available / playback.fps
        else:
            base_duration = float(playback.duration_s)
            # Absorb round-off such as 0.57 * 100 == 56.999...
            total_frames = max(int(math.floor(base_duration * playback.fps + _FRAME_EPS)), 0)
        if available == 0:
            self._degenerate("no_frames", "No frames left to display after cutting")
            total_frames = 0
        elif self.cloth.num_dots == 0:
            total_frames = 0
        if base_duration <= 0:
            self._degenerate(
                "non_positive_duration",
                f"Trial duration {base_duration} s is not positive; the trial ends on its first tick",
            )

        isi = config.isi
        self.params = ScheduleParams.build(
            total_frames=total_frames,
            base_duration_s=base_duration,
            isi_ms=isi.isi_ms,
            isi_extends=isi.isi_slows,
            isi_mode=isi.mode,
            hold_ms=isi.hold_ms,
            reverse=playback.reverse,
        )
        self.scheduler = FrameScheduler(self.params)

        self.static_frame: Optional[int] = None
        if playback.static and available > 0:
            if playback.static_frame is None:
                self.static_frame = int(torch.randint(0, available, (1,), generator=self.generator))
            elif playback.static_frame >= available:
                raise ConfigurationError(
                    f"playback.static_frame {playback.static_frame} is out of range "
                    f"for {available} frames"
                )
            else:
                self.static_frame = int(playback.static_frame)

        self.renderer = Renderer(
            self.surface,
            screen_center=self.screen_center,
            anchor=self.anchor,
            dot_radius=display.dot_radius,
            flipped=display.flipped,
            inverted=display.inverted,
            dot_color=tuple(display.dot_color),
        )
        self.telemetry = TelemetryRecorder(isi.isi_ms, isi.isi_slows, isi.mode)

    def _build_size_controller(self) -> BaseSizeController:
        size = self.config.size
        mode = size.mode if size.enabled else "none"
        if mode == "none":
            return SIZE_MODE_REGISTRY.create("none")
        if self.initial_diagonal <= 0:
            self._degenerate(
                "zero_extent",
                "Sampled cloth has zero extent; size variation is disabled",
            )
            return SIZE_MODE_REGISTRY.create("none")

        min_scale, max_scale = scale_bounds(
            self.initial_diagonal,
            size.min_size_deg,
            size.max_size_deg,
            size.pixels_per_degree,
        )
        return SIZE_MODE_REGISTRY.create(
            mode,
            min_scale=min_scale,
            max_scale=max_scale,
            scaling_ratio=size.scaling_ratio,
            keep_direction=size.keep_direction,
            direction_steps=size.direction_steps,
            frame_count=size.interpolation_frame_count,
            generator=self.generator,
        )

    # ------------------------------------------------------------------
    # Tick driver
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return not self._completed

    def tick(self, now: float) -> bool:
        """Execute one display tick at timestamp ``now`` (seconds).

        Returns:
            True while the trial wants further ticks.

        Raises:
            RuntimeError: If called while another tick is executing.
        """
        if self._in_tick:
            raise RuntimeError("TrialEngine.tick() re-entered while a tick is executing")
        if self._completed:
            return False

        self._in_tick = True
        try:
            decision = self.scheduler.tick(now)
            self._last_elapsed = decision.elapsed_s
            if decision.action is TickAction.END:
                self._finish(cancelled=False)
                return False
            if decision.action is TickAction.BLANK:
                self.renderer.blank()
                self.telemetry.record_blank(decision.elapsed_s, decision.phase_s)
            else:
                self._draw(decision)
            return True
        finally:
            self._in_tick = False

    def _draw(self, decision: TickDecision) -> None:
        if decision.size_step:
            self.size.step()
            self.size_steps += 1

        if self.static_frame is not None:
            data_index = self.static_frame
            scale = 1.0
        else:
            # An explicit duration can ask for more frames than the data has
            data_index = decision.index % self.cloth.num_frames
            scale = self.size.scale

        points = self.cloth.positions[:, data_index]
        noise = None
        if self.noise_positions.shape[0] > 0:
            noise = self.noise_positions[:, data_index]
        cloth_pts, noise_pts = self.renderer.draw(points, scale, noise)
        self.telemetry.record_visible(
            data_index,
            cloth_pts,
            scale,
            decision.elapsed_s,
            decision.phase_s,
            phase=decision.phase.value,
            noise_points=noise_pts,
            schedule_frame=decision.index,
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def summary(self, cancelled: bool = False) -> Dict[str, Any]:
        """Summary metrics of the trial so far."""
        shown = self.telemetry.visible_count
        duration = self._last_elapsed
        min_scale, max_scale = self.size.bounds
        return {
            "cloth_name": self.config.output.cloth_name,
            "refresh_rate_hz": shown / duration if duration > 0 else 0.0,
            "measured_duration_s": duration,
            "planned_duration_s": self.params.duration_s,
            "base_duration_s": self.params.base_duration_s,
            "total_frames": self.params.total_frames,
            "available_frames": self.cloth.num_frames,
            "ticks": len(self.telemetry),
            "shown_ticks": shown,
            "distinct_frames": self.telemetry.distinct_frames,
            "blank_ticks": self.telemetry.blank_count,
            "initial_diagonal_px": self.initial_diagonal,
            "size_mode": self.size.mode,
            "min_scale": min_scale,
            "max_scale": max_scale,
            "final_scale": self.size.scale,
            "size_steps": self.size_steps,
            "cloth_speed_px_per_tick": self.telemetry.cloth_speed(),
            "noise_speed_px_per_tick": self.telemetry.noise_speed(),
            "num_dots": self.cloth.num_dots,
            "num_noise_dots": int(self.noise_positions.shape[0]),
            "selected_dot_ids": list(self.cloth.dot_ids),
            "static_frame": self.static_frame,
            "isi_ms": self.params.isi_ms,
            "isi_mode": self.params.isi_mode,
            "isi_slows": self.params.isi_extends,
            "seed": self.config.seed,
            "degeneracies": list(self.degeneracies),
            "cancelled": cancelled,
        }

    def _finish(self, cancelled: bool) -> None:
        if self._completed:
            return
        self._completed = True
        self.scheduler.end()

        records = self.telemetry.freeze()
        summary = self.summary(cancelled)
        output_path = None
        if self.sink is not None:
            try:
                output_path = self.sink.write(records, summary)
            finally:
                self.sink.close()

        self.result = TrialResult(records=records, summary=summary, output_path=output_path)
        if self.on_complete is not None:
            self.on_complete(self.result)

    def cancel(self) -> Optional[TrialResult]:
        """End the trial early and export what was recorded.

        Calling it on a finished trial does nothing.
        """
        self._finish(cancelled=True)
        return self.result

    def __enter__(self) -> "TrialEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self._completed:
            self.cancel()
        return False


def run_headless(
    engine: TrialEngine,
    refresh_hz: Optional[float] = None,
    start_time: float = 0.0,
    max_ticks: Optional[int] = None,
) -> TrialResult:
    """Drive ``engine`` on a simulated clock ``t_k = start + k / refresh_hz``.

    Args:
        engine: Engine to run.
        refresh_hz: Simulated refresh rate; ``config.display.refresh_hz`` if
            None.
        start_time: Timestamp of the first tick.
        max_ticks: Cancel the trial after this many ticks.

    Returns:
        The engine's :class:`TrialResult`.
    """
    hz = refresh_hz if refresh_hz is not None else engine.config.display.refresh_hz
    if hz <= 0:
        raise ConfigurationError(f"refresh_hz must be positive, got {hz}")

    k = 0
    while engine.tick(start_time + k / hz):
        k += 1
        if max_ticks is not None and k >= max_ticks:
            engine.cancel()
            break
    return engine.result
