"""Configuration schema for point-light cloth trials.

Both the CLI and the Python API consume this format, so a trial can be
round-tripped: dict -> config -> YAML -> config with identical values.

Sections:
- sampling: grid downsampling of the dense dot cloud
- size: size-variation mode and angular bounds
- isi: inter-stimulus gap and how it is displayed
- playback: duration, frame rate, ordering and static display
- display: screen geometry and drawing options
- noise: distractor dots
- output: export location and format

Example:
    >>> from pointcloth.config.schema import PointClothConfig
    >>> config = PointClothConfig.from_dict(yaml_dict)
    >>> config.validate()
    >>> yaml_str = config.to_yaml()
    >>> config2 = PointClothConfig.from_yaml(yaml_str)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml

from pointcloth.errors import ConfigurationError

SIZE_MODES = ("frameByFrame", "interpolated", "none")
ISI_MODES = ("blank", "hold")
OUTPUT_FORMATS = ("csv", "hdf5", "memory")


def _fields_from(cls, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep only keys that are fields of ``cls``; unknown keys are ignored."""
    data = data or {}
    return {name: data[name] for name in cls.__dataclass_fields__ if name in data}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class SamplingConfig:
    """Grid downsampling.

    Attributes:
        grid_x: Cells along x.
        grid_y: Cells along y.
        jitter: Anchor randomisation as a fraction of the cell size.
    """
    grid_x: int = 10
    grid_y: int = 10
    jitter: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SamplingConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class SizeConfig:
    """Size variation.

    Attributes:
        enabled: Switch size variation on.
        mode: ``frameByFrame``, ``interpolated`` or ``none``.
        scaling_ratio: Multiplicative step (> 1).
        min_size_deg: Smallest cloth diagonal in degrees of visual angle.
        max_size_deg: Largest cloth diagonal in degrees of visual angle.
        pixels_per_degree: Display conversion constant.
        keep_direction: Keep the step direction for ``direction_steps`` steps.
        direction_steps: Run length of a kept direction.
        interpolation_frame_count: Steps per interpolation cycle.
    """
    enabled: bool = True
    mode: str = "frameByFrame"
    scaling_ratio: float = 1.75
    min_size_deg: float = 1.6
    max_size_deg: float = 7.3
    pixels_per_degree: float = 50.0
    keep_direction: bool = False
    direction_steps: int = 1
    interpolation_frame_count: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SizeConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class IsiConfig:
    """Inter-stimulus interval.

    Attributes:
        isi_ms: Gap between frame advances in milliseconds.
        isi_slows: Extend the trial so that every frame is still shown.
        mode: ``blank`` (draw nothing during the gap) or ``hold``.
        hold_ms: Display time of a held frame in hold mode.
    """
    isi_ms: int = 0
    isi_slows: bool = True
    mode: str = "blank"
    hold_ms: float = 100.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> IsiConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class PlaybackConfig:
    """Trial timing and frame ordering.

    Attributes:
        duration_s: Trial duration; inferred from frame count and fps if None.
        fps: Frame rate of the trajectory data.
        reverse: Play frames from last to first.
        cut_frames: Frames dropped from the start of the data.
        cycles: Times the frame sequence is repeated.
        static: Show a single frame for the whole trial.
        static_frame: Frame shown in static mode; random if None.
    """
    duration_s: Optional[float] = None
    fps: float = 60.0
    reverse: bool = False
    cut_frames: int = 0
    cycles: int = 1
    static: bool = False
    static_frame: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        return {k: v for k, v in result.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PlaybackConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class DisplayConfig:
    """Screen geometry and drawing.

    Attributes:
        screen_width: Screen width in pixels.
        screen_height: Screen height in pixels.
        coordinate_scaling: Model-to-pixel factor; positions are used as
            pixels when None.
        center_cloth: Move the sampled cloth to the screen center.
        dot_radius: Dot radius in pixels.
        flipped: Mirror left/right.
        inverted: Mirror top/bottom.
        refresh_hz: Display refresh rate used for headless runs.
        dot_color: RGB dot color in [0, 1].
        background: RGB background color in [0, 1].
    """
    screen_width: int = 1280
    screen_height: int = 720
    coordinate_scaling: Optional[float] = None
    center_cloth: bool = True
    dot_radius: float = 3.0
    flipped: bool = False
    inverted: bool = False
    refresh_hz: float = 60.0
    dot_color: List[float] = field(default_factory=lambda: [1.0, 1.0, 1.0])
    background: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])

    @property
    def screen_center(self) -> Tuple[float, float]:
        return (self.screen_width / 2.0, self.screen_height / 2.0)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        return {k: v for k, v in result.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DisplayConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class NoiseConfig:
    """Distractor dots.

    Attributes:
        num_dots: Number of noise dots.
        buffer: Margin around the cloth in units of the dot radius.
    """
    num_dots: int = 0
    buffer: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> NoiseConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class OutputConfig:
    """Export settings.

    Attributes:
        directory: Output directory.
        format: ``csv``, ``hdf5`` or ``memory``.
        cloth_name: Stimulus name used in output file names.
    """
    directory: str = "./results"
    format: str = "csv"
    cloth_name: str = "cloth"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> OutputConfig:
        return cls(**_fields_from(cls, data))


@dataclass
class PointClothConfig:
    """Complete configuration of one point-light cloth trial.

    Attributes:
        sampling: Grid downsampling settings.
        size: Size-variation settings.
        isi: Inter-stimulus interval settings.
        playback: Timing and ordering settings.
        display: Screen and drawing settings.
        noise: Distractor settings.
        output: Export settings.
        seed: Seed for every random draw of the trial (unseeded if None).
        metadata: Free-form metadata (experiment, participant, ...).
    """
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    size: SizeConfig = field(default_factory=SizeConfig)
    isi: IsiConfig = field(default_factory=IsiConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    seed: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dict for YAML serialization."""
        result = {
            "metadata": self.metadata,
            "sampling": self.sampling.to_dict(),
            "size": self.size.to_dict(),
            "isi": self.isi.to_dict(),
            "playback": self.playback.to_dict(),
            "display": self.display.to_dict(),
            "noise": self.noise.to_dict(),
            "output": self.output.to_dict(),
        }
        if self.seed is not None:
            result["seed"] = self.seed
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PointClothConfig:
        """Create from dict (e.g., from YAML).

        Raises:
            ConfigurationError: If ``data`` or one of its sections is not a
                mapping.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")
        for section in ("sampling", "size", "isi", "playback", "display", "noise", "output"):
            if section in data and not isinstance(data[section], (dict, type(None))):
                raise ConfigurationError(f"Section '{section}' must be a mapping")
        return cls(
            sampling=SamplingConfig.from_dict(data.get("sampling")),
            size=SizeConfig.from_dict(data.get("size")),
            isi=IsiConfig.from_dict(data.get("isi")),
            playback=PlaybackConfig.from_dict(data.get("playback")),
            display=DisplayConfig.from_dict(data.get("display")),
            noise=NoiseConfig.from_dict(data.get("noise")),
            output=OutputConfig.from_dict(data.get("output")),
            seed=data.get("seed"),
            metadata=data.get("metadata") or {},
        )

    def to_yaml(self) -> str:
        """Serialize to YAML string."""
        return yaml.dump(
            self.to_dict(),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    @classmethod
    def from_yaml(cls, yaml_str: str) -> PointClothConfig:
        """Load from YAML string (duplicate keys are rejected)."""
        from pointcloth.config.yaml_utils import load_yaml

        data = load_yaml(yaml_str)
        if not isinstance(data, dict):
            raise ConfigurationError("YAML did not produce a dict")
        return cls.from_dict(data)

    def errors(self) -> List[str]:
        """Collect every validation problem as a message."""
        problems: List[str] = []

        for name in ("grid_x", "grid_y"):
            value = getattr(self.sampling, name)
            if not _is_int(value):
                problems.append(f"sampling.{name} must be an integer, got {value!r}")
            elif value < 0:
                problems.append(f"sampling.{name} must be non-negative, got {value}")
        if self.sampling.jitter < 0:
            problems.append(f"sampling.jitter must be non-negative, got {self.sampling.jitter}")

        size = self.size
        if size.mode not in SIZE_MODES:
            problems.append(f"size.mode must be one of {SIZE_MODES}, got '{size.mode}'")
        if size.scaling_ratio <= 1.0:
            problems.append(f"size.scaling_ratio must be greater than 1, got {size.scaling_ratio}")
        if size.min_size_deg <= 0 or size.max_size_deg <= 0:
            problems.append("size.min_size_deg and size.max_size_deg must be positive")
        elif size.min_size_deg > size.max_size_deg:
            problems.append(
                f"size.min_size_deg ({size.min_size_deg}) must not exceed "
                f"size.max_size_deg ({size.max_size_deg})"
            )
        if size.pixels_per_degree <= 0:
            problems.append(f"size.pixels_per_degree must be positive, got {size.pixels_per_degree}")
        if not _is_int(size.direction_steps) or size.direction_steps < 1:
            problems.append(f"size.direction_steps must be an integer >= 1, got {size.direction_steps!r}")
        if not _is_int(size.interpolation_frame_count) or size.interpolation_frame_count < 1:
            problems.append(
                f"size.interpolation_frame_count must be an integer >= 1, "
                f"got {size.interpolation_frame_count!r}"
            )

        isi = self.isi
        if not _is_int(isi.isi_ms):
            problems.append(f"isi.isi_ms must be an integer, got {isi.isi_ms!r}")
        elif isi.isi_ms < 0:
            problems.append(f"isi.isi_ms must be non-negative, got {isi.isi_ms}")
        if isi.mode not in ISI_MODES:
            problems.append(f"isi.mode must be one of {ISI_MODES}, got '{isi.mode}'")
        if isi.hold_ms < 0:
            problems.append(f"isi.hold_ms must be non-negative, got {isi.hold_ms}")

        playback = self.playback
        if playback.fps <= 0:
            problems.append(f"playback.fps must be positive, got {playback.fps}")
        if not _is_int(playback.cut_frames) or playback.cut_frames < 0:
            problems.append(f"playback.cut_frames must be an integer >= 0, got {playback.cut_frames!r}")
        if not _is_int(playback.cycles) or playback.cycles < 1:
            problems.append(f"playback.cycles must be an integer >= 1, got {playback.cycles!r}")
        if playback.static_frame is not None and (
            not _is_int(playback.static_frame) or playback.static_frame < 0
        ):
            problems.append(
                f"playback.static_frame must be a non-negative integer, got {playback.static_frame!r}"
            )

        display = self.display
        if display.screen_width <= 0 or display.screen_height <= 0:
            problems.append("display.screen_width and display.screen_height must be positive")
        if display.coordinate_scaling is not None and display.coordinate_scaling <= 0:
            problems.append(
                f"display.coordinate_scaling must be positive, got {display.coordinate_scaling}"
            )
        if display.dot_radius <= 0:
            problems.append(f"display.dot_radius must be positive, got {display.dot_radius}")
        if display.refresh_hz <= 0:
            problems.append(f"display.refresh_hz must be positive, got {display.refresh_hz}")

        if not _is_int(self.noise.num_dots) or self.noise.num_dots < 0:
            problems.append(f"noise.num_dots must be an integer >= 0, got {self.noise.num_dots!r}")
        if self.noise.buffer < 0:
            problems.append(f"noise.buffer must be non-negative, got {self.noise.buffer}")

        if self.output.format not in OUTPUT_FORMATS:
            problems.append(
                f"output.format must be one of {OUTPUT_FORMATS}, got '{self.output.format}'"
            )
        if self.seed is not None and not _is_int(self.seed):
            problems.append(f"seed must be an integer, got {self.seed!r}")
        return problems

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` listing every problem found."""
        problems = self.errors()
        if problems:
            raise ConfigurationError(
                "Invalid configuration:\n  - " + "\n  - ".join(problems)
            )
