"""Configuration schema and YAML loading."""

from .schema import (
    DisplayConfig,
    IsiConfig,
    NoiseConfig,
    OutputConfig,
    PlaybackConfig,
    PointClothConfig,
    SamplingConfig,
    SizeConfig,
)
from .yaml_utils import UniqueKeyLoader, load_config_file, load_yaml

__all__ = [
    "PointClothConfig",
    "SamplingConfig",
    "SizeConfig",
    "IsiConfig",
    "PlaybackConfig",
    "DisplayConfig",
    "NoiseConfig",
    "OutputConfig",
    "UniqueKeyLoader",
    "load_yaml",
    "load_config_file",
]
