"""YAML utilities with duplicate-key validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, TextIO, Union

import yaml

from pointcloth.errors import ConfigurationError


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict:
    mapping = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            line = key_node.start_mark.line + 1
            raise ConfigurationError(f"Duplicate key '{key}' detected in YAML (line {line}).")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def load_yaml(stream: Union[str, TextIO]) -> Any:
    """Load YAML from a string or file-like object.

    Raises:
        ConfigurationError: If a mapping repeats a key.
    """
    return yaml.load(stream, Loader=UniqueKeyLoader)


def load_config_file(path: Union[str, Path]):
    """Read and validate a trial configuration file.

    Returns:
        Validated :class:`~pointcloth.config.schema.PointClothConfig`.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ConfigurationError: On duplicate keys, malformed YAML or invalid
            values.
    """
    from pointcloth.config.schema import PointClothConfig

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r") as f:
        try:
            data = load_yaml(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Malformed YAML in {path}: {exc}") from exc
    if data is None:
        data = {}
    config = PointClothConfig.from_dict(data)
    config.validate()
    return config
