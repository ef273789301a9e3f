"""Tests for the component registry and built-in registrations."""

import pytest

from pointcloth.core.size_controller import ConstantSize, InterpolatedSize, RandomWalkSize
from pointcloth.export.sinks import MemorySink
from pointcloth.register_components import register_all
from pointcloth.registry import (
    SINK_REGISTRY,
    SIZE_MODE_REGISTRY,
    SURFACE_REGISTRY,
    ComponentRegistry,
)
from pointcloth.render.surfaces import RecordingSurface


class _Thing:
    def __init__(self, value=0):
        self.value = value


class _Other:
    pass


class TestComponentRegistry:
    def test_register_and_create(self):
        registry = ComponentRegistry("TEST")
        registry.register("thing", _Thing)
        assert registry.is_registered("thing")
        assert registry.create("thing", value=3).value == 3
        assert registry.get_class("thing") is _Thing

    def test_factory_used_when_given(self):
        registry = ComponentRegistry("TEST")
        registry.register("thing", _Thing, lambda **kw: _Thing(value=kw["v"] * 2))
        assert registry.create("thing", v=4).value == 8

    def test_unknown_name(self):
        registry = ComponentRegistry("TEST")
        registry.register("thing", _Thing)
        with pytest.raises(KeyError, match="Available: thing"):
            registry.create("missing")
        with pytest.raises(KeyError):
            registry.get_class("missing")

    def test_same_class_registration_is_idempotent(self, recwarn):
        registry = ComponentRegistry("TEST")
        registry.register("thing", _Thing)
        registry.register("thing", _Thing)
        assert len(recwarn) == 0

    def test_overwrite_warns(self):
        registry = ComponentRegistry("TEST")
        registry.register("thing", _Thing)
        with pytest.warns(UserWarning, match="overwriting"):
            registry.register("thing", _Other)
        assert registry.get_class("thing") is _Other

    def test_list_registered_sorted(self):
        registry = ComponentRegistry("TEST")
        registry.register("b", _Thing)
        registry.register("a", _Other)
        assert registry.list_registered() == ["a", "b"]


class TestBuiltins:
    def test_size_modes(self):
        assert SIZE_MODE_REGISTRY.list_registered() == ["frameByFrame", "interpolated", "none"]
        walk = SIZE_MODE_REGISTRY.create(
            "frameByFrame", min_scale=0.5, max_scale=2.0, frame_count=10
        )
        assert isinstance(walk, RandomWalkSize)
        ramp = SIZE_MODE_REGISTRY.create(
            "interpolated", min_scale=0.5, max_scale=2.0, frame_count=10
        )
        assert isinstance(ramp, InterpolatedSize)
        assert ramp.frame_count == 10
        assert isinstance(SIZE_MODE_REGISTRY.create("none", min_scale=1.0), ConstantSize)

    def test_surfaces_and_sinks(self):
        assert {"recording", "matplotlib", "pyqtgraph"} <= set(SURFACE_REGISTRY.list_registered())
        assert isinstance(SURFACE_REGISTRY.create("recording"), RecordingSurface)
        assert SINK_REGISTRY.list_registered() == ["csv", "hdf5", "memory"]
        assert isinstance(SINK_REGISTRY.create("memory"), MemorySink)

    def test_register_all_is_repeatable(self, recwarn):
        register_all()
        register_all()
        assert not [w for w in recwarn if "overwriting" in str(w.message)]
