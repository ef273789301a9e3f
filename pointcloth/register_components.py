"""Registration of the built-in pointcloth components.

Importing this module registers every concrete size-variation mode, drawing
surface and export sink with its registry.

Example:
    >>> from pointcloth.register_components import register_all
    >>> register_all()
    >>> from pointcloth.registry import SIZE_MODE_REGISTRY
    >>> controller = SIZE_MODE_REGISTRY.create("frameByFrame", min_scale=0.5, max_scale=2.0)
"""

from pointcloth.registry import SINK_REGISTRY, SIZE_MODE_REGISTRY, SURFACE_REGISTRY

from pointcloth.core.size_controller import ConstantSize, InterpolatedSize, RandomWalkSize
from pointcloth.export.sinks import CsvExportSink, Hdf5ExportSink, MemorySink
from pointcloth.render.surfaces import DrawingSurface, MatplotlibSurface, RecordingSurface


def register_all() -> None:
    """Register all built-in components with their registries.

    Size-mode factories accept the full set of controller options and pass
    on only the ones each mode understands.
    """

    def create_random_walk(**kwargs):
        return RandomWalkSize(
            kwargs["min_scale"],
            kwargs["max_scale"],
            scaling_ratio=kwargs.get("scaling_ratio", 1.75),
            keep_direction=kwargs.get("keep_direction", False),
            direction_steps=kwargs.get("direction_steps", 1),
            generator=kwargs.get("generator"),
        )

    def create_interpolated(**kwargs):
        return InterpolatedSize(
            kwargs["min_scale"],
            kwargs["max_scale"],
            scaling_ratio=kwargs.get("scaling_ratio", 1.75),
            frame_count=kwargs.get("frame_count", 100),
            generator=kwargs.get("generator"),
        )

    def create_constant(**kwargs):
        return ConstantSize()

    SIZE_MODE_REGISTRY.register("frameByFrame", RandomWalkSize, create_random_walk)
    SIZE_MODE_REGISTRY.register("interpolated", InterpolatedSize, create_interpolated)
    SIZE_MODE_REGISTRY.register("none", ConstantSize, create_constant)

    def create_pyqtgraph_surface(**kwargs):
        # Qt is only imported when a live window is requested
        from pointcloth.gui.display_window import ScatterSurface

        return ScatterSurface(**kwargs)

    SURFACE_REGISTRY.register("recording", RecordingSurface)
    SURFACE_REGISTRY.register("matplotlib", MatplotlibSurface)
    SURFACE_REGISTRY.register("pyqtgraph", DrawingSurface, create_pyqtgraph_surface)

    SINK_REGISTRY.register("memory", MemorySink)
    SINK_REGISTRY.register("csv", CsvExportSink)
    SINK_REGISTRY.register("hdf5", Hdf5ExportSink)


# Auto-register on import
register_all()
