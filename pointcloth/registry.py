"""Component registry for pluggable trial components.

Size-variation modes, drawing surfaces and export sinks register under a
string name and are created by name from configuration values, so new
implementations plug in without touching the engine.

Example:
    >>> from pointcloth.registry import SINK_REGISTRY
    >>> SINK_REGISTRY.register("memory", MemorySink)
    >>> sink = SINK_REGISTRY.create("memory")
"""

from __future__ import annotations

import warnings
from typing import Any, Callable, Dict, List, Optional, Tuple, Type


class ComponentRegistry:
    """Name -> component class registry.

    Attributes:
        _registry: Dict mapping component name to ``(class, factory_func)``.
            When ``factory_func`` is None the class is called directly.
    """

    def __init__(self, registry_name: str = "ComponentRegistry"):
        """Initialize an empty registry.

        Args:
            registry_name: Name used in error messages (e.g. "SINK_REGISTRY").
        """
        self._registry: Dict[str, Tuple[Type, Optional[Callable]]] = {}
        self._name = registry_name

    def register(
        self,
        name: str,
        cls: Type,
        factory_func: Optional[Callable] = None,
    ) -> None:
        """Register a component class under ``name``.

        Re-registering the same class is a no-op; replacing it with a
        different class warns.

        Args:
            name: Identifier used in configuration (e.g. "frameByFrame").
            cls: Component class.
            factory_func: Optional callable used instead of ``cls(**kwargs)``.
        """
        if name in self._registry:
            existing_cls, _ = self._registry[name]
            if existing_cls is cls:
                return
            warnings.warn(
                f"{self._name}: Component '{name}' already registered with "
                f"{existing_cls.__name__}, overwriting with {cls.__name__}",
                UserWarning,
            )
        self._registry[name] = (cls, factory_func)

    def _lookup(self, name: str) -> Tuple[Type, Optional[Callable]]:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry.keys()))
            raise KeyError(
                f"{self._name}: Component '{name}' not registered. "
                f"Available: {available}"
            )
        return self._registry[name]

    def create(self, name: str, **kwargs) -> Any:
        """Create a component instance by name.

        Raises:
            KeyError: If ``name`` is not registered.
        """
        cls, factory_func = self._lookup(name)
        if factory_func is not None:
            return factory_func(**kwargs)
        return cls(**kwargs)

    def list_registered(self) -> List[str]:
        """Sorted list of registered names."""
        return sorted(self._registry.keys())

    def is_registered(self, name: str) -> bool:
        return name in self._registry

    def get_class(self, name: str) -> Type:
        """Return the class registered under ``name``.

        Raises:
            KeyError: If ``name`` is not registered.
        """
        cls, _ = self._lookup(name)
        return cls


SIZE_MODE_REGISTRY = ComponentRegistry("SIZE_MODE_REGISTRY")
SURFACE_REGISTRY = ComponentRegistry("SURFACE_REGISTRY")
SINK_REGISTRY = ComponentRegistry("SINK_REGISTRY")
