"""Exception and warning types raised by pointcloth.

Configuration and data problems are fatal and surface before the first
display tick. Runtime degeneracies (an exhausted sampling pool, an empty
selection, a non-positive duration) are not raised; the engine degrades to
an empty presentation and reports them through :class:`DegeneracyWarning`.
"""

from __future__ import annotations


class PointClothError(Exception):
    """Base class for all pointcloth errors."""


class ConfigurationError(PointClothError, ValueError):
    """Missing or invalid trial parameters (grid, size bounds, ISI, ...)."""


class DataError(PointClothError, ValueError):
    """Malformed or inconsistent dot trajectory input."""


class DegeneracyWarning(UserWarning):
    """A trial was set up with inputs that can only produce an empty display."""
