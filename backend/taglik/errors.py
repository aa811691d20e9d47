from __future__ import annotations


class TagLikError(Exception):
    """Base class for likelihood-engine errors."""


class InsufficientDataError(TagLikError):
    """A single day's profile cannot support a stable regression.

    Recoverable at the day level: the day's surface becomes undefined (NaN)
    and sibling days carry on.
    """


class DateFormatError(TagLikError, TypeError):
    """Tag, fix or dateVector values cannot be compared as calendar days."""


class GridMismatchError(TagLikError, ValueError):
    """Grids do not overlap, or layers have incompatible shapes."""


class DuplicateFixWarning(UserWarning):
    """More than one fix maps to the same timestep; only the first is used."""
