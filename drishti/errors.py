# -*- coding: utf-8 -*-

"""

Exception hierarchy for drishti.

Contract violations (bad ranges, degenerate shapes, mismatched masks, missing
datatypes) raise immediately. Numeric edge cases are never errors; they are
resolved by clamping where they occur.

"""


class DrishtiError(Exception):
    """Base class for every error raised by drishti."""


class InvalidRangeError(DrishtiError, ValueError):
    """A resolved range has min > max on some axis."""


class InvalidShapeParamsError(DrishtiError, ValueError):
    """Degenerate or unsupported cylinder/sphere/shell parameters."""


class MaskLengthMismatchError(DrishtiError, ValueError):
    """A row mask does not have one entry per table row."""


class InvalidModeError(DrishtiError, ValueError):
    """Unknown histogram normalization mode or closed-side flag."""


class UnknownUnitError(DrishtiError, KeyError):
    """The requested unit is not part of the simulation scale table."""


class DataTypeUnavailableError(DrishtiError):
    """The simulation output does not provide the requested datatype."""


class LevelOutOfBoundsError(DrishtiError):
    """A requested refinement level lies outside [levelmin, levelmax]."""


class ProjectionCancelled(DrishtiError):
    """A projection was cancelled through its cancellation token."""


class UnknownVariableError(DrishtiError, KeyError):
    """The resolver cannot derive the requested variable from the table."""
