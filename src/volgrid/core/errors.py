"""Exception types raised by volgrid."""

from __future__ import annotations


class VolgridError(Exception):
    """Base class for all volgrid errors."""


class InvalidGeometryError(VolgridError, ValueError):
    """Size, spacing or slice shape is not usable for a grid."""


class GridStateError(VolgridError, RuntimeError):
    """A grid was used in a way its lifecycle does not allow."""


class TransformNotInvertibleError(VolgridError, ValueError):
    """The transform has no usable inverse."""


class ResampleError(VolgridError, RuntimeError):
    """A resampling worker failed; the target grid was left unchanged."""
