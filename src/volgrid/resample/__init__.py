"""Transform-driven resampling of volumetric grids."""

from volgrid.resample.engine import apply_transform, compute_bounding_box, derive_output_geometry
from volgrid.resample.interpolate import interpolate_linear, sample_linear

__all__ = [
    "apply_transform",
    "compute_bounding_box",
    "derive_output_geometry",
    "interpolate_linear",
    "sample_linear",
]
