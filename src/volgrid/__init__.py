"""volgrid: calibrated 3-D grids and transform-driven resampling."""

__version__ = "0.1.0"
