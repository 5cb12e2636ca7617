"""Affine transforms in homogeneous 4x4 form."""

from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation

from volgrid.core.errors import TransformNotInvertibleError
from volgrid.transforms.base import Transform
from volgrid.transforms.registry import register_transform

# Above this condition number the linear part is treated as singular.
_MAX_CONDITION = 1e12


class AffineTransform(Transform):
    """``p -> A @ p + t`` stored as a homogeneous 4x4 matrix."""

    def __init__(self, matrix):
        matrix = np.array(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Affine matrix must be 4x4, got {matrix.shape}")
        if not np.allclose(matrix[3], (0.0, 0.0, 0.0, 1.0)):
            raise ValueError(f"Last row of an affine matrix must be (0, 0, 0, 1), got {matrix[3]}")
        self.matrix = matrix

    @property
    def linear(self) -> np.ndarray:
        return self.matrix[:3, :3]

    @property
    def offset(self) -> np.ndarray:
        return self.matrix[:3, 3]

    def apply_points(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        return points @ self.linear.T + self.offset

    def inverse(self) -> AffineTransform:
        linear = self.linear
        if not np.isfinite(self.matrix).all() or np.linalg.cond(linear) > _MAX_CONDITION:
            raise TransformNotInvertibleError(
                f"Transform is not invertible (linear part:\n{linear})"
            )
        try:
            inv = np.linalg.inv(self.matrix)
        except np.linalg.LinAlgError as e:
            raise TransformNotInvertibleError(f"Transform is not invertible: {e}") from e
        if not np.isfinite(inv).all():
            raise TransformNotInvertibleError("Transform inverse has non-finite entries")
        return AffineTransform(inv)

    def then(self, other: AffineTransform) -> AffineTransform:
        """Transform applying ``self`` first, then ``other``."""
        return AffineTransform(other.matrix @ self.matrix)

    def __matmul__(self, other: AffineTransform) -> AffineTransform:
        return AffineTransform(self.matrix @ other.matrix)

    def __repr__(self) -> str:
        return f"AffineTransform({self.matrix.tolist()})"

    # --- factories ---

    @classmethod
    def identity(cls) -> AffineTransform:
        return cls(np.eye(4))

    @classmethod
    def translation(cls, tx: float, ty: float, tz: float) -> AffineTransform:
        m = np.eye(4)
        m[:3, 3] = (tx, ty, tz)
        return cls(m)

    @classmethod
    def scaling(cls, sx: float, sy: float, sz: float, center=None) -> AffineTransform:
        m = np.diag([sx, sy, sz, 1.0])
        return _about_center(cls(m), center)

    @classmethod
    def rotation(cls, axis: str, degrees: float, center=None) -> AffineTransform:
        """Rotation by ``degrees`` about ``axis`` ("x", "y" or "z").

        With ``center`` the rotation is about that physical point instead
        of the origin.
        """
        axis = axis.lower()
        if axis not in ("x", "y", "z"):
            raise ValueError(f"Unknown rotation axis '{axis}'. Use 'x', 'y' or 'z'.")
        m = np.eye(4)
        m[:3, :3] = Rotation.from_euler(axis, degrees, degrees=True).as_matrix()
        return _about_center(cls(m), center)


def _about_center(transform: AffineTransform, center) -> AffineTransform:
    if center is None:
        return transform
    cx, cy, cz = (float(c) for c in center)
    return (
        AffineTransform.translation(-cx, -cy, -cz)
        .then(transform)
        .then(AffineTransform.translation(cx, cy, cz))
    )


@register_transform("identity")
def _identity() -> AffineTransform:
    """Leave every point where it is."""
    return AffineTransform.identity()


@register_transform("translate")
def _translate(tx: float = 0.0, ty: float = 0.0, tz: float = 0.0) -> AffineTransform:
    """Shift by (tx, ty, tz)."""
    return AffineTransform.translation(tx, ty, tz)


@register_transform("scale")
def _scale(
    sx: float = 1.0, sy: float = 1.0, sz: float = 1.0, center=None
) -> AffineTransform:
    """Scale per axis, optionally about a center point."""
    return AffineTransform.scaling(sx, sy, sz, center=center)


@register_transform("rotate")
def _rotate(axis: str = "z", degrees: float = 90.0, center=None) -> AffineTransform:
    """Rotate about the x, y or z axis, optionally about a center point."""
    return AffineTransform.rotation(axis, degrees, center=center)
