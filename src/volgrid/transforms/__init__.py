"""Geometric transforms applied to grids."""

from volgrid.transforms.affine import AffineTransform
from volgrid.transforms.base import Transform
from volgrid.transforms.registry import get_transform, list_transforms, register_transform

__all__ = [
    "AffineTransform",
    "Transform",
    "get_transform",
    "list_transforms",
    "register_transform",
]
