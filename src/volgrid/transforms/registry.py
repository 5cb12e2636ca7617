"""Named transform factories with decorator-based registration."""

from __future__ import annotations

from collections.abc import Callable

from volgrid.transforms.base import Transform

_registry: dict[str, Callable[..., Transform]] = {}


def register_transform(name: str):
    """Decorator to register a transform factory under ``name``."""

    def decorator(factory: Callable[..., Transform]):
        _registry[name] = factory
        return factory

    return decorator


def get_transform(name: str, **params) -> Transform:
    """Build a registered transform by name."""
    if name not in _registry:
        available = ", ".join(sorted(_registry.keys()))
        raise ValueError(f"Unknown transform '{name}'. Available: {available}")
    return _registry[name](**params)


def list_transforms() -> list[dict[str, str]]:
    """List all registered transforms with their descriptions."""
    transforms = []
    for name, factory in sorted(_registry.items()):
        doc = (factory.__doc__ or "").strip().splitlines()
        transforms.append({"name": name, "description": doc[0] if doc else ""})
    return transforms
