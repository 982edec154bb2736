"""
Common package for hybrid_slam.

Shared key types, errors and configuration used by every other subpackage.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "HybridParams",
    "constants",
]

_LAZY_ATTRS: dict[str, tuple[str, str | None]] = {
    "HybridParams": ("hybrid_slam.common.param_models", "HybridParams"),
    # Expose as a submodule without importing it eagerly.
    "constants": ("hybrid_slam.common.constants", None),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return module if attr_name is None else getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
