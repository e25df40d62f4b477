"""Connection path discovery pipeline."""

from typing import Any

__all__ = ["find_connections", "resolve_target"]


def find_connections(*args: Any, **kwargs: Any):
    from .pipeline import find_connections as _find_connections

    return _find_connections(*args, **kwargs)


def resolve_target(*args: Any, **kwargs: Any):
    from .pipeline import resolve_target as _resolve_target

    return _resolve_target(*args, **kwargs)
