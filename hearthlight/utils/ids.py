"""Identifier helpers."""

from cuid2 import cuid_wrapper

cuid = cuid_wrapper()


def new_id(prefix: str | None = None) -> str:
    """Generate a CUID, optionally namespaced like ``task-<cuid>``."""
    return f"{prefix}-{cuid()}" if prefix else cuid()
