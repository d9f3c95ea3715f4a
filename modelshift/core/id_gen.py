"""Run ids: UUID v7 hex, so ids sort by start time."""

from uuid_extensions import uuid7


def generate_id(prefix: str = "load_") -> str:
    """Return a run id such as "load_01926f4e8b7d7a8e9c0d1e2f3a4b5c6d"."""
    return f"{prefix}{uuid7().hex}"
