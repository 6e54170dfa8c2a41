"""Boot script loading."""

from __future__ import annotations

from pathlib import Path

from .errors import ValidationError


def load_user_data(path: Path) -> bytes:
    """Read a boot script as raw bytes. Encoding happens in the provider."""
    try:
        return path.read_bytes()
    except OSError as e:
        raise ValidationError(f"Failed to read user data file at {path}: {e}") from e


__all__ = ["load_user_data"]
