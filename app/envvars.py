"""
Environment parsing helpers.

Kept apart from config so the desktop side can read its settings without
config's required server secrets.
"""
import os


def int_env(key: str, default: int, minimum: int = 1) -> int:
    """Integer env var clamped to minimum; unparsable values fall back to default."""
    try:
        return max(minimum, int(os.getenv(key, str(default))))
    except ValueError:
        return default


def bool_env(key: str, default: bool = False) -> bool:
    return os.getenv(key, "true" if default else "false").lower() in ("1", "true", "yes")
