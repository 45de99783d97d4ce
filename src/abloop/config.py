"""
Configuration constants for the loop engine.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidConfigError

# Timecode
DEFAULT_FRAME_RATE = 30.0
MAX_FRAME_RATE = 120.0

# Persistence
STORAGE_KEY = "abloop.catalogs"
STORE_PATH_ENV = "ABLOOP_STORE"
DEFAULT_STORE_PATH = Path.home() / ".abloop" / "store.json"

# Display
DEFAULT_LOOP_NAME = "A-B Loop"
TIMECODE_FORMAT = "HH:MM:SS:FF"
MAX_TIMECODE_INPUT_LENGTH = 2


def resolve_store_path(path: str | os.PathLike | None = None) -> Path:
    """Pick the store file: explicit path, then $ABLOOP_STORE, then the default."""
    if path:
        return Path(path).expanduser()
    env_path = os.environ.get(STORE_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_STORE_PATH


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for a LoopEngine, validated when created."""

    storage_key: str = STORAGE_KEY
    default_frame_rate: float = DEFAULT_FRAME_RATE
    max_frame_rate: float = MAX_FRAME_RATE

    def __post_init__(self):
        if not self.storage_key or not self.storage_key.strip():
            raise InvalidConfigError("storage_key must be a non-empty string")
        if self.max_frame_rate <= 0:
            raise InvalidConfigError(
                f"max_frame_rate must be positive, got {self.max_frame_rate}"
            )
        if not 0 < self.default_frame_rate <= self.max_frame_rate:
            raise InvalidConfigError(
                f"default_frame_rate must be in (0, {self.max_frame_rate}], "
                f"got {self.default_frame_rate}"
            )
