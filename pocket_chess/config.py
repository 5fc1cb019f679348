"""Runtime settings and logging setup for Pocket Chess.

Settings come from environment variables and are read once at import.
Entry points (tui.py, mcp-server/server.py) call configure_logging().
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

log = logging.getLogger(__name__)

_DEFAULT_AI_DELAY_MS = 500


def _get(name: str, default: Any, cast: Callable[[str], Any] | None = None) -> Any:
    """Read an environment variable, casting it when present.

    Args:
        name: Variable name.
        default: Value returned when the variable is unset or empty.
        cast: Optional conversion applied to the raw string.

    Returns:
        The converted value, or the default when unset, empty or not
        convertible.
    """
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    if cast is None:
        return raw
    try:
        return cast(raw)
    except ValueError:
        log.warning("Ignoring %s=%r: not a valid value, using %r", name, raw, default)
        return default


def _flag(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    ai_delay_ms: int
    sound_on: bool
    log_level: str
    seed: int | None

    @property
    def ai_delay_s(self) -> float:
        return max(0, self.ai_delay_ms) / 1000.0


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        ai_delay_ms=_get("POCKET_CHESS_AI_DELAY_MS", _DEFAULT_AI_DELAY_MS, cast=int),
        sound_on=_get("POCKET_CHESS_SOUND", True, cast=_flag),
        log_level=_get("POCKET_CHESS_LOG_LEVEL", "WARNING").upper(),
        seed=_get("POCKET_CHESS_SEED", None, cast=int),
    )


SETTINGS = load_settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for an entry point.

    Args:
        level: Level name; defaults to SETTINGS.log_level.
    """
    logging.basicConfig(
        level=getattr(logging, level or SETTINGS.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
