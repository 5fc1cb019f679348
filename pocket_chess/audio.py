"""Sound cues for game events.

Three cues: a move was played, a king is in check, the game ended.
Cues are fire-and-forget. A cue with no player, or whose player fails,
is skipped so that sound can never hold up a move.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Mapping

log = logging.getLogger(__name__)


class Cue(str, Enum):
    MOVE = "move"
    CHECK = "check"
    GAME_OVER = "game_over"


class SoundBoard:
    """Dispatch cues to players unless muted."""

    def __init__(
        self,
        players: Mapping[Cue, Callable[[], None]] | None = None,
        muted: Callable[[], bool] = lambda: False,
    ) -> None:
        """
        Args:
            players: Callable per cue. Missing cues are silently unavailable.
            muted: Read on every cue; the preference lives with the settings
                screen, not here.
        """
        self._players = dict(players or {})
        self._muted = muted

    def play(self, cue: Cue) -> bool:
        """Play a cue.

        Returns:
            True if a player ran, False if muted, unavailable or failed.
        """
        if self._muted():
            return False
        player = self._players.get(cue)
        if player is None:
            log.debug("No player for cue %s; skipping", cue.value)
            return False
        try:
            player()
        except (OSError, RuntimeError) as exc:
            log.warning("Sound cue %s failed: %s", cue.value, exc)
            return False
        return True
