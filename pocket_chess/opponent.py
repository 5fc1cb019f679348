"""RandomOpponent: picks a uniformly random legal move.

No evaluation, search or heuristics. The session controller plays the
chosen move through the same path as a human move.
"""

from __future__ import annotations

import random

import chess

from pocket_chess.rules import RulesEngine


class RandomOpponent:
    """Opponent for single-player mode."""

    name: str = "Random"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def choose(self, rules: RulesEngine) -> chess.Move | None:
        legal = rules.legal_moves()
        return self._rng.choice(legal) if legal else None
