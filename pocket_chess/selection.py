"""Tap-to-move selection state machine.

Two states: Idle (nothing selected) and Selected (a piece of the side to
move is picked and its legal destinations are highlighted). The machine
only reads the rules engine; executing the returned move is the session
controller's job.
"""

from __future__ import annotations

import logging

import chess

from pocket_chess.models import IDLE, Selection
from pocket_chess.rules import RulesEngine

log = logging.getLogger(__name__)


class SelectionMachine:
    """Turns square taps into move attempts."""

    def __init__(self) -> None:
        self._selection = IDLE

    @property
    def selection(self) -> Selection:
        return self._selection

    def clear(self) -> None:
        self._selection = IDLE

    def tap(self, square: str, rules: RulesEngine) -> chess.Move | None:
        """Feed one tap into the machine.

        Args:
            square: Tapped square name.
            rules: Rules engine for the current game (read only).

        Returns:
            The move to attempt when the tap completes a move, else None.
        """
        current = self._selection
        if current.is_active:
            self._selection = IDLE
            if square in current.legal_targets:
                return rules.resolve_move(current.selected_square, square)
            log.debug("Deselected %s (tapped %s)", current.selected_square, square)
            return None

        piece = rules.piece_at(square)
        if piece is None or piece.color != rules.side_to_move():
            return None

        targets = frozenset(
            chess.square_name(m.to_square) for m in rules.legal_moves(square)
        )
        self._selection = Selection(selected_square=square, legal_targets=targets)
        log.debug("Selected %s -> %s", square, sorted(targets))
        return None
