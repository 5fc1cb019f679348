"""End-of-game classification.

Checked once after every executed move, human or AI. Priority order:
checkmate, then stalemate, then any other draw the rules engine knows.
"""

from __future__ import annotations

from dataclasses import dataclass

from pocket_chess.models import color_name
from pocket_chess.rules import RulesEngine


@dataclass(frozen=True)
class Termination:
    kind: str
    message: str
    winner: str | None = None
    reason: str | None = None


def detect_termination(rules: RulesEngine) -> Termination | None:
    """Classify the current position.

    Args:
        rules: Rules engine positioned after the latest move.

    Returns:
        A Termination, or None if play continues.
    """
    if rules.is_checkmate():
        winner = color_name(not rules.side_to_move())
        return Termination(
            kind="checkmate",
            message=f"{winner.capitalize()} wins by checkmate!",
            winner=winner,
            reason="checkmate",
        )
    if rules.is_stalemate():
        return Termination(kind="stalemate", message="Draw by stalemate!", reason="stalemate")
    reason = rules.draw_reason()
    if reason is not None:
        return Termination(kind="draw", message="Draw!", reason=reason)
    return None
