"""Shared data models for Pocket Chess.

GameState is the contract between the session controller and every
renderer (terminal UI, MCP server, current_game.json). All snapshots
are immutable; the rules engine owns the only mutable board.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import chess

FILES = "abcdefgh"


class Mode(str, Enum):
    """Game mode chosen on the play setup screen."""

    SINGLE_PLAYER = "single"
    TWO_PLAYER = "two"


def color_name(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


def square_from_grid(row: int, col: int) -> str:
    """Translate a (row, col) grid position to an algebraic square name.

    Row 0 is rank 8, so the grid reads top-to-bottom from Black's
    back rank, the way the board is drawn.

    Args:
        row: Grid row, 0-7.
        col: Grid column, 0-7 (0 = file a).

    Returns:
        Square name such as "e2".

    Raises:
        ValueError: If row or col is outside the board.
    """
    if not (0 <= row < 8 and 0 <= col < 8):
        raise ValueError(f"Grid position out of range: ({row}, {col})")
    return f"{FILES[col]}{8 - row}"


def grid_from_square(name: str) -> tuple[int, int]:
    """Inverse of square_from_grid.

    Raises:
        ValueError: If name is not a square on the board.
    """
    sq = chess.parse_square(name.strip().lower())
    return 7 - chess.square_rank(sq), chess.square_file(sq)


@dataclass(frozen=True)
class PieceView:
    """A piece as seen by renderers."""

    color: str
    kind: str

    @classmethod
    def from_piece(cls, piece: chess.Piece) -> PieceView:
        return cls(
            color=color_name(piece.color),
            kind=chess.piece_name(piece.piece_type),
        )


@dataclass(frozen=True)
class Selection:
    """Selected square and the legal destinations of its piece."""

    selected_square: str | None = None
    legal_targets: frozenset[str] = frozenset()

    @property
    def is_active(self) -> bool:
        return self.selected_square is not None


IDLE = Selection()


@dataclass(frozen=True)
class LastMove:
    """The most recently executed move, kept for highlighting."""

    from_square: str
    to_square: str

    @classmethod
    def from_move(cls, move: chess.Move) -> LastMove:
        return cls(
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
        )


@dataclass
class Preferences:
    """User preferences owned by the settings screen."""

    sound_on: bool = True


@dataclass(frozen=True)
class GameState:
    """Read-only snapshot of a session for display and sync."""

    session_id: str
    mode: str
    fen: str
    board: tuple[tuple[PieceView | None, ...], ...]
    turn: str
    human_color: str | None = None
    selected_square: str | None = None
    legal_targets: tuple[str, ...] = ()
    last_move: LastMove | None = None
    move_list: tuple[str, ...] = ()
    is_check: bool = False
    paused: bool = False
    is_game_over: bool = False
    termination_message: str | None = None
    winner: str | None = None
    ai_pending: bool = False
