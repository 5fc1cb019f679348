"""Rules engine adapter for Pocket Chess.

Wraps a python-chess Board behind the small contract the game core
relies on:
- Legal move generation, optionally filtered by origin square
- Atomic move execution and single-ply undo
- Check, checkmate, stalemate and draw queries
- Read-only board snapshots for renderers

The core never inspects chess rules itself; everything goes through here.
"""

from __future__ import annotations

import logging

import chess

from pocket_chess.models import PieceView

log = logging.getLogger(__name__)


def _parse_square(square: str | int) -> chess.Square:
    if isinstance(square, int):
        return square
    return chess.parse_square(square.strip().lower())


class RulesEngine:
    """Authoritative board, history and legality for one game."""

    def __init__(self, starting_fen: str | None = None) -> None:
        """Create a board at the standard or a custom starting position.

        Args:
            starting_fen: Optional FEN to start from.

        Raises:
            ValueError: If the FEN cannot be parsed or describes an
                impossible position.
        """
        self._starting_fen = starting_fen or chess.STARTING_FEN
        self._board = chess.Board(self._starting_fen)
        if not self._board.is_valid():
            raise ValueError(f"Invalid FEN position: {self._starting_fen}")

    @property
    def starting_fen(self) -> str:
        return self._starting_fen

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def legal_moves(self, square: str | int | None = None) -> list[chess.Move]:
        """List legal moves for the side to move.

        Args:
            square: Optional origin square (name or index). When given,
                only moves starting there are returned.

        Returns:
            Legal moves in python-chess generation order.
        """
        if square is None:
            return list(self._board.legal_moves)
        sq = _parse_square(square)
        return list(self._board.generate_legal_moves(from_mask=chess.BB_SQUARES[sq]))

    def side_to_move(self) -> chess.Color:
        return self._board.turn

    def piece_at(self, square: str | int) -> chess.Piece | None:
        return self._board.piece_at(_parse_square(square))

    def resolve_move(self, from_square: str, to_square: str) -> chess.Move | None:
        """Find the legal move between two squares.

        Pawn moves onto the last rank always promote to a queen.

        Args:
            from_square: Origin square name.
            to_square: Destination square name.

        Returns:
            The matching legal move, or None if there is none.
        """
        dest = _parse_square(to_square)
        candidates = [m for m in self.legal_moves(from_square) if m.to_square == dest]
        if not candidates:
            return None
        for move in candidates:
            if move.promotion == chess.QUEEN:
                return move
        return candidates[0]

    def last_move(self) -> chess.Move | None:
        if not self._board.move_stack:
            return None
        return self._board.peek()

    def history_length(self) -> int:
        return len(self._board.move_stack)

    def is_in_check(self) -> bool:
        return self._board.is_check()

    def is_checkmate(self) -> bool:
        return self._board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self._board.is_stalemate()

    def draw_reason(self) -> str | None:
        """Name the non-stalemate draw condition that currently holds.

        Returns:
            "insufficient_material", "threefold_repetition",
            "fifty_moves", or None.
        """
        if self._board.is_insufficient_material():
            return "insufficient_material"
        if self._board.is_repetition(3):
            return "threefold_repetition"
        if self._board.is_fifty_moves():
            return "fifty_moves"
        return None

    def is_drawn_otherwise(self) -> bool:
        return self.draw_reason() is not None

    def is_game_over(self) -> bool:
        return (
            self.is_checkmate()
            or self.is_stalemate()
            or self.is_drawn_otherwise()
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def execute(self, move: chess.Move) -> bool:
        """Play a move if it is legal.

        Args:
            move: Move to play.

        Returns:
            True if the move was applied, False if it was rejected. A
            rejected move leaves board and turn untouched.
        """
        if move is None or not move or not self._board.is_legal(move):
            log.warning("Rejected move %s in %s", move, self._board.fen())
            return False
        self._board.push(move)
        return True

    def undo_last(self) -> chess.Move | None:
        """Revert exactly one executed move.

        Returns:
            The move that was taken back, or None if history is empty.
        """
        if not self._board.move_stack:
            return None
        return self._board.pop()

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def fen(self) -> str:
        return self._board.fen()

    def grid(self) -> tuple[tuple[PieceView | None, ...], ...]:
        """Snapshot the board as 8 rows, row 0 = rank 8, col 0 = file a."""
        rows = []
        for rank in range(7, -1, -1):
            row = []
            for file in range(8):
                piece = self._board.piece_at(chess.square(file, rank))
                row.append(PieceView.from_piece(piece) if piece else None)
            rows.append(tuple(row))
        return tuple(rows)

    def san_history(self) -> list[str]:
        """Replay the move stack from the starting position as SAN."""
        temp = chess.Board(self._starting_fen)
        sans: list[str] = []
        for move in self._board.move_stack:
            sans.append(temp.san(move))
            temp.push(move)
        return sans

