"""Turn and session controller for Pocket Chess.

Owns the active game session and sequences human and AI turns:
- Routes taps through the selection machine and guards them by turn
- Completes moves through the rules engine, then updates the last-move
  marker, plays sound cues and runs termination detection
- Schedules the random opponent's reply in single-player mode as a
  one-shot deferred callback, and cancels it whenever the session is
  paused, restarted, exited or undone
- Implements the lifecycle hooks the navigation layer calls

Renderers never touch the session directly; they receive immutable
GameState snapshots through on_change() or state().
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from functools import partial
from typing import Callable

import chess

from pocket_chess.audio import Cue, SoundBoard
from pocket_chess.config import SETTINGS
from pocket_chess.models import GameState, LastMove, Mode, color_name, square_from_grid
from pocket_chess.opponent import RandomOpponent
from pocket_chess.rules import RulesEngine
from pocket_chess.scheduler import Cancellable, Scheduler
from pocket_chess.selection import SelectionMachine
from pocket_chess.termination import Termination, detect_termination

log = logging.getLogger(__name__)


@dataclass
class GameSession:
    """One game instance, from start until exit to the menu."""

    mode: Mode
    rules: RulesEngine
    human_color: chess.Color
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    paused: bool = False
    termination: Termination | None = None
    last_move: LastMove | None = None
    selection: SelectionMachine = field(default_factory=SelectionMachine)
    ai_timer: Cancellable | None = None
    snapshot: GameState | None = None


class SessionController:
    """Mediates between taps, the rules engine and renderers."""

    def __init__(
        self,
        scheduler: Scheduler,
        sound: SoundBoard | None = None,
        opponent: RandomOpponent | None = None,
        ai_delay: float | None = None,
        human_color: chess.Color = chess.WHITE,
        on_change: Callable[[GameState | None], None] | None = None,
    ) -> None:
        """
        Args:
            scheduler: Source of one-shot timers for the AI reply.
            sound: Cue dispatcher; no sound when omitted.
            opponent: Move policy for single-player mode.
            ai_delay: Seconds between a human move and the AI reply.
                Defaults to SETTINGS.ai_delay_s.
            human_color: Side the human plays in single-player mode.
            on_change: Called with the new snapshot after every visible
                change, and with None when the session is discarded.
        """
        self._scheduler = scheduler
        self._sound = sound or SoundBoard()
        self._opponent = opponent or RandomOpponent()
        self._ai_delay = SETTINGS.ai_delay_s if ai_delay is None else max(0.0, ai_delay)
        self._human_color = human_color
        self._on_change = on_change
        self._session: GameSession | None = None

    @property
    def session(self) -> GameSession | None:
        return self._session

    def state(self) -> GameState | None:
        return self._session.snapshot if self._session else None

    # ------------------------------------------------------------------
    # Lifecycle hooks (called by navigation)
    # ------------------------------------------------------------------

    def on_game_start(self, mode: Mode | str, starting_fen: str | None = None) -> GameState:
        """Start a new session, replacing any existing one.

        Args:
            mode: Single-player or two-player.
            starting_fen: Optional custom starting position.

        Returns:
            Snapshot of the new session.

        Raises:
            ValueError: If mode or starting_fen is invalid.
        """
        mode = Mode(mode)
        rules = RulesEngine(starting_fen)
        self._discard()
        self._session = GameSession(mode=mode, rules=rules, human_color=self._human_color)
        if starting_fen is not None:
            self._session.termination = detect_termination(rules)
        log.info("Started %s-player session %s", mode.value, self._session.session_id)
        self._maybe_schedule_ai(self._session)
        return self._refresh()

    def on_pause_requested(self) -> None:
        session = self._session
        if session is None or session.paused:
            return
        session.paused = True
        self._cancel_ai(session)
        log.info("Paused session %s", session.session_id)
        self._refresh()

    def on_resume(self) -> None:
        session = self._session
        if session is None or not session.paused:
            return
        session.paused = False
        log.info("Resumed session %s", session.session_id)
        self._maybe_schedule_ai(session)
        self._refresh()

    def on_exit_to_menu(self) -> None:
        if self._session is None:
            return
        log.info("Exited session %s", self._session.session_id)
        self._discard()
        if self._on_change is not None:
            self._on_change(None)

    def on_restart_requested(self) -> GameState | None:
        """Replace the session with a fresh one in the same mode.

        Always lands on the standard starting position with no
        selection, last move or termination message.

        Returns:
            Snapshot of the new session, or None without a session.
        """
        if self._session is None:
            log.debug("Restart requested without a session")
            return None
        return self.on_game_start(self._session.mode)

    # ------------------------------------------------------------------
    # Player input
    # ------------------------------------------------------------------

    def tap(self, row: int, col: int) -> bool:
        """Handle a tap addressed by grid position (row 0 = rank 8)."""
        return self.tap_square(square_from_grid(row, col))

    def tap_square(self, square: str) -> bool:
        """Handle a tap on a named square.

        Args:
            square: Square name such as "e2".

        Returns:
            True if the tap completed a move.

        Raises:
            ValueError: If square is not a board square.
        """
        square = chess.square_name(chess.parse_square(square.strip().lower()))
        session = self._session
        if session is None:
            return False
        if session.paused or session.termination is not None:
            log.debug("Ignored tap on %s: board inactive", square)
            return False
        if not self._is_human_turn(session):
            log.debug("Ignored tap on %s: not the human's turn", square)
            return False

        move = session.selection.tap(square, session.rules)
        if move is None:
            self._refresh()
            return False
        return self._complete_move(session, move)

    def undo(self) -> bool:
        """Take back exactly one ply.

        Never schedules the AI, even when the undo hands the turn to it.
        LastMove is restored from the move now on top of the history
        (None once it is empty) rather than blanked, so move + undo gives
        back exactly the pre-move highlight.

        Returns:
            True if a move was taken back.
        """
        session = self._session
        if session is None or session.paused or session.termination is not None:
            return False
        if session.rules.history_length() == 0:
            return False

        self._cancel_ai(session)
        undone = session.rules.undo_last()
        session.selection.clear()
        previous = session.rules.last_move()
        session.last_move = LastMove.from_move(previous) if previous else None
        log.info("Undid %s", undone)
        self._refresh()
        return True

    def legal_moves(self, square: str | None = None) -> list[str]:
        """Legal moves in UCI for the current session (empty without one)."""
        if self._session is None:
            return []
        return [m.uci() for m in self._session.rules.legal_moves(square)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_human_turn(self, session: GameSession) -> bool:
        if session.mode is Mode.TWO_PLAYER:
            return True
        return session.rules.side_to_move() == session.human_color

    def _complete_move(self, session: GameSession, move: chess.Move) -> bool:
        session.selection.clear()
        if not session.rules.execute(move):
            self._refresh()
            return False

        session.last_move = LastMove.from_move(move)
        log.info("Played %s in session %s", move.uci(), session.session_id)
        self._sound.play(Cue.MOVE)
        if session.rules.is_in_check():
            self._sound.play(Cue.CHECK)

        session.termination = detect_termination(session.rules)
        if session.termination is not None:
            log.info("Game over: %s", session.termination.message)
            self._sound.play(Cue.GAME_OVER)

        self._maybe_schedule_ai(session)
        self._refresh()
        return True

    def _maybe_schedule_ai(self, session: GameSession) -> None:
        if session.mode is not Mode.SINGLE_PLAYER:
            return
        if session.paused or session.termination is not None:
            return
        if session.rules.side_to_move() == session.human_color:
            return
        if session.ai_timer is not None:
            return
        session.ai_timer = self._scheduler.call_later(
            self._ai_delay, partial(self._play_ai_move, session)
        )

    def _play_ai_move(self, session: GameSession) -> None:
        session.ai_timer = None
        if session is not self._session:
            log.debug("Dropped AI move for stale session %s", session.session_id)
            return
        if session.paused or session.termination is not None:
            return
        if session.rules.side_to_move() == session.human_color:
            return

        move = self._opponent.choose(session.rules)
        if move is None:
            return
        self._complete_move(session, move)

    def _cancel_ai(self, session: GameSession) -> None:
        if session.ai_timer is not None:
            session.ai_timer.cancel()
            session.ai_timer = None

    def _discard(self) -> None:
        if self._session is not None:
            self._cancel_ai(self._session)
        self._session = None

    def _refresh(self) -> GameState:
        session = self._session
        rules = session.rules
        selection = session.selection.selection
        termination = session.termination
        state = GameState(
            session_id=session.session_id,
            mode=session.mode.value,
            fen=rules.fen(),
            board=rules.grid(),
            turn=color_name(rules.side_to_move()),
            human_color=(
                color_name(session.human_color)
                if session.mode is Mode.SINGLE_PLAYER else None
            ),
            selected_square=selection.selected_square,
            legal_targets=tuple(sorted(selection.legal_targets)),
            last_move=session.last_move,
            move_list=tuple(rules.san_history()),
            is_check=rules.is_in_check(),
            paused=session.paused,
            is_game_over=termination is not None,
            termination_message=termination.message if termination else None,
            winner=termination.winner if termination else None,
            ai_pending=session.ai_timer is not None,
        )
        session.snapshot = state
        if self._on_change is not None:
            self._on_change(state)
        return state
