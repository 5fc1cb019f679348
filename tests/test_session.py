"""Pytest tests for SessionController.

Covers: tap routing and turn guards, move completion side effects,
the random opponent's deferred reply, undo, restart, pause/resume,
exit, termination and engine rejection. The opponent's timer runs on
a PolledScheduler driven by a fake clock (see conftest.py).
"""

from __future__ import annotations

import random

import chess
import pytest

from pocket_chess.audio import SoundBoard
from pocket_chess.models import LastMove
from pocket_chess.opponent import RandomOpponent
from pocket_chess.session import SessionController

from conftest import AI_DELAY

STALEMATE_FEN = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
BLACK_TO_MOVE_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


# ---------------------------------------------------------------------------
# Starting a session
# ---------------------------------------------------------------------------


class TestStart:

    def test_no_session_before_start(self, controller):
        assert controller.state() is None
        assert controller.tap_square("e2") is False
        assert controller.undo() is False
        assert controller.legal_moves() == []

    def test_fresh_session(self, controller):
        state = controller.on_game_start("single")
        assert state.fen == chess.STARTING_FEN
        assert state.mode == "single"
        assert state.turn == "white"
        assert state.human_color == "white"
        assert state.selected_square is None
        assert state.last_move is None
        assert state.termination_message is None
        assert not state.ai_pending

    def test_two_player_has_no_human_color(self, controller):
        assert controller.on_game_start("two").human_color is None

    def test_invalid_mode_raises(self, controller):
        with pytest.raises(ValueError):
            controller.on_game_start("three")

    def test_invalid_fen_keeps_current_session(self, controller, play):
        controller.on_game_start("two")
        play("e2e4")
        with pytest.raises(ValueError):
            controller.on_game_start("two", "not a fen")
        assert controller.state().move_list == ("e4",)

    def test_custom_fen_already_over(self, controller):
        state = controller.on_game_start("two", STALEMATE_FEN)
        assert state.is_game_over
        assert state.termination_message == "Draw by stalemate!"

    def test_custom_fen_with_ai_to_move_schedules_reply(self, controller, scheduler):
        state = controller.on_game_start("single", BLACK_TO_MOVE_FEN)
        assert state.ai_pending
        assert scheduler.pending == 1

    def test_human_as_black_waits_for_ai_opening(self, scheduler, clock):
        controller = SessionController(
            scheduler,
            opponent=RandomOpponent(random.Random(1)),
            ai_delay=AI_DELAY,
            human_color=chess.BLACK,
        )
        assert controller.on_game_start("single").ai_pending
        assert controller.tap_square("e7") is False
        clock.advance(AI_DELAY)
        scheduler.poll()
        state = controller.state()
        assert state.turn == "black"
        assert len(state.move_list) == 1


# ---------------------------------------------------------------------------
# Taps and moves
# ---------------------------------------------------------------------------


class TestTaps:

    def test_tap_by_grid_selects(self, controller):
        controller.on_game_start("two")
        assert controller.tap(6, 4) is False
        state = controller.state()
        assert state.selected_square == "e2"
        assert state.legal_targets == ("e3", "e4")

    def test_tap_completes_move(self, controller, sound_log):
        controller.on_game_start("two")
        controller.tap_square("g1")
        assert controller.tap_square("f3") is True
        state = controller.state()
        assert state.last_move == LastMove("g1", "f3")
        assert state.turn == "black"
        assert state.selected_square is None
        assert state.legal_targets == ()
        assert sound_log == ["move"]

    def test_square_names_are_normalised(self, controller):
        controller.on_game_start("two")
        controller.tap_square(" E2 ")
        assert controller.state().selected_square == "e2"

    def test_invalid_square_raises(self, controller):
        controller.on_game_start("two")
        with pytest.raises(ValueError):
            controller.tap_square("z9")

    def test_two_player_alternates(self, controller, play):
        controller.on_game_start("two")
        play("e2e4", "e7e5", "g1f3")
        assert controller.state().move_list == ("e4", "e5", "Nf3")

    def test_check_cue(self, controller, play, sound_log):
        controller.on_game_start("two")
        play("e2e4", "f7f6", "d1h5")
        assert controller.state().is_check
        assert sound_log[-2:] == ["move", "check"]

    def test_engine_rejection_is_a_no_op(self, controller, sound_log, monkeypatch):
        controller.on_game_start("two")
        monkeypatch.setattr(controller.session.rules, "execute", lambda move: False)
        controller.tap_square("e2")
        assert controller.tap_square("e4") is False
        state = controller.state()
        assert state.fen == chess.STARTING_FEN
        assert state.selected_square is None
        assert state.last_move is None
        assert sound_log == []

    def test_legal_moves(self, controller):
        controller.on_game_start("two")
        assert sorted(controller.legal_moves("e2")) == ["e2e3", "e2e4"]
        assert len(controller.legal_moves()) == 20

    def test_on_change_receives_snapshots(self, scheduler):
        seen = []
        controller = SessionController(scheduler, ai_delay=AI_DELAY, on_change=seen.append)
        controller.on_game_start("two")
        controller.tap_square("e2")
        assert [s.selected_square for s in seen] == [None, "e2"]
        controller.on_exit_to_menu()
        assert seen[-1] is None


# ---------------------------------------------------------------------------
# Random opponent
# ---------------------------------------------------------------------------


class TestOpponentReply:

    def test_reply_after_delay(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        state = controller.state()
        assert state.last_move == LastMove("e2", "e4")
        assert state.turn == "black"
        assert state.ai_pending

        clock.advance(AI_DELAY / 2)
        assert scheduler.poll() == 0
        assert len(controller.state().move_list) == 1

        clock.advance(AI_DELAY / 2)
        assert scheduler.poll() == 1
        state = controller.state()
        assert len(state.move_list) == 2
        assert state.turn == "white"
        assert not state.ai_pending
        assert state.last_move == LastMove.from_move(controller.session.rules.last_move())

    def test_exactly_one_reply_per_human_move(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        for _ in range(5):
            clock.advance(AI_DELAY)
            scheduler.poll()
        assert len(controller.state().move_list) == 2
        assert scheduler.pending == 0

    def test_taps_ignored_during_ai_turn(self, controller, play):
        controller.on_game_start("single")
        play("e2e4")
        assert controller.tap_square("e7") is False
        assert controller.tap_square("e5") is False
        assert controller.state().selected_square is None
        assert len(controller.state().move_list) == 1

    def test_reply_plays_move_cue(self, controller, play, scheduler, clock, sound_log):
        controller.on_game_start("single")
        play("e2e4")
        clock.advance(AI_DELAY)
        scheduler.poll()
        assert sound_log[:2] == ["move", "move"]

    def test_no_ai_in_two_player(self, controller, play, scheduler):
        controller.on_game_start("two")
        play("e2e4")
        assert scheduler.pending == 0
        assert not controller.state().ai_pending


# ---------------------------------------------------------------------------
# Undo
# ---------------------------------------------------------------------------


class TestUndo:

    def test_undo_restores_previous_state(self, controller, play):
        controller.on_game_start("two")
        play("e2e4", "e7e5")
        before = controller.state()
        play("g1f3")
        assert controller.undo() is True
        after = controller.state()
        assert after.fen == before.fen
        assert after.turn == before.turn
        assert after.last_move == before.last_move == LastMove("e7", "e5")
        assert after.selected_square is None
        assert after.move_list == before.move_list

    def test_undo_first_move_clears_last_move(self, controller, play):
        controller.on_game_start("two")
        play("e2e4")
        controller.undo()
        state = controller.state()
        assert state.fen == chess.STARTING_FEN
        assert state.last_move is None

    def test_undo_clears_selection(self, controller, play):
        controller.on_game_start("two")
        play("e2e4")
        controller.tap_square("e7")
        controller.undo()
        assert controller.state().selected_square is None

    def test_undo_empty_history(self, controller):
        controller.on_game_start("two")
        assert controller.undo() is False

    def test_undo_after_reply_does_not_retrigger_ai(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        clock.advance(AI_DELAY)
        scheduler.poll()

        assert controller.undo() is True
        state = controller.state()
        assert state.turn == "black"
        assert not state.ai_pending
        assert scheduler.pending == 0
        clock.advance(AI_DELAY * 10)
        assert scheduler.poll() == 0

        assert controller.undo() is True
        assert controller.state().fen == chess.STARTING_FEN
        play("d2d4")
        assert controller.state().ai_pending

    def test_undo_cancels_pending_reply(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        controller.undo()
        assert scheduler.pending == 0
        clock.advance(AI_DELAY)
        assert scheduler.poll() == 0
        assert controller.state().fen == chess.STARTING_FEN

    def test_undo_inert_when_paused_or_over(self, controller, play):
        controller.on_game_start("two")
        play("e2e4")
        controller.on_pause_requested()
        assert controller.undo() is False
        controller.on_game_start("two", STALEMATE_FEN)
        assert controller.undo() is False


# ---------------------------------------------------------------------------
# Restart, pause, exit
# ---------------------------------------------------------------------------


class TestLifecycle:

    def test_restart_without_session(self, controller):
        assert controller.on_restart_requested() is None

    def test_restart_is_idempotent(self, controller, play):
        controller.on_game_start("two", STALEMATE_FEN)
        ids = set()
        for _ in range(3):
            state = controller.on_restart_requested()
            ids.add(state.session_id)
            assert state.fen == chess.STARTING_FEN
            assert state.mode == "two"
            assert state.selected_square is None
            assert state.last_move is None
            assert state.termination_message is None
            assert state.move_list == ()
            play("e2e4")
            controller.tap_square("e7")
        assert len(ids) == 3

    def test_restart_cancels_pending_reply(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        controller.on_restart_requested()
        assert scheduler.pending == 0
        clock.advance(AI_DELAY)
        scheduler.poll()
        assert controller.state().fen == chess.STARTING_FEN

    def test_pause_cancels_and_resume_reschedules(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        controller.on_pause_requested()
        assert controller.state().paused
        assert scheduler.pending == 0
        clock.advance(AI_DELAY * 4)
        assert scheduler.poll() == 0

        controller.on_resume()
        assert controller.state().ai_pending
        clock.advance(AI_DELAY)
        scheduler.poll()
        assert len(controller.state().move_list) == 2

    def test_taps_ignored_while_paused(self, controller):
        controller.on_game_start("two")
        controller.on_pause_requested()
        assert controller.tap_square("e2") is False
        assert controller.state().selected_square is None

    def test_resume_on_human_turn_schedules_nothing(self, controller, scheduler):
        controller.on_game_start("single")
        controller.on_pause_requested()
        controller.on_resume()
        assert not controller.state().paused
        assert scheduler.pending == 0

    def test_exit_discards_session_and_timer(self, controller, play, scheduler, clock):
        controller.on_game_start("single")
        play("e2e4")
        controller.on_exit_to_menu()
        assert controller.state() is None
        assert scheduler.pending == 0
        clock.advance(AI_DELAY)
        assert scheduler.poll() == 0

    def test_stale_reply_is_dropped(self):
        # A scheduler whose handles cannot be cancelled still must not
        # let an old session's reply land on the new one.
        class _Uncancellable:
            def cancel(self):
                pass

        callbacks = []

        class _Recording:
            def call_later(self, delay, callback):
                callbacks.append(callback)
                return _Uncancellable()

        controller = SessionController(_Recording(), ai_delay=AI_DELAY)
        controller.on_game_start("single")
        controller.tap_square("e2")
        controller.tap_square("e4")
        controller.on_game_start("two")
        callbacks[0]()
        assert controller.state().move_list == ()


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


class TestTermination:

    def test_fools_mate_through_taps(self, controller, play, sound_log):
        controller.on_game_start("two")
        play("f2f3", "e7e5", "g2g4", "d8h4")
        state = controller.state()
        assert state.is_game_over
        assert state.winner == "black"
        assert state.termination_message == "Black wins by checkmate!"
        assert sound_log == ["move", "move", "move", "move", "check", "game_over"]

    def test_board_inert_after_game_over(self, controller, play):
        controller.on_game_start("two")
        play("f2f3", "e7e5", "g2g4", "d8h4")
        fen = controller.state().fen
        assert controller.tap_square("e2") is False
        assert controller.state().selected_square is None
        assert controller.undo() is False
        assert controller.state().fen == fen

    def test_message_survives_until_new_session(self, controller, play):
        controller.on_game_start("two")
        play("f2f3", "e7e5", "g2g4", "d8h4")
        controller.on_pause_requested()
        controller.on_resume()
        assert controller.state().termination_message == "Black wins by checkmate!"
        assert controller.on_restart_requested().termination_message is None

    def test_no_reply_scheduled_after_human_mates(self, scheduler):
        controller = SessionController(scheduler, sound=SoundBoard(), ai_delay=AI_DELAY)
        controller.on_game_start("single", "6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1")
        controller.tap_square("a1")
        controller.tap_square("a8")
        assert controller.state().termination_message == "White wins by checkmate!"
        assert scheduler.pending == 0
