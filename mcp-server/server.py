"""MCP server for Pocket Chess.

Exposes the game core to an agent via FastMCP. One app instance lives in
memory: a navigator, its session controller and a polled scheduler for
the random opponent's reply. Every tool call first fires any due timer.
Board state is synced to data/current_game.json after every change for
TUI consumption (pocket-chess watch).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
import sys
from dataclasses import asdict
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

from mcp.server.fastmcp import FastMCP  # noqa: E402

from pocket_chess.audio import SoundBoard  # noqa: E402
from pocket_chess.config import SETTINGS, configure_logging  # noqa: E402
from pocket_chess.models import GameState, Mode, Preferences  # noqa: E402
from pocket_chess.navigation import NavEvent, NavigationError, Navigator, Screen  # noqa: E402
from pocket_chess.opponent import RandomOpponent  # noqa: E402
from pocket_chess.scheduler import PolledScheduler  # noqa: E402
from pocket_chess.session import SessionController  # noqa: E402

from response_schemas import (  # noqa: E402
    GAME_STATE_SCHEMA,
    LEGAL_MOVES_SCHEMA,
    NAVIGATION_SCHEMA,
    minify_game_state,
    validate_response,
)

log = logging.getLogger(__name__)

mcp = FastMCP("pocket-chess")

_DATA_DIR = _PROJECT_ROOT / "data"

# Timers are compared against time.monotonic(); sleep slightly past the deadline
_WAIT_MARGIN_S = 0.01


def _sync_game_json(state: GameState | None) -> None:
    """Write game state to data/current_game.json atomically.

    Uses temp file + os.replace() for atomic write. A discarded session
    removes the file so the TUI falls back to its waiting screen.

    Args:
        state: Snapshot to persist, or None when the session ended.
    """
    _DATA_DIR.mkdir(parents=True, exist_ok=True)
    target = _DATA_DIR / "current_game.json"
    if state is None:
        target.unlink(missing_ok=True)
        return
    tmp = _DATA_DIR / "current_game.tmp"
    tmp.write_text(
        json.dumps(asdict(state), indent=2, default=str, ensure_ascii=False),
        encoding="utf-8",
    )
    os.replace(tmp, target)


# No audio device behind an MCP server: every cue is unavailable.
_preferences = Preferences(sound_on=SETTINGS.sound_on)
_scheduler = PolledScheduler()
_controller = SessionController(
    _scheduler,
    sound=SoundBoard(muted=lambda: not _preferences.sound_on),
    opponent=RandomOpponent(random.Random(SETTINGS.seed)),
    ai_delay=SETTINGS.ai_delay_s,
    on_change=lambda state: _sync_game_json(state),
)
_navigator = Navigator(_controller, _preferences)


def _checked(response: dict, schema: dict) -> dict:
    """Log schema violations (only when POCKET_CHESS_VALIDATE=1) and pass through."""
    errors = validate_response(response, schema)
    if errors:
        log.warning("Response failed validation: %s", "; ".join(errors))
    return response


def _state_response() -> dict:
    """Minified GameState of the active session plus the current screen."""
    state = _controller.state()
    if state is None:
        return {"error": "No active game. Call start_game first."}
    response = minify_game_state(asdict(state))
    response["screen"] = _navigator.screen.value
    return _checked(response, GAME_STATE_SCHEMA)


def _navigation_response() -> dict:
    return _checked({
        "screen": _navigator.screen.value,
        "allowed_events": [e.value for e in _navigator.allowed_events()],
        "sound_on": _preferences.sound_on,
    }, NAVIGATION_SCHEMA)


def _require_game_screen() -> dict | None:
    if _navigator.screen is not Screen.GAME:
        return {"error": f"Board is not visible (screen: {_navigator.screen.value})"}
    return None


# ---------------------------------------------------------------------------
# Session lifecycle tools
# ---------------------------------------------------------------------------


@mcp.tool()
def start_game(mode: str = "single", starting_fen: str | None = None) -> dict:
    """Start a new game from the menus.

    Args:
        mode: 'single' (play white against a random mover) or 'two'
            (both sides from this client).
        starting_fen: Optional custom starting position FEN.

    Returns:
        GameState dict with the initial position.
    """
    _scheduler.poll()
    if _navigator.screen not in (Screen.MAIN_MENU, Screen.PLAY_SETUP):
        return {"error": f"A game is already open (screen: {_navigator.screen.value}). Exit it first."}
    try:
        mode = Mode(mode).value
    except ValueError:
        return {"error": f"Invalid mode: {mode}. Use 'single' or 'two'."}

    if _navigator.screen is Screen.MAIN_MENU:
        _navigator.dispatch(NavEvent.PLAY)
    try:
        _navigator.start_game(mode, starting_fen)
    except ValueError as exc:
        return {"error": f"Invalid FEN: {exc}"}
    return _state_response()


@mcp.tool()
def pause_game() -> dict:
    """Pause the game (the OS back button). Cancels a pending AI reply.

    Returns:
        Navigation dict with the pause menu's allowed events.
    """
    _scheduler.poll()
    if not _navigator.back_signal():
        return {"error": f"Nothing to pause (screen: {_navigator.screen.value})"}
    return _navigation_response()


@mcp.tool()
def resume_game() -> dict:
    """Continue a paused game.

    Returns:
        GameState dict.
    """
    _scheduler.poll()
    try:
        _navigator.dispatch(NavEvent.CONTINUE)
    except NavigationError as exc:
        return {"error": str(exc)}
    return _state_response()


@mcp.tool()
def restart_game() -> dict:
    """Restart in the same mode from the standard starting position.

    Returns:
        GameState dict for the fresh session.
    """
    _scheduler.poll()
    try:
        _navigator.dispatch(NavEvent.RESTART)
    except NavigationError as exc:
        return {"error": str(exc)}
    return _state_response()


@mcp.tool()
def exit_to_menu() -> dict:
    """Discard the session and return to the main menu.

    Allowed from the pause menu, or from the board once the game is over.

    Returns:
        Navigation dict.
    """
    _scheduler.poll()
    try:
        _navigator.dispatch(NavEvent.EXIT)
    except NavigationError as exc:
        return {"error": str(exc)}
    return _navigation_response()


@mcp.tool()
def navigate(event: str) -> dict:
    """Send a raw navigation event (e.g. 'settings', 'toggle_sound', 'back').

    Args:
        event: Navigation event name.

    Returns:
        Navigation dict with the new screen and its allowed events.
    """
    _scheduler.poll()
    try:
        _navigator.dispatch(event)
    except NavigationError as exc:
        return {"error": str(exc)}
    return _navigation_response()


# ---------------------------------------------------------------------------
# Board tools
# ---------------------------------------------------------------------------


@mcp.tool()
def tap_square(square: str) -> dict:
    """Tap a square: select a piece, move it, or deselect.

    Args:
        square: Square name, e.g. 'e2'.

    Returns:
        GameState dict with a 'moved' flag.
    """
    _scheduler.poll()
    error = _require_game_screen()
    if error is not None:
        return error
    try:
        moved = _controller.tap_square(square)
    except ValueError:
        return {"error": f"Invalid square: {square}"}
    response = _state_response()
    response["moved"] = moved
    return response


@mcp.tool()
def undo_move() -> dict:
    """Take back exactly one ply. Never triggers the AI.

    Returns:
        GameState dict with an 'undone' flag.
    """
    _scheduler.poll()
    error = _require_game_screen()
    if error is not None:
        return error
    undone = _controller.undo()
    if not undone and _controller.state() and not _controller.state().move_list:
        return {"error": "No moves to undo"}
    response = _state_response()
    response["undone"] = undone
    return response


@mcp.tool()
def get_board() -> dict:
    """Get the current board state.

    Returns:
        GameState dict with position, selection and termination status.
    """
    _scheduler.poll()
    return _state_response()


@mcp.tool()
def get_legal_moves(square: str | None = None) -> dict:
    """List legal moves in UCI, optionally filtered by source square.

    Args:
        square: Optional square name (e.g., 'e2') to filter moves from.

    Returns:
        Dict with square and legal_moves.
    """
    _scheduler.poll()
    if _controller.state() is None:
        return {"error": "No active game. Call start_game first."}
    try:
        moves = _controller.legal_moves(square)
    except ValueError:
        return {"error": f"Invalid square: {square}"}
    return _checked({"square": square, "legal_moves": moves}, LEGAL_MOVES_SCHEMA)


@mcp.tool()
async def wait_for_opponent() -> dict:
    """Wait for the random opponent's pending reply, if any.

    Returns:
        GameState dict after the reply (or immediately when none is pending).
    """
    delay = _scheduler.seconds_until_next()
    if delay is not None:
        await asyncio.sleep(delay + _WAIT_MARGIN_S)
    _scheduler.poll()
    return _state_response()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    configure_logging()
    mcp.run()
