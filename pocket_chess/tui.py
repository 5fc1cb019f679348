"""Terminal front end for Pocket Chess.

Two commands:
- play: interactive game in the terminal. Type a square name ("e2") to
  tap it, or a menu word (play, 1p, 2p, undo, restart, pause, ...).
  The random opponent replies on an asyncio timer.
- watch: render data/current_game.json (written by the MCP server)
  and re-render whenever watchdog reports a change.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import random
import re
import time
from dataclasses import asdict
from pathlib import Path

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pocket_chess.audio import Cue, SoundBoard
from pocket_chess.config import SETTINGS, Settings, configure_logging
from pocket_chess.models import GameState, Preferences, grid_from_square
from pocket_chess.navigation import NavEvent, NavigationError, Navigator, Screen
from pocket_chess.opponent import RandomOpponent
from pocket_chess.scheduler import AsyncioScheduler
from pocket_chess.session import SessionController

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DATA_DIR = _PROJECT_ROOT / "data"
_CURRENT_GAME = _DATA_DIR / "current_game.json"

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}
_KIND_LETTERS = {
    "pawn": "p", "knight": "n", "bishop": "b",
    "rook": "r", "queen": "q", "king": "k",
}

_LIGHT_SQ = "grey85"
_DARK_SQ = "grey50"
_HIGHLIGHT = "yellow"
_SELECTED = "steel_blue1"
_TARGET = "dark_sea_green2"

_SQUARE_RE = re.compile(r"^[a-h][1-8]$")

_MENU_TITLES = {
    Screen.MAIN_MENU: "Main Menu",
    Screen.PLAY_SETUP: "Select Mode",
    Screen.PAUSE_MENU: "Game Paused",
    Screen.SETTINGS: "Settings",
}

_EVENT_LABELS = {
    NavEvent.PLAY: ("play", "Play"),
    NavEvent.SETTINGS: ("settings", "Settings"),
    NavEvent.EXIT: ("exit", "Exit"),
    NavEvent.START_SINGLE: ("1p", "1 Player"),
    NavEvent.START_TWO: ("2p", "2 Player"),
    NavEvent.BACK: ("back", "Back"),
    NavEvent.CONTINUE: ("continue", "Continue"),
    NavEvent.RESTART: ("restart", "Restart"),
    NavEvent.TOGGLE_SOUND: ("sound", "Sound"),
}

# Words accepted in addition to the canonical command for an event
_ALIASES = {
    "1p": NavEvent.START_SINGLE,
    "single": NavEvent.START_SINGLE,
    "2p": NavEvent.START_TWO,
    "two": NavEvent.START_TWO,
    "sound": NavEvent.TOGGLE_SOUND,
    "resume": NavEvent.CONTINUE,
}


def _load_game_state(path: Path) -> dict | None:
    """Load a GameState dict from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed dict or None if file missing/corrupt.
    """
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        if isinstance(data, dict):
            return data
        return None
    except (json.JSONDecodeError, OSError):
        return None


def state_to_dict(state: GameState) -> dict:
    """Convert a snapshot to the JSON-ready dict renderers consume."""
    return asdict(state)


def render_board(state: dict) -> Layout:
    """Render the full game layout from a GameState dict.

    Args:
        state: GameState dict (see state_to_dict).

    Returns:
        Rich Layout with board and sidebar.
    """
    layout = Layout()
    layout.split_row(
        Layout(name="board", ratio=2),
        Layout(name="sidebar", ratio=1),
    )
    layout["board"].update(_render_board_panel(state))
    layout["sidebar"].update(_render_sidebar(state))
    return layout


def _symbol(piece: dict | None) -> str:
    if not piece:
        return " "
    letter = _KIND_LETTERS.get(piece.get("kind"), "?")
    if piece.get("color") == "white":
        letter = letter.upper()
    return _PIECE_SYMBOLS.get(letter, "?")


def _render_board_panel(state: dict) -> Panel:
    """Render the board grid with selection and last-move highlights.

    Args:
        state: GameState dict.

    Returns:
        Panel containing the board, or the game-over dialog over it.
    """
    grid = state.get("board") or [[None] * 8 for _ in range(8)]
    is_flipped = state.get("human_color") == "black"

    highlight: set[str] = set()
    last_move = state.get("last_move")
    if last_move:
        highlight = {last_move.get("from_square"), last_move.get("to_square")}
    selected = state.get("selected_square")
    targets = set(state.get("legal_targets") or ())

    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 1))
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=3, justify="center")

    rows = range(7, -1, -1) if is_flipped else range(8)
    cols = range(7, -1, -1) if is_flipped else range(8)

    for row in rows:
        cells: list[Text] = [Text(str(8 - row), style="bold")]
        for col in cols:
            name = f"{'abcdefgh'[col]}{8 - row}"
            piece = grid[row][col]

            # Row 0 col 0 is a8, a light square
            bg = _LIGHT_SQ if (row + col) % 2 == 0 else _DARK_SQ
            if name in highlight:
                bg = _HIGHLIGHT
            if name == selected:
                bg = _SELECTED
            elif name in targets:
                bg = _TARGET

            if piece is None and name in targets:
                cells.append(Text(" · ", style=f"bold on {bg}"))
            else:
                cells.append(Text(f" {_symbol(piece)} ", style=f"on {bg}"))
        table.add_row(*cells)

    file_labels = [Text("  ")]
    for col in cols:
        file_labels.append(Text(f" {'abcdefgh'[col]} ", style="bold"))
    table.add_row(*file_labels)

    message = state.get("termination_message")
    if message:
        dialog = Panel(
            Text(f"\U0001f3c6 {message}\n\nrestart | exit", justify="center", style="bold gold1"),
            border_style="gold1",
        )
        return Panel(Group(table, dialog), title="Game Over", border_style="gold1")

    title = "Pocket Chess"
    if state.get("paused"):
        title = "Pocket Chess (paused)"
    return Panel(table, title=title, border_style="blue")


def _render_sidebar(state: dict) -> Panel:
    """Render the sidebar with mode, turn and move list.

    Args:
        state: GameState dict.

    Returns:
        Panel containing sidebar info.
    """
    parts: list[str] = []

    mode = state.get("mode")
    if mode == "single":
        parts.append(f"[bold]1 Player[/bold] (you: {state.get('human_color', 'white')})")
    else:
        parts.append("[bold]2 Player[/bold]")

    turn = state.get("turn", "white")
    status = f"{turn.capitalize()} to move"
    if state.get("is_check") and not state.get("is_game_over"):
        status += " [red](check)[/red]"
    if state.get("ai_pending"):
        status += " [italic]thinking...[/italic]"
    parts.append(status)
    parts.append("")

    move_list = state.get("move_list", [])
    if move_list:
        parts.append("[bold]Moves:[/bold]")
        for i in range(0, len(move_list), 2):
            move_num = i // 2 + 1
            white_move = move_list[i]
            black_move = move_list[i + 1] if i + 1 < len(move_list) else ""
            parts.append(f"  {move_num}. {white_move} {black_move}")
        parts.append("")

    parts.append("[dim]square (e2) | undo | restart | pause[/dim]")
    return Panel("\n".join(parts), title="Info", border_style="green")


def render_menu(navigator: Navigator) -> Panel:
    """Render the current menu screen with its available commands."""
    lines: list[str] = []
    for event in navigator.allowed_events():
        command, label = _EVENT_LABELS[event]
        if event is NavEvent.TOGGLE_SOUND:
            label = f"Sound: {'ON' if navigator.preferences.sound_on else 'OFF'}"
        lines.append(f"  [bold]{command:<9}[/bold] {label}")
    return Panel(
        "\n".join(lines),
        title=_MENU_TITLES.get(navigator.screen, "Pocket Chess"),
        border_style="magenta",
    )


def _render_waiting() -> Panel:
    """Render a waiting message when no game is active.

    Returns:
        Panel with waiting message.
    """
    return Panel(
        Text("Waiting for game...\n\nStart a game via the MCP server to see the board.",
             justify="center"),
        title="Pocket Chess",
        border_style="dim",
    )


def render_screen(navigator: Navigator):
    """Pick the renderable for the navigator's current screen."""
    if navigator.screen is Screen.GAME:
        state = navigator.controller.state()
        if state is not None:
            return render_board(state_to_dict(state))
    return render_menu(navigator)


def handle_command(navigator: Navigator, text: str) -> str | None:
    """Apply one line of user input.

    Args:
        navigator: App navigator (owns the controller).
        text: Raw input line.

    Returns:
        A short message for the user when the command was rejected,
        otherwise None.
    """
    word = text.strip().lower()
    if not word:
        return None
    controller = navigator.controller

    if navigator.screen is Screen.GAME:
        if _SQUARE_RE.match(word):
            controller.tap(*grid_from_square(word))
            return None
        if word == "undo":
            controller.undo()
            return None
        if word in ("pause", "back"):
            navigator.back_signal()
            return None

    event = _ALIASES.get(word, word)
    try:
        navigator.dispatch(event)
    except NavigationError as exc:
        return str(exc)
    return None


def _draw(console: Console, navigator: Navigator, message: str | None) -> None:
    console.clear()
    console.print(render_screen(navigator), height=20 if navigator.screen is Screen.GAME else None)
    if message:
        console.print(f"[yellow]{message}[/yellow]")


async def _play_loop(console: Console, settings: Settings) -> None:
    """Run an interactive game until the user exits.

    Input is read in a worker thread so the event loop stays free to fire
    the opponent's reply timer.
    """
    loop = asyncio.get_running_loop()
    preferences = Preferences(sound_on=settings.sound_on)
    sound = SoundBoard(
        {cue: console.bell for cue in Cue},
        muted=lambda: not preferences.sound_on,
    )
    waiting_for_input = False
    navigator: Navigator | None = None

    def _on_change(_state) -> None:
        # Only timer-driven changes need an unprompted redraw
        if waiting_for_input and navigator is not None:
            _draw(console, navigator, None)
            console.print("> ", end="")

    controller = SessionController(
        AsyncioScheduler(loop),
        sound=sound,
        opponent=RandomOpponent(random.Random(settings.seed)),
        ai_delay=settings.ai_delay_s,
        on_change=_on_change,
    )
    navigator = Navigator(controller, preferences)

    message: str | None = None
    while navigator.screen is not Screen.CLOSED:
        _draw(console, navigator, message)
        console.print("> ", end="")
        waiting_for_input = True
        try:
            line = await loop.run_in_executor(None, input)
        except EOFError:
            break
        finally:
            waiting_for_input = False
        if line.strip().lower() == "quit":
            break
        message = handle_command(navigator, line)

    controller.on_exit_to_menu()


def _is_game_file_event(event) -> bool:
    """Whether a watchdog event touches current_game.json.

    The server writes a temp file and renames it into place, so the
    game file shows up as the destination of a move event.
    """
    paths = (event.src_path, getattr(event, "dest_path", ""))
    return any(str(p).endswith(_CURRENT_GAME.name) for p in paths if p)


def _watch_loop(console: Console) -> None:
    """Watch current_game.json and auto-update display at ~4Hz.

    Args:
        console: Rich Console instance.
    """
    from watchdog.events import FileSystemEventHandler
    from watchdog.observers import Observer

    state_changed = True

    class _Handler(FileSystemEventHandler):
        def on_any_event(self, event):
            nonlocal state_changed
            if _is_game_file_event(event):
                state_changed = True

    observer = Observer()
    _DATA_DIR.mkdir(parents=True, exist_ok=True)
    observer.schedule(_Handler(), str(_DATA_DIR), recursive=False)
    observer.start()

    try:
        with Live(console=console, refresh_per_second=4) as live:
            while True:
                if state_changed:
                    state = _load_game_state(_CURRENT_GAME)
                    if state:
                        live.update(render_board(state))
                    else:
                        live.update(_render_waiting())
                    state_changed = False
                time.sleep(0.25)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()


def main() -> None:
    """CLI entry point for tui.py."""
    parser = argparse.ArgumentParser(description="Pocket Chess terminal UI")
    parser.add_argument(
        "command", nargs="?", choices=("play", "watch"), default="play",
        help="play interactively (default) or watch the MCP server's game",
    )
    parser.add_argument("--log-level", default=None, help="Override POCKET_CHESS_LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level)
    console = Console()

    if args.command == "watch":
        _watch_loop(console)
        return

    try:
        asyncio.run(_play_loop(console, SETTINGS))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
