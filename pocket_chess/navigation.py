"""Screen flow for Pocket Chess as an explicit state machine.

Screens: main menu, play setup, game, pause menu, settings, and the
terminal "closed" state. Each (screen, event) pair maps to a target
screen plus an optional side effect on the session controller. Events
that are not valid for the current screen raise NavigationError.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from pocket_chess.models import Mode, Preferences
from pocket_chess.session import SessionController

log = logging.getLogger(__name__)


class Screen(str, Enum):
    MAIN_MENU = "main_menu"
    PLAY_SETUP = "play_setup"
    GAME = "game"
    PAUSE_MENU = "pause_menu"
    SETTINGS = "settings"
    CLOSED = "closed"


class NavEvent(str, Enum):
    PLAY = "play"
    SETTINGS = "settings"
    EXIT = "exit"
    START_SINGLE = "start_single"
    START_TWO = "start_two"
    BACK = "back"
    BACK_SIGNAL = "back_signal"
    CONTINUE = "continue"
    RESTART = "restart"
    TOGGLE_SOUND = "toggle_sound"


class NavigationError(ValueError):
    """Raised when an event is not allowed on the current screen."""


class Navigator:
    """Drive screen transitions and forward lifecycle events."""

    def __init__(self, controller: SessionController, preferences: Preferences | None = None) -> None:
        self.controller = controller
        self.preferences = preferences or Preferences()
        self.screen = Screen.MAIN_MENU
        self._transitions: dict[tuple[Screen, NavEvent], Callable[[], Screen]] = {
            (Screen.MAIN_MENU, NavEvent.PLAY): lambda: Screen.PLAY_SETUP,
            (Screen.MAIN_MENU, NavEvent.SETTINGS): lambda: Screen.SETTINGS,
            (Screen.MAIN_MENU, NavEvent.EXIT): lambda: Screen.CLOSED,
            (Screen.PLAY_SETUP, NavEvent.START_SINGLE): lambda: self._start(Mode.SINGLE_PLAYER),
            (Screen.PLAY_SETUP, NavEvent.START_TWO): lambda: self._start(Mode.TWO_PLAYER),
            (Screen.PLAY_SETUP, NavEvent.BACK): lambda: Screen.MAIN_MENU,
            (Screen.GAME, NavEvent.BACK_SIGNAL): self._pause,
            (Screen.GAME, NavEvent.RESTART): self._restart,
            (Screen.GAME, NavEvent.EXIT): self._exit_finished_game,
            (Screen.PAUSE_MENU, NavEvent.CONTINUE): self._continue,
            (Screen.PAUSE_MENU, NavEvent.RESTART): self._restart,
            (Screen.PAUSE_MENU, NavEvent.SETTINGS): lambda: Screen.SETTINGS,
            (Screen.PAUSE_MENU, NavEvent.EXIT): self._exit,
            (Screen.SETTINGS, NavEvent.TOGGLE_SOUND): self._toggle_sound,
            (Screen.SETTINGS, NavEvent.BACK): self._leave_settings,
        }

    def allowed_events(self) -> list[NavEvent]:
        """Events that dispatch() accepts on the current screen."""
        return [event for (screen, event) in self._transitions if screen is self.screen]

    def dispatch(self, event: NavEvent | str) -> Screen:
        """Apply one navigation event.

        Args:
            event: Event or its string value.

        Returns:
            The screen after the transition.

        Raises:
            NavigationError: If the event is unknown or not allowed here.
        """
        try:
            event = NavEvent(event)
        except ValueError as exc:
            raise NavigationError(f"Unknown navigation event: {event}") from exc
        action = self._transitions.get((self.screen, event))
        if action is None:
            raise NavigationError(
                f"Event '{event.value}' not allowed on screen '{self.screen.value}'"
            )
        previous = self.screen
        self.screen = action()
        log.debug("Navigation %s --%s--> %s", previous.value, event.value, self.screen.value)
        return self.screen

    def start_game(self, mode: Mode | str, starting_fen: str | None = None) -> Screen:
        """Start a game from the play setup screen, optionally from a FEN.

        Raises:
            NavigationError: If not on the play setup screen.
            ValueError: If mode or starting_fen is invalid.
        """
        if self.screen is not Screen.PLAY_SETUP:
            raise NavigationError(
                f"Games start from '{Screen.PLAY_SETUP.value}', not '{self.screen.value}'"
            )
        return self._start(Mode(mode), starting_fen)

    def back_signal(self) -> bool:
        """Handle the OS back button.

        Returns:
            True if consumed (game pauses), False to let the host apply
            its default behaviour.
        """
        if self.screen is not Screen.GAME:
            return False
        self.dispatch(NavEvent.BACK_SIGNAL)
        return True

    # ------------------------------------------------------------------
    # Transition actions
    # ------------------------------------------------------------------

    def _start(self, mode: Mode, starting_fen: str | None = None) -> Screen:
        self.controller.on_game_start(mode, starting_fen)
        self.screen = Screen.GAME
        return Screen.GAME

    def _pause(self) -> Screen:
        self.controller.on_pause_requested()
        return Screen.PAUSE_MENU

    def _continue(self) -> Screen:
        self.controller.on_resume()
        return Screen.GAME

    def _restart(self) -> Screen:
        self.controller.on_restart_requested()
        return Screen.GAME

    def _exit(self) -> Screen:
        self.controller.on_exit_to_menu()
        return Screen.MAIN_MENU

    def _exit_finished_game(self) -> Screen:
        state = self.controller.state()
        if state is None or not state.is_game_over:
            raise NavigationError("Exit from the board is only offered once the game is over")
        return self._exit()

    def _toggle_sound(self) -> Screen:
        self.preferences.sound_on = not self.preferences.sound_on
        log.info("Sound %s", "on" if self.preferences.sound_on else "off")
        return Screen.SETTINGS

    def _leave_settings(self) -> Screen:
        state = self.controller.state()
        if state is not None and state.paused:
            return Screen.PAUSE_MENU
        return Screen.MAIN_MENU
