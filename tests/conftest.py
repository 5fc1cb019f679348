"""Shared test fixtures.

Fixtures:
    clock              - Fake monotonic clock advanced by hand.
    scheduler          - PolledScheduler driven by the fake clock.
    sound_log / sound  - SoundBoard whose players record cue names.
    controller         - SessionController wired to the above, seeded opponent.
    play               - Helper that taps a sequence of UCI moves.
    enable_validation  - Sets POCKET_CHESS_VALIDATE=1 for schema validation.
"""

from __future__ import annotations

import os
import random

import pytest

from pocket_chess.audio import Cue, SoundBoard
from pocket_chess.opponent import RandomOpponent
from pocket_chess.scheduler import PolledScheduler
from pocket_chess.session import SessionController

AI_DELAY = 0.5


# ---------------------------------------------------------------------------
# Clock and scheduler
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock whose time only moves when advance() is called."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scheduler(clock) -> PolledScheduler:
    return PolledScheduler(clock=clock)


# ---------------------------------------------------------------------------
# Sound
# ---------------------------------------------------------------------------


@pytest.fixture()
def sound_log() -> list[str]:
    return []


@pytest.fixture()
def sound(sound_log) -> SoundBoard:
    return SoundBoard({cue: (lambda c=cue: sound_log.append(c.value)) for cue in Cue})


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


@pytest.fixture()
def controller(scheduler, sound) -> SessionController:
    return SessionController(
        scheduler,
        sound=sound,
        opponent=RandomOpponent(random.Random(7)),
        ai_delay=AI_DELAY,
    )


@pytest.fixture()
def play(controller):
    """Return a function that plays UCI moves through taps, asserting each lands."""

    def _play(*moves: str) -> None:
        for uci in moves:
            controller.tap_square(uci[:2])
            assert controller.tap_square(uci[2:4]), f"move {uci} was not played"

    return _play


# ---------------------------------------------------------------------------
# Schema validation fixture
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def enable_validation():
    """Set POCKET_CHESS_VALIDATE=1 for the test session.

    Restores the original env var value after the test.
    """
    original = os.environ.get("POCKET_CHESS_VALIDATE")
    os.environ["POCKET_CHESS_VALIDATE"] = "1"
    yield
    if original is None:
        os.environ.pop("POCKET_CHESS_VALIDATE", None)
    else:
        os.environ["POCKET_CHESS_VALIDATE"] = original
