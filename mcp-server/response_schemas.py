"""Response schemas and minification for MCP tool responses.

Minifies MCP tool return values to keep agent context small.
data/current_game.json (TUI sync) is NOT affected; it always carries
the full GameState including the board grid.

PGN string format for move_list uses standard chess notation
(1.e4 e5 2.Nf3 ...) which is natural for an agent to read.
"""

from __future__ import annotations

import os


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_game_state(state: dict) -> dict:
    """Minify a GameState dict for MCP response.

    Drops the board grid (the FEN carries the position), compacts
    move_list to a PGN string and last_move to a from+to string.

    Args:
        state: Full GameState dict (dataclasses.asdict of a snapshot).

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {}

    for key in (
        "session_id", "mode", "fen", "turn", "human_color",
        "selected_square", "is_check", "paused", "is_game_over",
        "termination_message", "winner", "ai_pending",
    ):
        if key in state:
            result[key] = state[key]

    targets = state.get("legal_targets", [])
    result["legal_targets"] = list(targets) if targets else []

    last_move = state.get("last_move")
    if isinstance(last_move, dict):
        result["last_move"] = f"{last_move.get('from_square')}{last_move.get('to_square')}"
    else:
        result["last_move"] = None

    move_list = state.get("move_list", [])
    if isinstance(move_list, (list, tuple)):
        result["move_list"] = _moves_to_pgn_string(list(move_list))
    else:
        result["move_list"] = move_list

    # Removed fields: board

    return result


# ---------------------------------------------------------------------------
# Helper: move list to PGN string
# ---------------------------------------------------------------------------


def _moves_to_pgn_string(moves: list[str]) -> str:
    """Convert a list of SAN moves to a PGN move string.

    E.g., ['e4', 'e5', 'Nf3', 'Nc6'] -> '1.e4 e5 2.Nf3 Nc6'

    Args:
        moves: List of SAN move strings.

    Returns:
        PGN-formatted move string.
    """
    if not moves:
        return ""

    parts = []
    for i, move in enumerate(moves):
        if i % 2 == 0:
            parts.append(f"{i // 2 + 1}.{move}")
        else:
            parts.append(move)

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

GAME_STATE_SCHEMA = {
    "session_id": str,
    "mode": str,
    "fen": str,
    "turn": str,
    "human_color": (str, type(None)),
    "selected_square": (str, type(None)),
    "legal_targets": list,
    "last_move": (str, type(None)),
    "move_list": str,
    "is_check": bool,
    "paused": bool,
    "is_game_over": bool,
    "termination_message": (str, type(None)),
    "winner": (str, type(None)),
    "ai_pending": bool,
}

LEGAL_MOVES_SCHEMA = {
    "square": (str, type(None)),
    "legal_moves": list,
}

NAVIGATION_SCHEMA = {
    "screen": str,
    "allowed_events": list,
}

ERROR_SCHEMA = {
    "error": str,
}


def validate_response(response: dict, schema: dict) -> list[str]:
    """Validate a response dict against a schema.

    Only runs when POCKET_CHESS_VALIDATE=1 env var is set.

    Args:
        response: Response dict to validate.
        schema: Dict mapping key names to expected types (or tuple of types).

    Returns:
        List of validation error strings (empty = valid).
    """
    if os.environ.get("POCKET_CHESS_VALIDATE") != "1":
        return []

    errors = []

    if not isinstance(response, dict):
        errors.append(f"Response is not a dict: {type(response).__name__}")
        return errors

    for key, expected_types in schema.items():
        if key not in response:
            errors.append(f"Missing key: {key}")
            continue

        value = response[key]
        if isinstance(expected_types, tuple):
            if not isinstance(value, expected_types):
                type_names = ", ".join(t.__name__ for t in expected_types)
                errors.append(
                    f"Key '{key}': expected ({type_names}), "
                    f"got {type(value).__name__}"
                )
        else:
            if not isinstance(value, expected_types):
                errors.append(
                    f"Key '{key}': expected {expected_types.__name__}, "
                    f"got {type(value).__name__}"
                )

    return errors
