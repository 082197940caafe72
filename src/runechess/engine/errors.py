from __future__ import annotations


class ChessError(Exception):
    """Base class for rules-engine errors."""


class IllegalMove(ChessError, ValueError):
    """The requested move is not in the legal-move set (or the game is over)."""


class MalformedNotation(ChessError, ValueError):
    """FEN or move-token input does not conform to the grammar."""


class InvariantViolation(ChessError, RuntimeError):
    """Internal state is inconsistent; indicates a bug, not bad input."""
