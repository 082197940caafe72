from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from .errors import IllegalMove, MalformedNotation
from .move import Move, Square
from .movegen import all_legal_moves, find_legal_move, has_legal_moves, is_in_check, legal_moves
from .notation import decode_fen, decode_move_token, encode_fen, encode_move_token, move_label
from .piece import Color, Piece, PieceKind
from .position import Position


logger = logging.getLogger(__name__)

FIFTY_MOVE_HALFMOVES = 100
REPETITION_LIMIT = 3


class GameStatus(Enum):
    IN_PROGRESS = "in_progress"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW_BY_REPETITION = "draw_by_repetition"
    DRAW_BY_FIFTY_MOVES = "draw_by_fifty_moves"

    @property
    def is_terminal(self) -> bool:
        return self is not GameStatus.IN_PROGRESS


@dataclass(frozen=True)
class HistoryEntry:
    """A played move with the FEN it produced and its display label."""

    move: Move
    fen: str
    label: str


@dataclass
class Game:
    """Game record: current position, history, repetition counts and status.

    Responsibility: accept only fully validated moves, keep the repetition
    counter in step with the position, and recompute the status after every
    change. Positions themselves are immutable; ``apply_move`` swaps in a new
    one only after every step has succeeded.
    """

    position: Position
    history: List[HistoryEntry] = field(default_factory=list)
    signature_counts: Dict[str, int] = field(default_factory=dict)
    status: GameStatus = GameStatus.IN_PROGRESS
    in_check: bool = False
    _positions: List[Position] = field(default_factory=list, repr=False)

    @classmethod
    def new(cls) -> "Game":
        return cls(position=Position.initial())

    @classmethod
    def from_fen(cls, fen: str) -> "Game":
        """Start a game from a FEN position.

        Raises:
            MalformedNotation: If ``fen`` is malformed, does not have exactly
                one king per color, or leaves the side that just moved in check.
        """
        position = decode_fen(fen)
        for color in Color:
            kings = position.board.count(Piece(PieceKind.KING, color))
            if kings != 1:
                raise MalformedNotation(
                    f"position must have exactly one {color.label.lower()} king, found {kings}"
                )
        waiting = position.side_to_move.opponent
        if is_in_check(position, waiting):
            raise MalformedNotation(
                f"{waiting.label.lower()} is in check with {position.side_to_move.label.lower()} to move"
            )
        return cls(position=position)

    def __post_init__(self) -> None:
        # Seed repetition with the starting position
        sig = self.position.signature()
        self.signature_counts[sig] = self.signature_counts.get(sig, 0) + 1
        self._refresh_status()

    def to_fen(self) -> str:
        return encode_fen(self.position)

    # --- Queries ---

    @property
    def side_to_move(self) -> Color:
        return self.position.side_to_move

    @property
    def is_over(self) -> bool:
        return self.status.is_terminal

    @property
    def winner(self) -> Optional[Color]:
        if self.status is GameStatus.CHECKMATE:
            return self.position.side_to_move.opponent
        return None

    @property
    def message(self) -> str:
        """Short status line for the player."""
        winner = self.winner
        if winner is not None:
            return f"Checkmate! {winner.label} wins!"
        if self.status is GameStatus.STALEMATE:
            return "Stalemate! Game is a draw!"
        if self.status is GameStatus.DRAW_BY_REPETITION:
            return "Draw by threefold repetition!"
        if self.status is GameStatus.DRAW_BY_FIFTY_MOVES:
            return "Draw by 50-move rule!"
        if self.in_check:
            return f"{self.side_to_move.label} is in check!"
        return ""

    def legal_moves(self, square: Optional[Square] = None) -> List[Move]:
        """Legal moves for the side to move, optionally from one square only."""
        if self.is_over:
            return []
        if square is None:
            return all_legal_moves(self.position)
        return legal_moves(self.position, square)

    def repetition_count(self) -> int:
        return self.signature_counts.get(self.position.signature(), 0)

    def move_history_uci(self) -> List[str]:
        return [encode_move_token(e.move) for e in self.history]

    def move_history_labels(self) -> List[str]:
        return [e.label for e in self.history]

    # --- Mutation ---

    def apply_move(self, move: Move) -> "Game":
        """Validate and play ``move``; returns ``self`` for chaining.

        Raises:
            IllegalMove: If the game is over or ``move`` is not exactly one of
                the legal moves (origin, destination and promotion). The game
                is left untouched.
        """
        if self.is_over:
            raise IllegalMove(f"game is over ({self.status.value})")
        if find_legal_move(self.position, move) is None:
            raise IllegalMove(f"illegal move: {encode_move_token(move)}")

        before = self.position
        after = before.play(move)
        entry = HistoryEntry(move=move, fen=encode_fen(after), label=move_label(before, move))
        sig = after.signature()
        count = self.signature_counts.get(sig, 0) + 1
        # Everything that can fail runs before the first assignment to self.
        status, in_check = evaluate_status(after, count)

        self._positions.append(before)
        self.position = after
        self.history.append(entry)
        self.signature_counts[sig] = count
        self.status = status
        self.in_check = in_check
        logger.debug(
            "move applied",
            extra={"move": entry.label, "fen": entry.fen, "status": self.status.value},
        )
        return self

    def play_token(self, token: str) -> "Game":
        """Decode a UCI move token and apply it.

        Raises:
            MalformedNotation: If ``token`` is not a valid move token.
            IllegalMove: If the decoded move is not legal here.
        """
        return self.apply_move(decode_move_token(token))

    def undo_move(self) -> Move:
        """Take back the last move and return it.

        Raises:
            IllegalMove: If there is no move to undo.
        """
        if not self.history:
            raise IllegalMove("no moves to undo")
        # Decrement count for current position
        sig = self.position.signature()
        if sig in self.signature_counts:
            self.signature_counts[sig] -= 1
            if self.signature_counts[sig] <= 0:
                del self.signature_counts[sig]
        entry = self.history.pop()
        self.position = self._positions.pop()
        self._refresh_status()
        return entry.move

    def _refresh_status(self) -> None:
        self.status, self.in_check = evaluate_status(self.position, self.repetition_count())


def evaluate_status(position: Position, repetitions: int) -> Tuple[GameStatus, bool]:
    """Return ``(status, in_check)`` for ``position``.

    Order is fixed: mate, stalemate, repetition, fifty moves. ``repetitions``
    is how often the position's signature has occurred, this one included.

    Raises:
        InvariantViolation: If the side to move has no king.
    """
    in_check = is_in_check(position, position.side_to_move)
    if not has_legal_moves(position):
        return (GameStatus.CHECKMATE if in_check else GameStatus.STALEMATE), in_check
    if repetitions >= REPETITION_LIMIT:
        return GameStatus.DRAW_BY_REPETITION, in_check
    if position.halfmove_clock >= FIFTY_MOVE_HALFMOVES:
        return GameStatus.DRAW_BY_FIFTY_MOVES, in_check
    return GameStatus.IN_PROGRESS, in_check


MoveLike = Union[Move, str]


def coerce_move(move: MoveLike) -> Move:
    """Accept either a :class:`Move` or a UCI token."""
    if isinstance(move, Move):
        return move
    return decode_move_token(move)
