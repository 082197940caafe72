from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import InvariantViolation
from .move import Move, Square
from .piece import Color, Piece, PieceKind


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

# Stored rank of each side's back row and the direction its pawns advance.
HOME_RANK = {Color.WHITE: 7, Color.BLACK: 0}
PAWN_DIRECTION = {Color.WHITE: -1, Color.BLACK: 1}

KING_FILE = 4
KINGSIDE_ROOK_FILE = 7
QUEENSIDE_ROOK_FILE = 0


Cells = Tuple[Optional[Piece], ...]


@dataclass(frozen=True)
class Board:
    """Immutable 8x8 grid stored as 64 cells, index ``rank * 8 + file``."""

    cells: Cells

    def __post_init__(self) -> None:
        if len(self.cells) != 64:
            raise InvariantViolation(f"board must have 64 cells, got {len(self.cells)}")

    @classmethod
    def empty(cls) -> "Board":
        return cls((None,) * 64)

    @classmethod
    def from_pieces(cls, pieces: Dict[Square, Piece]) -> "Board":
        """Build a board from a square -> piece mapping (handy for setups)."""
        cells: List[Optional[Piece]] = [None] * 64
        for sq, piece in pieces.items():
            cells[sq.index] = piece
        return cls(tuple(cells))

    def __getitem__(self, sq: Square) -> Optional[Piece]:
        return self.cells[sq.rank * 8 + sq.file]

    def rows(self) -> Iterator[Tuple[Optional[Piece], ...]]:
        """Yield stored ranks top to bottom."""
        for r in range(8):
            yield self.cells[r * 8 : r * 8 + 8]

    def occupied(self, color: Optional[Color] = None) -> Iterator[Tuple[Square, Piece]]:
        """Yield ``(square, piece)`` for occupied squares, optionally by color."""
        for idx, piece in enumerate(self.cells):
            if piece is None:
                continue
            if color is not None and piece.color is not color:
                continue
            yield Square.from_index(idx), piece

    def king_square(self, color: Color) -> Optional[Square]:
        king = Piece(PieceKind.KING, color)
        for idx, piece in enumerate(self.cells):
            if piece == king:
                return Square.from_index(idx)
        return None

    def count(self, piece: Piece) -> int:
        return sum(1 for p in self.cells if p == piece)

    def with_changes(self, changes: Sequence[Tuple[Square, Optional[Piece]]]) -> "Board":
        """Return a new board with the given squares overwritten, in order."""
        cells = list(self.cells)
        for sq, piece in changes:
            cells[sq.rank * 8 + sq.file] = piece
        return Board(tuple(cells))


@dataclass(frozen=True)
class CastlingRights:
    """One named flag per castling right; once cleared a right never returns."""

    white_kingside: bool = True
    white_queenside: bool = True
    black_kingside: bool = True
    black_queenside: bool = True

    @classmethod
    def none(cls) -> "CastlingRights":
        return cls(False, False, False, False)

    def kingside(self, color: Color) -> bool:
        return self.white_kingside if color is Color.WHITE else self.black_kingside

    def queenside(self, color: Color) -> bool:
        return self.white_queenside if color is Color.WHITE else self.black_queenside

    def without(self, color: Color, *, kingside: bool = False, queenside: bool = False) -> "CastlingRights":
        """Return rights with the selected flags of ``color`` cleared."""
        if color is Color.WHITE:
            return replace(
                self,
                white_kingside=self.white_kingside and not kingside,
                white_queenside=self.white_queenside and not queenside,
            )
        return replace(
            self,
            black_kingside=self.black_kingside and not kingside,
            black_queenside=self.black_queenside and not queenside,
        )

    def to_fen(self) -> str:
        s = (
            ("K" if self.white_kingside else "")
            + ("Q" if self.white_queenside else "")
            + ("k" if self.black_kingside else "")
            + ("q" if self.black_queenside else "")
        )
        return s or "-"


def _initial_board() -> Board:
    back = (
        PieceKind.ROOK,
        PieceKind.KNIGHT,
        PieceKind.BISHOP,
        PieceKind.QUEEN,
        PieceKind.KING,
        PieceKind.BISHOP,
        PieceKind.KNIGHT,
        PieceKind.ROOK,
    )
    pieces: Dict[Square, Piece] = {}
    for f, kind in enumerate(back):
        pieces[Square(0, f)] = Piece(kind, Color.BLACK)
        pieces[Square(1, f)] = Piece(PieceKind.PAWN, Color.BLACK)
        pieces[Square(6, f)] = Piece(PieceKind.PAWN, Color.WHITE)
        pieces[Square(7, f)] = Piece(kind, Color.WHITE)
    return Board.from_pieces(pieces)


@dataclass(frozen=True)
class Position:
    """Complete game state between moves.

    Positions are values: :meth:`play` returns a new instance and never
    touches the receiver, so callers may keep old references freely.
    """

    board: Board
    side_to_move: Color = Color.WHITE
    castling: CastlingRights = CastlingRights()
    en_passant: Optional[Square] = None
    halfmove_clock: int = 0
    fullmove_number: int = 1

    @classmethod
    def initial(cls) -> "Position":
        return cls(board=_initial_board())

    def signature(self) -> str:
        """Canonical repetition key: placement, side to move and castling rights.

        En passant and the move counters are not part of it.
        """
        placement = "/".join(
            "".join(p.symbol if p is not None else "." for p in row) for row in self.board.rows()
        )
        return f"{placement} {self.side_to_move.value} {self.castling.to_fen()}"

    def is_capture(self, move: Move) -> bool:
        return self.board[move.to_sq] is not None or self.is_en_passant(move)

    def is_en_passant(self, move: Move) -> bool:
        piece = self.board[move.from_sq]
        return (
            piece is not None
            and piece.kind is PieceKind.PAWN
            and move.to_sq == self.en_passant
            and move.from_sq.file != move.to_sq.file
            and self.board[move.to_sq] is None
        )

    def is_castling(self, move: Move) -> bool:
        piece = self.board[move.from_sq]
        return (
            piece is not None
            and piece.kind is PieceKind.KING
            and abs(move.to_sq.file - move.from_sq.file) == 2
        )

    def play(self, move: Move) -> "Position":
        """Return the position after ``move`` without checking legality.

        Handles captures, en passant removal, castling rook relocation,
        promotion, castling-right updates, the en passant target, both move
        counters and the side to move.

        Raises:
            InvariantViolation: If no piece of the side to move stands on
                ``move.from_sq``.
        """
        board = self.board
        mover = self.side_to_move
        piece = board[move.from_sq]
        if piece is None or piece.color is not mover:
            raise InvariantViolation(f"no {mover.label.lower()} piece on {move.from_sq}")

        captured = board[move.to_sq]
        changes: List[Tuple[Square, Optional[Piece]]] = [(move.from_sq, None)]

        if self.is_en_passant(move):
            # Captured pawn sits beside the origin, not on the destination.
            victim_sq = Square(move.from_sq.rank, move.to_sq.file)
            captured = board[victim_sq]
            changes.append((victim_sq, None))

        placed = piece
        if move.promotion is not None and piece.kind is PieceKind.PAWN:
            placed = Piece(move.promotion, mover)
        changes.append((move.to_sq, placed))

        if self.is_castling(move):
            rank = move.from_sq.rank
            if move.to_sq.file > move.from_sq.file:
                rook_from, rook_to = Square(rank, KINGSIDE_ROOK_FILE), Square(rank, move.to_sq.file - 1)
            else:
                rook_from, rook_to = Square(rank, QUEENSIDE_ROOK_FILE), Square(rank, move.to_sq.file + 1)
            changes.append((rook_from, None))
            changes.append((rook_to, board[rook_from]))

        castling = self._castling_after(piece, move, captured)

        en_passant: Optional[Square] = None
        if piece.kind is PieceKind.PAWN and abs(move.to_sq.rank - move.from_sq.rank) == 2:
            en_passant = Square((move.from_sq.rank + move.to_sq.rank) // 2, move.from_sq.file)

        if piece.kind is PieceKind.PAWN or captured is not None:
            halfmove = 0
        else:
            halfmove = self.halfmove_clock + 1

        return Position(
            board=board.with_changes(changes),
            side_to_move=mover.opponent,
            castling=castling,
            en_passant=en_passant,
            halfmove_clock=halfmove,
            fullmove_number=self.fullmove_number + (1 if mover is Color.BLACK else 0),
        )

    def _castling_after(self, piece: Piece, move: Move, captured: Optional[Piece]) -> CastlingRights:
        """Clear rights for a king move, a rook leaving home or a rook captured at home."""
        rights = self.castling
        if piece.kind is PieceKind.KING:
            rights = rights.without(piece.color, kingside=True, queenside=True)
        elif piece.kind is PieceKind.ROOK and move.from_sq.rank == HOME_RANK[piece.color]:
            rights = rights.without(
                piece.color,
                kingside=move.from_sq.file == KINGSIDE_ROOK_FILE,
                queenside=move.from_sq.file == QUEENSIDE_ROOK_FILE,
            )
        if (
            captured is not None
            and captured.kind is PieceKind.ROOK
            and move.to_sq.rank == HOME_RANK[captured.color]
        ):
            rights = rights.without(
                captured.color,
                kingside=move.to_sq.file == KINGSIDE_ROOK_FILE,
                queenside=move.to_sq.file == QUEENSIDE_ROOK_FILE,
            )
        return rights
