from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Color(Enum):
    WHITE = "w"
    BLACK = "b"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE

    @property
    def label(self) -> str:
        return "White" if self is Color.WHITE else "Black"


class PieceKind(Enum):
    PAWN = "p"
    KNIGHT = "n"
    BISHOP = "b"
    ROOK = "r"
    QUEEN = "q"
    KING = "k"


# Order matters: generated promotion moves follow it.
PROMOTION_KINDS = (PieceKind.QUEEN, PieceKind.ROOK, PieceKind.BISHOP, PieceKind.KNIGHT)


@dataclass(frozen=True)
class Piece:
    """Immutable piece value."""

    kind: PieceKind
    color: Color

    @property
    def symbol(self) -> str:
        """FEN letter: uppercase for white, lowercase for black."""
        letter = self.kind.value
        return letter.upper() if self.color is Color.WHITE else letter

    @classmethod
    def from_symbol(cls, ch: str) -> "Piece":
        """Build a piece from its FEN letter.

        Raises:
            ValueError: If ``ch`` is not one of ``pnbrqkPNBRQK``.
        """
        try:
            kind = PieceKind(ch.lower())
        except ValueError:
            raise ValueError(f"invalid piece letter: {ch!r}") from None
        color = Color.WHITE if ch.isupper() else Color.BLACK
        return cls(kind, color)
