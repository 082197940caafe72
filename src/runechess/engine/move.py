from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Optional

from .piece import PieceKind


class Square(NamedTuple):
    """Board coordinate as stored.

    Rank 0 is the top row of a FEN placement (algebraic rank 8) and rank 7
    the bottom row (algebraic rank 1). File 0 is the ``a`` file.
    """

    rank: int
    file: int

    @property
    def index(self) -> int:
        return self.rank * 8 + self.file

    @classmethod
    def from_index(cls, idx: int) -> "Square":
        return cls(idx // 8, idx % 8)

    def offset(self, d_rank: int, d_file: int) -> Optional["Square"]:
        """Return the square shifted by the given deltas, or None if off board."""
        r = self.rank + d_rank
        f = self.file + d_file
        if 0 <= r < 8 and 0 <= f < 8:
            return Square(r, f)
        return None


@dataclass(frozen=True)
class Move:
    """Engine-internal move representation.

    Attributes:
        from_sq (Square): Origin square.
        to_sq (Square): Destination square.
        promotion (Optional[PieceKind]): Piece a pawn promotes to, if any.

    Whether the move captures, castles or takes en passant is derived from the
    position it is applied to.
    """

    from_sq: Square
    to_sq: Square
    promotion: Optional[PieceKind] = None

    def to_uci(self) -> str:
        """Serialize the move into long algebraic UCI form (``"e7e8q"``)."""
        from .notation import encode_move_token

        return encode_move_token(self)
