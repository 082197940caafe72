from __future__ import annotations

from typing import List, Optional

from .errors import MalformedNotation
from .move import Move, Square
from .piece import PROMOTION_KINDS, Color, Piece, PieceKind
from .position import Board, CastlingRights, Position


FILES = "abcdefgh"
PROMOTION_LETTERS = {kind.value: kind for kind in PROMOTION_KINDS}


def square_name(sq: Square) -> str:
    """Convert a stored square into algebraic notation (``Square(4, 4)`` -> ``"e4"``)."""
    if not (0 <= sq.rank < 8 and 0 <= sq.file < 8):
        raise MalformedNotation(f"invalid square: {sq!r}")
    return FILES[sq.file] + str(8 - sq.rank)


def parse_square(s: str) -> Square:
    """Convert algebraic notation into a stored square.

    Raises:
        MalformedNotation: If ``s`` is not a file ``a``-``h`` followed by a
            rank ``1``-``8``.
    """
    if len(s) != 2 or s[0] not in FILES or s[1] not in "12345678":
        raise MalformedNotation(f"invalid square: {s!r}")
    return Square(8 - int(s[1]), FILES.index(s[0]))


# --- Move tokens (UCI long algebraic) ---


def encode_move_token(move: Move) -> str:
    """Serialize a move like ``"e2e4"`` or ``"e7e8q"`` (promotion always lowercase)."""
    token = square_name(move.from_sq) + square_name(move.to_sq)
    if move.promotion is not None:
        if move.promotion not in PROMOTION_KINDS:
            raise MalformedNotation(f"invalid promotion piece: {move.promotion.name.lower()}")
        token += move.promotion.value
    return token


def decode_move_token(token: str) -> Move:
    """Parse a four or five character move token.

    Raises:
        MalformedNotation: If the token has the wrong length, an out-of-range
            square, or a promotion letter other than ``q``/``r``/``b``/``n``.
    """
    if not isinstance(token, str) or len(token) not in (4, 5):
        raise MalformedNotation(f"invalid move token length: {token!r}")
    from_sq = parse_square(token[0:2])
    to_sq = parse_square(token[2:4])
    promotion: Optional[PieceKind] = None
    if len(token) == 5:
        promotion = PROMOTION_LETTERS.get(token[4])
        if promotion is None:
            raise MalformedNotation(f"invalid promotion piece: {token[4]!r}")
    return Move(from_sq, to_sq, promotion)


# --- FEN ---


def encode_fen(position: Position) -> str:
    """Serialize a position into the standard six-field FEN string."""
    ranks: List[str] = []
    for row in position.board.rows():
        run = 0
        out = []
        for piece in row:
            if piece is None:
                run += 1
                continue
            if run:
                out.append(str(run))
                run = 0
            out.append(piece.symbol)
        if run:
            out.append(str(run))
        ranks.append("".join(out))
    placement = "/".join(ranks)
    ep = square_name(position.en_passant) if position.en_passant is not None else "-"
    return (
        f"{placement} {position.side_to_move.value} {position.castling.to_fen()} {ep} "
        f"{position.halfmove_clock} {position.fullmove_number}"
    )


def decode_fen(fen: str) -> Position:
    """Parse a FEN string into a :class:`Position`.

    Raises:
        MalformedNotation: If ``fen`` is empty, has the wrong number of
            fields, or contains invalid piece placement, side to move,
            castling rights, en passant square, or move counters.

    Notes:
        Kings are not required here; :class:`~runechess.engine.game.Game`
        enforces one king per color before play starts.
    """
    if not fen or not isinstance(fen, str):
        raise MalformedNotation("FEN must be a non-empty string")
    parts = fen.split()
    if len(parts) != 6:
        raise MalformedNotation(f"FEN must have 6 fields, got {len(parts)}")
    placement, stm, castling, ep, halfmove, fullmove = parts

    board = _decode_placement(placement)

    if stm not in ("w", "b"):
        raise MalformedNotation(f"side to move must be 'w' or 'b', got {stm!r}")
    side = Color(stm)

    rights = _decode_castling(castling)

    en_passant: Optional[Square] = None
    if ep != "-":
        try:
            en_passant = parse_square(ep)
        except MalformedNotation as e:
            raise MalformedNotation(f"invalid en passant square: {ep!r}") from e
        # Only the third or sixth rank can be passed over by a double step.
        if ep[1] not in ("3", "6"):
            raise MalformedNotation(f"invalid en passant square rank: {ep!r}")

    try:
        halfmove_clock = int(halfmove)
        fullmove_number = int(fullmove)
    except ValueError as e:
        raise MalformedNotation("invalid move counters in FEN") from e
    if halfmove_clock < 0 or fullmove_number <= 0:
        raise MalformedNotation("invalid move counters in FEN")

    return Position(
        board=board,
        side_to_move=side,
        castling=rights,
        en_passant=en_passant,
        halfmove_clock=halfmove_clock,
        fullmove_number=fullmove_number,
    )


def _decode_placement(placement: str) -> Board:
    ranks = placement.split("/")
    if len(ranks) != 8:
        raise MalformedNotation(f"FEN board must have 8 ranks, got {len(ranks)}")
    cells: List[Optional[Piece]] = []
    for rank_idx, rank in enumerate(ranks):
        width = 0
        for ch in rank:
            if ch in "0123456789":
                n = int(ch)
                if n < 1 or n > 8:
                    raise MalformedNotation(f"invalid empty count {ch!r} in FEN rank {8 - rank_idx}")
                cells.extend([None] * n)
                width += n
            else:
                try:
                    cells.append(Piece.from_symbol(ch))
                except ValueError as e:
                    raise MalformedNotation(f"invalid piece in FEN: {ch!r}") from e
                width += 1
            if width > 8:
                raise MalformedNotation(f"too many squares in FEN rank {8 - rank_idx}")
        if width != 8:
            raise MalformedNotation(f"FEN rank {8 - rank_idx} does not sum to 8 squares")
    return Board(tuple(cells))


def _decode_castling(castling: str) -> CastlingRights:
    if castling == "-":
        return CastlingRights.none()
    if any(ch not in "KQkq" for ch in castling) or len(set(castling)) != len(castling):
        raise MalformedNotation(f"invalid castling rights: {castling!r}")
    return CastlingRights(
        white_kingside="K" in castling,
        white_queenside="Q" in castling,
        black_kingside="k" in castling,
        black_queenside="q" in castling,
    )


# --- Move labels for the history panel ---


_LABEL_LETTERS = {
    PieceKind.KNIGHT: "N",
    PieceKind.BISHOP: "B",
    PieceKind.ROOK: "R",
    PieceKind.QUEEN: "Q",
    PieceKind.KING: "K",
}


def move_label(position: Position, move: Move) -> str:
    """Return a short human-readable label for ``move`` played from ``position``.

    Piece letter (none for pawns), origin file for pawn captures, ``x`` for
    captures, destination square and ``=Q`` style promotion suffix. Castling
    is written ``O-O`` / ``O-O-O``. No check or disambiguation markers.
    """
    piece = position.board[move.from_sq]
    if piece is None:
        raise MalformedNotation(f"no piece on {square_name(move.from_sq)}")
    if position.is_castling(move):
        return "O-O" if move.to_sq.file > move.from_sq.file else "O-O-O"
    capture = position.is_capture(move)
    label = ""
    if piece.kind is PieceKind.PAWN:
        if capture:
            label += FILES[move.from_sq.file]
    else:
        label += _LABEL_LETTERS[piece.kind]
    if capture:
        label += "x"
    label += square_name(move.to_sq)
    if move.promotion is not None:
        label += "=" + _LABEL_LETTERS[move.promotion]
    return label
