from __future__ import annotations

from typing import List, Optional, Tuple

from .errors import InvariantViolation
from .move import Move, Square
from .piece import PROMOTION_KINDS, Color, Piece, PieceKind
from .position import (
    HOME_RANK,
    KING_FILE,
    KINGSIDE_ROOK_FILE,
    PAWN_DIRECTION,
    QUEENSIDE_ROOK_FILE,
    Position,
)


Offsets = Tuple[Tuple[int, int], ...]

# (d_rank, d_file) pairs
KNIGHT_OFFSETS: Offsets = ((-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1))
KING_OFFSETS: Offsets = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))
BISHOP_DIRS: Offsets = ((-1, -1), (-1, 1), (1, -1), (1, 1))
ROOK_DIRS: Offsets = ((-1, 0), (1, 0), (0, -1), (0, 1))
QUEEN_DIRS: Offsets = BISHOP_DIRS + ROOK_DIRS

_SLIDER_DIRS = {
    PieceKind.BISHOP: BISHOP_DIRS,
    PieceKind.ROOK: ROOK_DIRS,
    PieceKind.QUEEN: QUEEN_DIRS,
}


def pseudo_legal_moves(position: Position, square: Square) -> List[Move]:
    """Return the moves of the piece on ``square`` ignoring self-check.

    Returns an empty list for an empty square. Moves are generated for the
    piece's own color even when it is not that side's turn, so callers can
    show a piece's reach; legality filtering uses the side to move.
    """
    piece = position.board[square]
    if piece is None:
        return []
    if piece.kind is PieceKind.PAWN:
        return _pawn_moves(position, square, piece.color)
    if piece.kind is PieceKind.KNIGHT:
        return _step_moves(position, square, piece.color, KNIGHT_OFFSETS)
    if piece.kind is PieceKind.KING:
        moves = _step_moves(position, square, piece.color, KING_OFFSETS)
        moves.extend(_castling_moves(position, square, piece.color))
        return moves
    return _slider_moves(position, square, piece.color, _SLIDER_DIRS[piece.kind])


def legal_moves(position: Position, square: Square) -> List[Move]:
    """Return the legal moves of the piece on ``square``.

    Only pieces of the side to move have legal moves. Each pseudo-legal
    candidate is played on a copy of the position (rook hop and en passant
    removal included) and kept only if the mover's king is not attacked.
    """
    piece = position.board[square]
    if piece is None or piece.color is not position.side_to_move:
        return []
    mover = piece.color
    return [
        m
        for m in pseudo_legal_moves(position, square)
        if not is_in_check(position.play(m), mover)
    ]


def all_legal_moves(position: Position) -> List[Move]:
    """Return every legal move for the side to move."""
    moves: List[Move] = []
    for sq, _ in position.board.occupied(position.side_to_move):
        moves.extend(legal_moves(position, sq))
    return moves


def has_legal_moves(position: Position) -> bool:
    for sq, _ in position.board.occupied(position.side_to_move):
        if legal_moves(position, sq):
            return True
    return False


def is_square_attacked(position: Position, square: Square, by_color: Color) -> bool:
    """Return True if a piece of ``by_color`` attacks ``square``.

    Looks outward from the target: pawns, knights, the king, then slider
    rays. Castling is never considered, so this is safe to call from
    castling generation.
    """
    board = position.board

    # A pawn of by_color attacks from one rank "behind" the target, relative
    # to its own direction of travel.
    pawn = Piece(PieceKind.PAWN, by_color)
    back = -PAWN_DIRECTION[by_color]
    for d_file in (-1, 1):
        src = square.offset(back, d_file)
        if src is not None and board[src] == pawn:
            return True

    knight = Piece(PieceKind.KNIGHT, by_color)
    for dr, df in KNIGHT_OFFSETS:
        src = square.offset(dr, df)
        if src is not None and board[src] == knight:
            return True

    king = Piece(PieceKind.KING, by_color)
    for dr, df in KING_OFFSETS:
        src = square.offset(dr, df)
        if src is not None and board[src] == king:
            return True

    for dirs, kinds in (
        (BISHOP_DIRS, (PieceKind.BISHOP, PieceKind.QUEEN)),
        (ROOK_DIRS, (PieceKind.ROOK, PieceKind.QUEEN)),
    ):
        for dr, df in dirs:
            src = square.offset(dr, df)
            while src is not None:
                occupant = board[src]
                if occupant is not None:
                    if occupant.color is by_color and occupant.kind in kinds:
                        return True
                    break
                src = src.offset(dr, df)

    return False


def is_in_check(position: Position, color: Color) -> bool:
    """Return True if ``color``'s king is attacked.

    Raises:
        InvariantViolation: If ``color`` has no king on the board.
    """
    king_sq = position.board.king_square(color)
    if king_sq is None:
        raise InvariantViolation(f"no {color.label.lower()} king on the board")
    return is_square_attacked(position, king_sq, color.opponent)


# --- Per-piece generators ---


def _pawn_moves(position: Position, square: Square, color: Color) -> List[Move]:
    board = position.board
    direction = PAWN_DIRECTION[color]
    start_rank = HOME_RANK[color] + direction
    last_rank = HOME_RANK[color.opponent]
    targets: List[Square] = []

    one = square.offset(direction, 0)
    if one is not None and board[one] is None:
        targets.append(one)
        if square.rank == start_rank:
            two = one.offset(direction, 0)
            if two is not None and board[two] is None:
                targets.append(two)

    for d_file in (-1, 1):
        cap = square.offset(direction, d_file)
        if cap is None:
            continue
        occupant = board[cap]
        if occupant is not None:
            if occupant.color is not color:
                targets.append(cap)
        elif cap == position.en_passant and _en_passant_victim_present(position, square, cap, color):
            targets.append(cap)

    moves: List[Move] = []
    for to_sq in targets:
        if to_sq.rank == last_rank:
            # Reaching the far rank is only ever a promotion.
            moves.extend(Move(square, to_sq, kind) for kind in PROMOTION_KINDS)
        else:
            moves.append(Move(square, to_sq))
    return moves


def _en_passant_victim_present(position: Position, src: Square, target: Square, color: Color) -> bool:
    # The capturing pawn must stand on the rank beside the passed-over square,
    # next to an enemy pawn that just made the double step.
    victim = position.board[Square(src.rank, target.file)]
    return victim == Piece(PieceKind.PAWN, color.opponent)


def _step_moves(position: Position, square: Square, color: Color, offsets: Offsets) -> List[Move]:
    moves: List[Move] = []
    for dr, df in offsets:
        to_sq = square.offset(dr, df)
        if to_sq is None:
            continue
        occupant = position.board[to_sq]
        if occupant is None or occupant.color is not color:
            moves.append(Move(square, to_sq))
    return moves


def _slider_moves(position: Position, square: Square, color: Color, dirs: Offsets) -> List[Move]:
    moves: List[Move] = []
    for dr, df in dirs:
        to_sq = square.offset(dr, df)
        while to_sq is not None:
            occupant = position.board[to_sq]
            if occupant is None:
                moves.append(Move(square, to_sq))
            else:
                if occupant.color is not color:
                    moves.append(Move(square, to_sq))
                break
            to_sq = to_sq.offset(dr, df)
    return moves


def _castling_moves(position: Position, square: Square, color: Color) -> List[Move]:
    home = HOME_RANK[color]
    if square != Square(home, KING_FILE):
        return []
    rights = position.castling
    enemy = color.opponent
    moves: List[Move] = []
    for allowed, rook_file, step in (
        (rights.kingside(color), KINGSIDE_ROOK_FILE, 1),
        (rights.queenside(color), QUEENSIDE_ROOK_FILE, -1),
    ):
        if not allowed:
            continue
        if position.board[Square(home, rook_file)] != Piece(PieceKind.ROOK, color):
            continue
        between = range(min(KING_FILE, rook_file) + 1, max(KING_FILE, rook_file))
        if any(position.board[Square(home, f)] is not None for f in between):
            continue
        # King's own square, the square it crosses and its destination.
        path = [Square(home, KING_FILE + step * i) for i in range(3)]
        if any(is_square_attacked(position, sq, enemy) for sq in path):
            continue
        moves.append(Move(square, path[-1]))
    return moves


def find_legal_move(position: Position, move: Move) -> Optional[Move]:
    """Return ``move`` if it is exactly in the legal set, else None."""
    for candidate in legal_moves(position, move.from_sq):
        if candidate == move:
            return candidate
    return None
