from __future__ import annotations

from typing import List

import pytest

from runechess.engine.movegen import all_legal_moves, is_in_check, legal_moves, pseudo_legal_moves
from runechess.engine.notation import decode_fen, decode_move_token, encode_move_token
from runechess.engine.position import Position


FENS = [
    "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
    "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
    "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
    "r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1",
    "rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8",
]


def _reachable(position: Position, depth: int) -> List[Position]:
    """The position itself plus every position up to ``depth`` plies away."""
    out = [position]
    frontier = [position]
    for _ in range(depth):
        frontier = [p.play(m) for p in frontier for m in all_legal_moves(p)]
        out.extend(frontier)
    return out


@pytest.mark.parametrize("fen", FENS)
def test_legal_moves_are_pseudo_legal_and_keep_king_safe(fen: str) -> None:
    for position in _reachable(decode_fen(fen), 1):
        mover = position.side_to_move
        for square, _ in position.board.occupied(mover):
            pseudo = pseudo_legal_moves(position, square)
            for move in legal_moves(position, square):
                assert move in pseudo
                assert not is_in_check(position.play(move), mover)


@pytest.mark.parametrize("fen", FENS)
def test_every_legal_move_survives_token_round_trip(fen: str) -> None:
    for position in _reachable(decode_fen(fen), 1):
        for move in all_legal_moves(position):
            token = encode_move_token(move)
            assert decode_move_token(token) == move
            assert move.to_uci() == token
