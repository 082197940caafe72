from __future__ import annotations

import dataclasses

import pytest

from runechess.engine.errors import IllegalMove, InvariantViolation
from runechess.engine.game import Game
from runechess.engine.move import Move
from runechess.engine.notation import decode_fen, decode_move_token, encode_fen, parse_square
from runechess.engine.piece import Color, Piece, PieceKind
from runechess.engine.position import STARTPOS_FEN, Position


def test_play_returns_new_position_and_does_not_mutate() -> None:
    p = Position.initial()
    assert encode_fen(p) == STARTPOS_FEN

    p2 = p.play(decode_move_token("e2e4"))

    # Original position unchanged
    assert encode_fen(p) == STARTPOS_FEN
    # New position reflects move; halfmove reset, ep square set, side toggled
    assert encode_fen(p2) == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"


def test_position_is_frozen() -> None:
    p = Position.initial()
    with pytest.raises(dataclasses.FrozenInstanceError):
        p.side_to_move = Color.BLACK  # type: ignore[misc]


def test_play_from_empty_square_is_an_invariant_violation() -> None:
    p = Position.initial()
    with pytest.raises(InvariantViolation):
        p.play(decode_move_token("e4e5"))


def test_play_with_opponent_piece_is_an_invariant_violation() -> None:
    p = Position.initial()
    with pytest.raises(InvariantViolation):
        p.play(decode_move_token("e7e5"))


def test_apply_rejects_illegal_move_and_leaves_game_untouched() -> None:
    g = Game.new()
    with pytest.raises(IllegalMove):
        g.apply_move(decode_move_token("e2e5"))
    # IllegalMove is a ValueError for callers that only know the builtin
    with pytest.raises(ValueError):
        g.apply_move(Move(parse_square("e1"), parse_square("e2")))
    assert g.to_fen() == STARTPOS_FEN
    assert g.history == []
    assert g.repetition_count() == 1


def test_apply_rejects_missing_or_unwanted_promotion() -> None:
    g = Game.from_fen("k7/4P3/8/8/8/8/8/4K3 w - - 0 1")
    with pytest.raises(IllegalMove):
        g.apply_move(decode_move_token("e7e8"))
    with pytest.raises(IllegalMove):
        Game.new().apply_move(decode_move_token("e2e4q"))


def test_apply_handles_castling_rook_motion() -> None:
    fen = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
    p = decode_fen(fen)
    p2 = p.play(decode_move_token("e1g1"))

    # Rook moved from h1 to f1 on the new position only
    assert p2.board[parse_square("f1")] == Piece(PieceKind.ROOK, Color.WHITE)
    assert p2.board[parse_square("h1")] is None
    assert p2.board[parse_square("g1")] == Piece(PieceKind.KING, Color.WHITE)
    assert p.board[parse_square("h1")] == Piece(PieceKind.ROOK, Color.WHITE)
