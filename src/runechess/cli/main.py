from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import List, Optional

from ..config import OracleSettings
from ..engine.errors import ChessError
from ..engine.game import Game
from ..engine.notation import decode_fen, encode_move_token
from ..engine.perft import divide, perft
from ..engine.position import STARTPOS_FEN
from ..oracle.adapter import OracleAdapter
from ..oracle.difficulty import Difficulty
from ..oracle.errors import OracleError
from ..oracle.protocol import EvaluationReport


logger = logging.getLogger(__name__)


def _cmd_perft(args: argparse.Namespace) -> int:
    position = decode_fen(args.fen)
    start = time.perf_counter()
    if args.divide:
        counts = divide(position, args.depth)
        for token in sorted(counts):
            print(f"{token}: {counts[token]}")
        nodes = sum(counts.values())
    else:
        nodes = perft(position, args.depth)
    dt = time.perf_counter() - start
    print(f"nodes={nodes} depth={args.depth} time_ms={int(dt*1000)} nps={int(nodes/max(dt,1e-9))}")
    return 0


def _cmd_play(args: argparse.Namespace) -> int:
    game = Game.from_fen(args.fen)
    for token in args.moves:
        game.play_token(token)
    print(f"fen: {game.to_fen()}")
    print(f"status: {game.status.value}{' (check)' if game.in_check else ''}")
    if game.message:
        print(game.message)
    if game.history:
        print("moves: " + " ".join(game.move_history_labels()))
    legal = sorted(encode_move_token(m) for m in game.legal_moves())
    print(f"legal ({len(legal)}): {' '.join(legal)}")
    return 0


def _cmd_bestmove(args: argparse.Namespace) -> int:
    settings = OracleSettings.from_env(engine_command=args.engine, difficulty=args.difficulty)
    game = Game.from_fen(args.fen)

    def on_info(report: EvaluationReport) -> None:
        score = f"mate {report.mate_in}" if report.mate_in is not None else f"cp {report.score_cp}"
        print(f"info depth {report.depth} score {score} pv {' '.join(report.pv)}")

    async def run() -> Optional[str]:
        async with OracleAdapter.from_settings(settings) as oracle:
            move = await oracle.best_move(game.position, on_info=on_info if args.verbose else None)
        return encode_move_token(move) if move is not None else None

    try:
        token = asyncio.run(run())
    except OracleError as e:
        logger.warning("oracle unavailable: %s", e, extra={"engine": settings.engine_command})
        token = None
    print(f"bestmove {token or '(none)'}")
    return 0 if token else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="runechess", description="Chess rules engine tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_perft = sub.add_parser("perft", help="Count leaf nodes of the legal move tree")
    p_perft.add_argument("--fen", type=str, default=STARTPOS_FEN, help="FEN string (default: startpos)")
    p_perft.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    p_perft.add_argument("--divide", action="store_true", help="Print counts per root move")
    p_perft.set_defaults(func=_cmd_perft)

    p_play = sub.add_parser("play", help="Apply UCI moves to a position and print the result")
    p_play.add_argument("moves", nargs="*", help="Moves like e2e4 e7e5")
    p_play.add_argument("--fen", type=str, default=STARTPOS_FEN, help="Start FEN (default: startpos)")
    p_play.set_defaults(func=_cmd_play)

    p_best = sub.add_parser("bestmove", help="Ask the external engine for a move")
    p_best.add_argument("--fen", type=str, default=STARTPOS_FEN, help="FEN string (default: startpos)")
    p_best.add_argument("--engine", type=str, default=None, help="Engine command (default: $RUNECHESS_ENGINE or stockfish)")
    p_best.add_argument(
        "--difficulty",
        choices=[d.value for d in Difficulty],
        default=None,
        help="Difficulty level (default: $RUNECHESS_DIFFICULTY or medium)",
    )
    p_best.set_defaults(func=_cmd_bestmove)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        return args.func(args)
    except ChessError as e:
        logger.debug("command failed", exc_info=True, extra={"command": args.command})
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
