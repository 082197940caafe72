"""UCI line formatting and parsing for the client side of the protocol.

Engine -> client lines handled here::

    id name <name>
    uciok
    readyok
    info depth 14 seldepth 20 nodes 123456 score cp 23 pv e2e4 e7e5
    bestmove e2e4 [ponder e7e5]

Anything else is ignored by the adapter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


NO_MOVE_TOKENS = {"(none)", "0000", "none"}


@dataclass(frozen=True)
class EvaluationReport:
    """One progress report from a running search."""

    depth: int
    score_cp: Optional[int] = None
    mate_in: Optional[int] = None
    pv: List[str] = field(default_factory=list)
    seldepth: Optional[int] = None
    nodes: Optional[int] = None

    @property
    def best_token(self) -> Optional[str]:
        return self.pv[0] if self.pv else None


# --- Client -> engine ---


def format_position(fen: str) -> str:
    return f"position fen {fen}"


def format_go(depth: Optional[int] = None, movetime_ms: Optional[int] = None) -> str:
    """Build a ``go`` command; both limits may be combined.

    Raises:
        ValueError: If neither limit is given.
    """
    parts = ["go"]
    if depth is not None:
        parts += ["depth", str(int(depth))]
    if movetime_ms is not None:
        parts += ["movetime", str(int(movetime_ms))]
    if len(parts) == 1:
        raise ValueError("go needs a depth or a movetime")
    return " ".join(parts)


def format_setoption(name: str, value: object) -> str:
    return f"setoption name {name} value {value}"


# --- Engine -> client ---


def parse_id_name(line: str) -> Optional[str]:
    if line.startswith("id name "):
        return line[len("id name ") :].strip() or None
    return None


def parse_bestmove(line: str) -> Optional[str]:
    """Return the move token of a ``bestmove`` line, or None for a null move.

    Raises:
        ValueError: If ``line`` is not a ``bestmove`` line.
    """
    parts = line.split()
    if not parts or parts[0] != "bestmove":
        raise ValueError(f"not a bestmove line: {line!r}")
    if len(parts) < 2 or parts[1] in NO_MOVE_TOKENS:
        return None
    return parts[1]


def parse_info_line(line: str) -> Optional[EvaluationReport]:
    """Parse an ``info`` line carrying a depth and a score.

    Returns None for info lines without both (``info string``,
    ``currmove`` updates, and the like) and for malformed numbers.
    """
    parts = line.split()
    if not parts or parts[0] != "info":
        return None
    depth: Optional[int] = None
    seldepth: Optional[int] = None
    nodes: Optional[int] = None
    score_cp: Optional[int] = None
    mate_in: Optional[int] = None
    pv: List[str] = []
    i = 1
    try:
        while i < len(parts):
            tok = parts[i]
            if tok == "string":
                # Free-form text runs to the end of the line
                break
            if tok == "depth" and i + 1 < len(parts):
                depth = int(parts[i + 1])
                i += 2
                continue
            if tok == "seldepth" and i + 1 < len(parts):
                seldepth = int(parts[i + 1])
                i += 2
                continue
            if tok == "nodes" and i + 1 < len(parts):
                nodes = int(parts[i + 1])
                i += 2
                continue
            if tok == "score" and i + 2 < len(parts):
                kind, value = parts[i + 1], int(parts[i + 2])
                if kind == "cp":
                    score_cp = value
                elif kind == "mate":
                    mate_in = value
                i += 3
                continue
            if tok == "pv":
                pv = parts[i + 1 :]
                break
            i += 1
    except ValueError:
        return None
    if depth is None or (score_cp is None and mate_in is None):
        return None
    return EvaluationReport(
        depth=depth,
        score_cp=score_cp,
        mate_in=mate_in,
        pv=pv,
        seldepth=seldepth,
        nodes=nodes,
    )
