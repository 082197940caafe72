from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..config import OracleSettings
from ..engine.errors import MalformedNotation
from ..engine.move import Move
from ..engine.notation import decode_move_token, encode_fen
from ..engine.position import Position
from .difficulty import DIFFICULTY_SETTINGS, Difficulty
from .errors import OracleError, OracleTimeout, OracleUnavailable
from .protocol import (
    EvaluationReport,
    format_go,
    format_position,
    format_setoption,
    parse_bestmove,
    parse_id_name,
    parse_info_line,
)
from .transport import SubprocessTransport, Transport


logger = logging.getLogger(__name__)

InfoCallback = Callable[[EvaluationReport], None]


@dataclass(frozen=True)
class SearchOutcome:
    """Raw result of one ``go``: the chosen token and the progress seen."""

    best_token: Optional[str]
    reports: List[EvaluationReport] = field(default_factory=list)

    @property
    def last_report(self) -> Optional[EvaluationReport]:
        return self.reports[-1] if self.reports else None


@dataclass(frozen=True)
class Analysis:
    best_move: Optional[Move]
    score_cp: Optional[int]
    mate_in: Optional[int]
    depth: int
    pv: List[str]


class OracleAdapter:
    """Client side of the UCI protocol: encode, dispatch, decode.

    Notes:
    - Performs no chess logic; moves it returns still have to pass
      ``Game.apply_move``.
    - One engine process per adapter; requests are serialized by a lock.
    - Cancelling a pending request sends ``stop`` and drains the reply so the
      next request starts on a quiet pipe. If the engine does not cooperate it
      is restarted on the next request.
    - The public ``best_move``/``analyze``/``hint`` calls never raise
      :class:`OracleError`; they log and return None.
    """

    def __init__(self, transport: Transport, settings: Optional[OracleSettings] = None) -> None:
        self.transport = transport
        self.settings = settings if settings is not None else OracleSettings()
        self.difficulty: Difficulty = self.settings.difficulty
        self.engine_name: Optional[str] = None
        self._lock = asyncio.Lock()
        self._ready = False
        self._applied_skill: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: OracleSettings) -> "OracleAdapter":
        return cls(SubprocessTransport(settings.engine_command), settings)

    async def __aenter__(self) -> "OracleAdapter":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ---- Lifecycle ----

    async def start(self) -> None:
        """Spawn the engine and complete the uci/isready handshake.

        Raises:
            OracleUnavailable: If the engine cannot be started or does not
                complete the handshake in time.
        """
        async with self._lock:
            await self._ensure_started()

    async def close(self) -> None:
        self._ready = False
        self._applied_skill = None
        await self.transport.close()

    def set_difficulty(self, level: Difficulty) -> None:
        """Select the difficulty; the skill option is sent before the next search."""
        self.difficulty = Difficulty(level)
        logger.info("difficulty set", extra={"difficulty": self.difficulty.value})

    # ---- Public requests ----

    async def best_move(self, position: Position, on_info: Optional[InfoCallback] = None) -> Optional[Move]:
        """Ask for a move using the current difficulty's depth and time budget."""
        level = DIFFICULTY_SETTINGS[self.difficulty]
        outcome = await self._search_or_none(
            encode_fen(position), depth=level.depth, movetime_ms=level.time_ms, on_info=on_info
        )
        if outcome is None:
            return None
        return self._decode(outcome.best_token)

    async def analyze(self, position: Position, on_info: Optional[InfoCallback] = None) -> Optional[Analysis]:
        """Evaluate the position with the fixed analysis budget."""
        outcome = await self._search_or_none(
            encode_fen(position),
            depth=self.settings.analysis_depth,
            movetime_ms=self.settings.analysis_time_ms,
            on_info=on_info,
        )
        if outcome is None:
            return None
        last = outcome.last_report
        token = outcome.best_token or (last.best_token if last is not None else None)
        return Analysis(
            best_move=self._decode(token),
            score_cp=last.score_cp if last is not None else None,
            mate_in=last.mate_in if last is not None else None,
            depth=last.depth if last is not None else 0,
            pv=list(last.pv) if last is not None else [],
        )

    async def hint(self, position: Position) -> Optional[Move]:
        """Suggest a move for the human: the analysed best move."""
        analysis = await self.analyze(position)
        return analysis.best_move if analysis is not None else None

    async def search(
        self,
        fen: str,
        *,
        depth: Optional[int] = None,
        movetime_ms: Optional[int] = None,
        on_info: Optional[InfoCallback] = None,
    ) -> SearchOutcome:
        """Run one search and wait for ``bestmove``.

        Raises:
            OracleUnavailable: If the engine is not reachable.
            OracleTimeout: If no ``bestmove`` arrives within the budget.
        """
        go = format_go(depth, movetime_ms)
        budget = self.settings.request_budget_s(movetime_ms)
        async with self._lock:
            await self._ensure_started()
            await self._apply_skill()
            await self._send(format_position(fen))
            await self._wait_ready()
            try:
                await self._send(go)
                return await asyncio.wait_for(self._collect(on_info), timeout=budget)
            except asyncio.TimeoutError:
                logger.warning("search timed out", extra={"fen": fen, "budget_s": budget})
                await self._abort()
                raise OracleTimeout(f"no bestmove within {budget:.1f}s") from None
            except asyncio.CancelledError:
                logger.info("search cancelled", extra={"fen": fen})
                await self._abort()
                raise

    # ---- Internals ----

    async def _search_or_none(self, fen: str, **kwargs) -> Optional[SearchOutcome]:
        try:
            return await self.search(fen, **kwargs)
        except OracleError as e:
            logger.warning("oracle request failed: %s", e, extra={"fen": fen})
            return None

    def _decode(self, token: Optional[str]) -> Optional[Move]:
        if token is None:
            return None
        try:
            return decode_move_token(token)
        except MalformedNotation:
            logger.warning("oracle returned a malformed move token", extra={"token": token})
            return None

    async def _ensure_started(self) -> None:
        if self._ready and self.transport.running:
            return
        self._ready = False
        await self.transport.start()
        try:
            await asyncio.wait_for(self._handshake(), timeout=self.settings.handshake_timeout_s)
        except asyncio.TimeoutError:
            await self._reset()
            raise OracleUnavailable("uci handshake timed out") from None
        except (OracleUnavailable, asyncio.CancelledError):
            await self._reset()
            raise
        self._ready = True
        logger.info("engine ready", extra={"engine": self.engine_name})

    async def _handshake(self) -> None:
        await self._send("uci")
        while True:
            line = await self.transport.readline()
            name = parse_id_name(line)
            if name is not None:
                self.engine_name = name
            if line == "uciok":
                break
        self._applied_skill = None
        await self._apply_skill()
        await self._sync_ready()

    async def _apply_skill(self) -> None:
        skill = DIFFICULTY_SETTINGS[self.difficulty].skill_level
        if skill != self._applied_skill:
            await self._send(format_setoption("Skill Level", skill))
            self._applied_skill = skill

    async def _sync_ready(self) -> None:
        await self._send("isready")
        while await self.transport.readline() != "readyok":
            pass

    async def _wait_ready(self) -> None:
        try:
            await asyncio.wait_for(self._sync_ready(), timeout=self.settings.handshake_timeout_s)
        except asyncio.TimeoutError:
            await self._reset()
            raise OracleUnavailable("engine not ready") from None

    async def _collect(self, on_info: Optional[InfoCallback]) -> SearchOutcome:
        reports: List[EvaluationReport] = []
        while True:
            line = await self.transport.readline()
            if line.startswith("info "):
                report = parse_info_line(line)
                if report is not None:
                    reports.append(report)
                    if on_info is not None:
                        on_info(report)
            elif line.startswith("bestmove"):
                return SearchOutcome(best_token=parse_bestmove(line), reports=reports)

    async def _abort(self) -> None:
        """Stop the running search and drain its ``bestmove``."""
        try:
            await self._send("stop")
            await asyncio.wait_for(self._drain_until_bestmove(), timeout=self.settings.stop_timeout_s)
        except (asyncio.TimeoutError, OracleError):
            logger.warning("engine did not acknowledge stop; restarting it on the next request")
            await self._reset()

    async def _drain_until_bestmove(self) -> None:
        while not (await self.transport.readline()).startswith("bestmove"):
            pass

    async def _reset(self) -> None:
        self._ready = False
        self._applied_skill = None
        await self.transport.close()

    async def _send(self, line: str) -> None:
        await self.transport.send(line)
