import asyncio
import os
import sys
from typing import Callable, List, Optional, Sequence

import pytest


# Ensure the repository's src/ is on sys.path for `import runechess` without installing
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_PATH = os.path.abspath(os.path.join(REPO_ROOT, "src"))
if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)

from runechess.config import OracleSettings  # noqa: E402
from runechess.oracle.errors import OracleUnavailable  # noqa: E402
from runechess.oracle.transport import Transport  # noqa: E402


class ScriptedTransport(Transport):
    """In-memory UCI engine that answers from a script.

    ``hang`` makes ``go`` wait for ``stop``; ``ignore_stop`` makes it wait
    forever. Everything the adapter sends is recorded in ``sent``.
    """

    def __init__(
        self,
        bestmove: str = "e7e5",
        infos: Sequence[str] = (),
        *,
        name: str = "Scripted 1.0",
        hang: bool = False,
        ignore_stop: bool = False,
        fail_start: bool = False,
        silent: bool = False,
    ) -> None:
        self.bestmove = bestmove
        self.infos = list(infos)
        self.name = name
        self.hang = hang
        self.ignore_stop = ignore_stop
        self.fail_start = fail_start
        self.silent = silent
        self.sent: List[str] = []
        self.starts = 0
        self.closes = 0
        self._running = False
        self._searching = False
        self._lines: Optional[asyncio.Queue] = None
        self.go_received: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        if self.fail_start:
            raise OracleUnavailable("cannot start engine 'scripted'")
        self.starts += 1
        self._running = True
        self._searching = False
        self._lines = asyncio.Queue()
        self.go_received = asyncio.Event()

    async def send(self, line: str) -> None:
        if not self._running:
            raise OracleUnavailable("engine is not running")
        self.sent.append(line)
        self._respond(line)

    async def readline(self) -> str:
        if not self._running or self._lines is None:
            raise OracleUnavailable("engine is not running")
        return await self._lines.get()

    async def close(self) -> None:
        if self._running:
            self.closes += 1
        self._running = False

    def commands(self, prefix: str) -> List[str]:
        return [line for line in self.sent if line.startswith(prefix)]

    def _emit(self, line: str) -> None:
        assert self._lines is not None
        self._lines.put_nowait(line)

    def _respond(self, line: str) -> None:
        if self.silent:
            return
        if line == "uci":
            self._emit(f"id name {self.name}")
            self._emit("option name Skill Level type spin default 20 min 0 max 20")
            self._emit("uciok")
        elif line == "isready":
            self._emit("readyok")
        elif line.startswith("go"):
            assert self.go_received is not None
            self.go_received.set()
            for info in self.infos:
                self._emit(info)
            if self.hang:
                self._searching = True
            else:
                self._emit(f"bestmove {self.bestmove}")
        elif line == "stop":
            if self._searching and not self.ignore_stop:
                self._searching = False
                self._emit(f"bestmove {self.bestmove}")


@pytest.fixture
def scripted() -> Callable[..., ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture
def fast_settings() -> OracleSettings:
    return OracleSettings(
        engine_command="scripted",
        handshake_timeout_s=0.5,
        stop_timeout_s=0.2,
        timeout_grace_ms=200,
        depth_only_budget_ms=500,
    )
