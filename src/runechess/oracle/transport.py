from __future__ import annotations

import abc
import asyncio
import contextlib
import logging
import shlex
from collections import deque
from typing import Deque, List, Optional, Sequence, Union

from .errors import OracleUnavailable


logger = logging.getLogger(__name__)


class Transport(abc.ABC):
    """Line-oriented duplex channel to a UCI engine.

    Implementations deliver lines without trailing newlines. ``readline``
    blocks until a line arrives and raises :class:`OracleUnavailable` once the
    engine side has closed.
    """

    @property
    @abc.abstractmethod
    def running(self) -> bool: ...

    @abc.abstractmethod
    async def start(self) -> None: ...

    @abc.abstractmethod
    async def send(self, line: str) -> None: ...

    @abc.abstractmethod
    async def readline(self) -> str: ...

    @abc.abstractmethod
    async def close(self) -> None: ...


class SubprocessTransport(Transport):
    """Runs the engine as a child process and talks over its stdin/stdout."""

    def __init__(self, command: Union[str, Sequence[str]]) -> None:
        self.argv: List[str] = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.argv:
            raise ValueError("engine command must not be empty")
        self.proc: Optional[asyncio.subprocess.Process] = None
        self._last_lines: Deque[str] = deque(maxlen=50)

    @property
    def running(self) -> bool:
        return self.proc is not None and self.proc.returncode is None

    async def start(self) -> None:
        if self.running:
            return
        logger.info("starting engine", extra={"argv": self.argv})
        try:
            self.proc = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise OracleUnavailable(f"cannot start engine {self.argv[0]!r}: {e}") from e

    async def send(self, line: str) -> None:
        if not self.running or self.proc is None or self.proc.stdin is None:
            raise OracleUnavailable("engine is not running")
        logger.debug(">> %s", line)
        try:
            self.proc.stdin.write((line + "\n").encode("utf-8"))
            await self.proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise OracleUnavailable(f"engine pipe closed: {e}") from e

    async def readline(self) -> str:
        if self.proc is None or self.proc.stdout is None:
            raise OracleUnavailable("engine is not running")
        raw = await self.proc.stdout.readline()
        if not raw:
            last = self._last_lines[-1] if self._last_lines else ""
            raise OracleUnavailable(
                f"engine terminated unexpectedly (code={self.proc.returncode}) last={last!r}"
            )
        line = raw.decode("utf-8", errors="replace").strip()
        self._last_lines.append(line)
        logger.debug("<< %s", line)
        return line

    async def close(self) -> None:
        proc, self.proc = self.proc, None
        if proc is None or proc.returncode is not None:
            return
        try:
            if proc.stdin is not None:
                proc.stdin.write(b"quit\n")
                await proc.stdin.drain()
            await asyncio.wait_for(proc.wait(), timeout=1.0)
        except (asyncio.TimeoutError, BrokenPipeError, ConnectionResetError):
            logger.warning("engine did not quit cleanly, killing it")
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
