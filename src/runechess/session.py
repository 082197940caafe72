from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

from .engine.errors import IllegalMove
from .engine.game import Game, MoveLike, coerce_move
from .engine.move import Move
from .engine.notation import encode_move_token
from .engine.piece import Color
from .engine.position import Position
from .oracle.adapter import OracleAdapter


logger = logging.getLogger(__name__)


class RequestSlot:
    """Tracks the single in-flight oracle request of one kind.

    Every request gets the next generation number. Starting a new request or
    calling :meth:`cancel` bumps the generation and cancels the old task, so
    a reply is only trusted while its generation is still current.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.generation = 0
        self.task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self.task is not None and not self.task.done()

    def begin(self, task: asyncio.Task) -> int:
        self.cancel()
        self.task = task
        return self.generation

    def cancel(self) -> None:
        self.generation += 1
        if self.task is not None and not self.task.done():
            logger.debug("cancelling pending request", extra={"kind": self.kind})
            self.task.cancel()
        self.task = None

    def is_current(self, generation: int) -> bool:
        return generation == self.generation


class PlaySession:
    """One game against the computer: the game record plus its oracle.

    The adapter is owned by the session (never shared globally). Human moves
    and oracle replies both go through ``Game.apply_move``; a reply is
    applied only if nothing changed while the oracle was thinking.
    """

    def __init__(
        self,
        adapter: OracleAdapter,
        game: Optional[Game] = None,
        computer_color: Optional[Color] = Color.BLACK,
    ) -> None:
        self.adapter = adapter
        self.game = game if game is not None else Game.new()
        self.computer_color = computer_color
        self._move_slot = RequestSlot("move")
        self._hint_slot = RequestSlot("hint")

    @property
    def is_computer_turn(self) -> bool:
        return (
            self.computer_color is not None
            and not self.game.is_over
            and self.game.side_to_move is self.computer_color
        )

    @property
    def thinking(self) -> bool:
        return self._move_slot.pending

    def play(self, move: MoveLike) -> Move:
        """Apply a human move and invalidate pending oracle requests.

        Raises:
            MalformedNotation: If ``move`` is a malformed token.
            IllegalMove: If the move is not legal or it is the computer's turn.
        """
        mv = coerce_move(move)
        if self.is_computer_turn:
            raise IllegalMove("it is the computer's turn")
        self.game.apply_move(mv)
        self.cancel_pending()
        return mv

    def new_game(self, computer_color: Optional[Color] = None) -> Game:
        self.cancel_pending()
        if computer_color is not None:
            self.computer_color = computer_color
        self.game = Game.new()
        return self.game

    def cancel_pending(self) -> None:
        self._move_slot.cancel()
        self._hint_slot.cancel()

    async def request_computer_move(self) -> Optional[Move]:
        """Ask the oracle for a move and apply it if still relevant.

        Returns the applied move, or None when the oracle produced nothing,
        the request was superseded, or the position changed meanwhile.
        """
        if not self.is_computer_turn:
            return None
        move, snapshot = await self._run(self._move_slot, self.adapter.best_move)
        if move is None or snapshot != self._snapshot():
            return None
        try:
            self.game.apply_move(move)
        except IllegalMove:
            logger.warning(
                "oracle proposed an illegal move",
                extra={"token": encode_move_token(move), "fen": self.game.to_fen()},
            )
            return None
        return move

    async def request_hint(self) -> Optional[Move]:
        """Ask the oracle for a suggestion; never touches the game."""
        if self.game.is_over:
            return None
        move, snapshot = await self._run(self._hint_slot, self.adapter.hint)
        if move is None or snapshot != self._snapshot():
            return None
        return move

    async def _run(
        self, slot: RequestSlot, ask: Callable[[Position], Awaitable[Optional[Move]]]
    ) -> Tuple[Optional[Move], Tuple[int, str, int]]:
        snapshot = self._snapshot()
        task = asyncio.ensure_future(ask(self.game.position))
        generation = slot.begin(task)
        try:
            move = await task
        except asyncio.CancelledError:
            if slot.is_current(generation):
                # Our caller was cancelled, not superseded by a newer request.
                raise
            return None, snapshot
        if not slot.is_current(generation):
            logger.info("discarding superseded oracle reply", extra={"kind": slot.kind})
            return None, snapshot
        slot.task = None
        if snapshot != self._snapshot():
            logger.info("discarding stale oracle reply", extra={"kind": slot.kind})
        return move, snapshot

    def _snapshot(self) -> Tuple[int, str, int]:
        return id(self.game), self.game.position.signature(), len(self.game.history)
