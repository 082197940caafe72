from __future__ import annotations

import asyncio
import os
import sys
from typing import List

import pytest

from runechess.engine.notation import decode_move_token, encode_fen
from runechess.engine.position import Position
from runechess.oracle.adapter import OracleAdapter
from runechess.oracle.difficulty import Difficulty
from runechess.oracle.errors import OracleTimeout, OracleUnavailable
from runechess.oracle.protocol import EvaluationReport
from runechess.oracle.transport import SubprocessTransport


FAKE_ENGINE = os.path.join(os.path.dirname(__file__), "fake_engine.py")
AFTER_E4 = Position.initial().play(decode_move_token("e2e4"))


def test_best_move_round_trip(scripted, fast_settings) -> None:
    transport = scripted(bestmove="e7e5", infos=["info depth 1 score cp 15 pv e7e5"])
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        async with adapter:
            return await adapter.best_move(AFTER_E4)

    move = asyncio.run(run())
    assert move == decode_move_token("e7e5")
    assert adapter.engine_name == "Scripted 1.0"
    assert transport.sent == [
        "uci",
        "setoption name Skill Level value 6",
        "isready",
        f"position fen {encode_fen(AFTER_E4)}",
        "isready",
        "go depth 10 movetime 1000",
    ]
    assert transport.closes == 1


def test_progress_reports_reach_callback(scripted, fast_settings) -> None:
    transport = scripted(
        infos=[
            "info depth 1 score cp 15 pv e7e5",
            "info string thinking hard",
            "info depth 2 seldepth 4 score mate 4 pv e7e5 g1f3",
        ]
    )
    adapter = OracleAdapter(transport, fast_settings)
    seen: List[EvaluationReport] = []

    async def run():
        async with adapter:
            return await adapter.best_move(AFTER_E4, on_info=seen.append)

    assert asyncio.run(run()) == decode_move_token("e7e5")
    assert [r.depth for r in seen] == [1, 2]
    assert seen[-1].mate_in == 4


def test_analyze_and_hint_use_analysis_budget(scripted, fast_settings) -> None:
    transport = scripted(bestmove="g1f3", infos=["info depth 18 score cp -31 pv g1f3 b8c6"])
    adapter = OracleAdapter(transport, fast_settings)
    position = AFTER_E4.play(decode_move_token("e7e5"))

    async def run():
        async with adapter:
            analysis = await adapter.analyze(position)
            hint = await adapter.hint(position)
            return analysis, hint

    analysis, hint = asyncio.run(run())
    assert analysis is not None
    assert analysis.best_move == decode_move_token("g1f3")
    assert analysis.score_cp == -31
    assert analysis.depth == 18
    assert analysis.pv == ["g1f3", "b8c6"]
    assert hint == decode_move_token("g1f3")
    assert transport.commands("go") == ["go depth 18 movetime 1000"] * 2


def test_difficulty_change_resends_skill_once(scripted, fast_settings) -> None:
    transport = scripted()
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        async with adapter:
            await adapter.best_move(AFTER_E4)
            adapter.set_difficulty(Difficulty.HARD)
            await adapter.best_move(AFTER_E4)
            await adapter.best_move(AFTER_E4)

    asyncio.run(run())
    assert transport.commands("setoption") == [
        "setoption name Skill Level value 6",
        "setoption name Skill Level value 11",
    ]
    assert transport.commands("go") == [
        "go depth 10 movetime 1000",
        "go depth 15 movetime 1500",
        "go depth 15 movetime 1500",
    ]


@pytest.mark.parametrize("reply", ["(none)", "0000", "zz99"])
def test_null_or_malformed_reply_gives_no_move(scripted, fast_settings, reply: str) -> None:
    adapter = OracleAdapter(scripted(bestmove=reply), fast_settings)

    async def run():
        async with adapter:
            return await adapter.best_move(AFTER_E4)

    assert asyncio.run(run()) is None


def test_unavailable_engine_yields_none(scripted, fast_settings) -> None:
    adapter = OracleAdapter(scripted(fail_start=True), fast_settings)

    async def run():
        with pytest.raises(OracleUnavailable):
            await adapter.start()
        return await adapter.best_move(AFTER_E4)

    assert asyncio.run(run()) is None


def test_silent_engine_fails_handshake(scripted, fast_settings) -> None:
    transport = scripted(silent=True)
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        with pytest.raises(OracleUnavailable):
            await adapter.start()

    asyncio.run(run())
    assert transport.sent == ["uci"]
    assert not transport.running


def test_timeout_stops_search_and_keeps_engine(scripted, fast_settings) -> None:
    transport = scripted(hang=True)
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        async with adapter:
            with pytest.raises(OracleTimeout):
                await adapter.search(encode_fen(AFTER_E4), movetime_ms=10)
            transport.hang = False
            return await adapter.best_move(AFTER_E4)

    assert asyncio.run(run()) == decode_move_token("e7e5")
    assert "stop" in transport.sent
    assert transport.starts == 1


def test_unresponsive_engine_is_restarted(scripted, fast_settings) -> None:
    transport = scripted(hang=True, ignore_stop=True)
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        async with adapter:
            first = await adapter.best_move(AFTER_E4)
            assert not transport.running
            transport.hang = False
            second = await adapter.best_move(AFTER_E4)
            return first, second

    first, second = asyncio.run(run())
    assert first is None
    assert second == decode_move_token("e7e5")
    assert transport.starts == 2
    assert transport.commands("uci") == ["uci", "uci"]


def test_cancelled_request_stops_engine(scripted, fast_settings) -> None:
    transport = scripted(hang=True)
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        async with adapter:
            task = asyncio.ensure_future(adapter.best_move(AFTER_E4))
            await transport.go_received.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert transport.sent[-1] == "stop"
            transport.hang = False
            return await adapter.best_move(AFTER_E4)

    assert asyncio.run(run()) == decode_move_token("e7e5")
    assert transport.starts == 1


def test_cancel_during_go_write_still_stops_engine(scripted, fast_settings) -> None:
    class StalledWrite(scripted):
        """Delivers a hanging ``go`` but never completes the write."""

        async def send(self, line: str) -> None:
            await super().send(line)
            if line.startswith("go") and self.hang:
                await asyncio.Event().wait()

    transport = StalledWrite(hang=True)
    adapter = OracleAdapter(transport, fast_settings)

    async def run():
        async with adapter:
            task = asyncio.ensure_future(adapter.best_move(AFTER_E4))
            await transport.go_received.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert transport.sent[-1] == "stop"
            transport.hang = False
            return await adapter.best_move(AFTER_E4)

    assert asyncio.run(run()) == decode_move_token("e7e5")
    assert transport.starts == 1


def test_subprocess_transport_rejects_missing_binary() -> None:
    transport = SubprocessTransport("runechess-no-such-engine-binary")

    async def run():
        await transport.start()

    with pytest.raises(OracleUnavailable):
        asyncio.run(run())


def test_subprocess_transport_rejects_empty_command() -> None:
    with pytest.raises(ValueError):
        SubprocessTransport("   ")


def test_subprocess_engine_end_to_end(fast_settings) -> None:
    settings = fast_settings.model_copy(update={"handshake_timeout_s": 10.0})
    transport = SubprocessTransport([sys.executable, FAKE_ENGINE])
    adapter = OracleAdapter(transport, settings)

    async def run():
        async with adapter:
            return await adapter.best_move(AFTER_E4)

    assert asyncio.run(run()) == decode_move_token("e7e5")
    assert adapter.engine_name == "FakeFish 1.0"
    assert not transport.running
