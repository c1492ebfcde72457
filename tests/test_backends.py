"""Tests for evaluation backends and the fallback chain."""

from unittest.mock import AsyncMock

import chess
import httpx
import pytest

from conftest import DownBackend, ScriptedBackend
from randomchess.backends import (
    EvaluationChain,
    HttpBackend,
    LocalEngineBackend,
    MaterialEstimateBackend,
    build_chain,
    result_from_payload,
    result_to_payload,
)
from randomchess.config import Settings
from randomchess.engine import (
    EngineTerminatedError,
    EngineTimeoutError,
    EngineUnavailableError,
)
from randomchess.uci import AnalysisResult, PvLine

START = chess.STARTING_FEN
SERVER = "http://analysis.test"


def _server_body(**overrides) -> dict:
    body = {
        "score": 31,
        "mate": None,
        "bestMove": "e2e4",
        "lines": [{"multipv": 1, "moves": ["e2e4", "e7e5"], "score": 31, "mate": None, "depth": 18}],
        "depth": 18,
        "fen": START,
    }
    body.update(overrides)
    return body


def _patch_post(monkeypatch, *, status=200, body=None, exc=None):
    calls = []

    async def mock_post(self, url, **kwargs):
        calls.append((url, kwargs.get("json")))
        if exc is not None:
            raise exc
        return httpx.Response(status, json=body, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
    return calls


# ---------------------------------------------------------------------------
# Payload conversion
# ---------------------------------------------------------------------------

def test_payload_uses_wire_names():
    result = AnalysisResult(
        score_cp=-12, best_move="d7d5", depth=14,
        lines=[PvLine(multipv=1, moves=["d7d5"], score_cp=-12, score_mate=None, depth=14)],
    )
    payload = result_to_payload(result, START)
    assert payload == {
        "score": -12,
        "mate": None,
        "bestMove": "d7d5",
        "lines": [{"multipv": 1, "moves": ["d7d5"], "score": -12, "mate": None, "depth": 14}],
        "depth": 14,
        "fen": START,
    }
    assert result_from_payload(payload) == result


def test_degraded_payload_is_flagged():
    payload = result_to_payload(AnalysisResult(score_cp=0, degraded=True), START)
    assert payload["degraded"] is True


# ---------------------------------------------------------------------------
# HttpBackend
# ---------------------------------------------------------------------------

class TestHttpBackend:
    async def test_success(self, monkeypatch):
        calls = _patch_post(monkeypatch, body=_server_body())
        result = await HttpBackend(SERVER + "/", difficulty="hard").evaluate(START, 18, 1)
        assert result.score_cp == 31
        assert result.best_move == "e2e4"
        assert result.pv == ["e2e4", "e7e5"]
        url, payload = calls[0]
        assert url == SERVER + "/api/engine/evaluate"
        assert payload == {"fen": START, "depth": 18, "multiPV": 1, "difficulty": "hard"}

    async def test_server_error_is_unavailable(self, monkeypatch):
        _patch_post(monkeypatch, status=500, body={"detail": "boom"})
        with pytest.raises(EngineUnavailableError):
            await HttpBackend(SERVER).evaluate(START, 10)

    async def test_connection_error_is_unavailable(self, monkeypatch):
        _patch_post(monkeypatch, exc=httpx.ConnectError("refused"))
        with pytest.raises(EngineUnavailableError, match="request failed"):
            await HttpBackend(SERVER).evaluate(START, 10)

    async def test_degraded_server_answer_is_unavailable(self, monkeypatch):
        _patch_post(monkeypatch, body=_server_body(degraded=True, error="engine down"))
        with pytest.raises(EngineUnavailableError, match="engine down"):
            await HttpBackend(SERVER).evaluate(START, 10)

    async def test_malformed_body_is_unavailable(self, monkeypatch):
        body = _server_body()
        del body["depth"]
        _patch_post(monkeypatch, body=body)
        with pytest.raises(EngineUnavailableError, match="malformed"):
            await HttpBackend(SERVER).evaluate(START, 10)

    async def test_non_object_body_is_unavailable(self, monkeypatch):
        _patch_post(monkeypatch, body=[1, 2, 3])
        with pytest.raises(EngineUnavailableError, match="malformed"):
            await HttpBackend(SERVER).evaluate(START, 10)


# ---------------------------------------------------------------------------
# LocalEngineBackend
# ---------------------------------------------------------------------------

class TestLocalEngineBackend:
    async def test_passes_through(self):
        client = AsyncMock()
        client.evaluate_position.return_value = AnalysisResult(score_cp=5, depth=12)
        result = await LocalEngineBackend(client).evaluate(START, 12, 2)
        assert result.score_cp == 5
        client.evaluate_position.assert_awaited_once_with(START, 12, 2)

    async def test_timeout_retried_once(self):
        client = AsyncMock()
        client.evaluate_position.side_effect = [
            EngineTimeoutError("slow"),
            AnalysisResult(score_cp=9, depth=12),
        ]
        result = await LocalEngineBackend(client).evaluate(START, 12)
        assert result.score_cp == 9
        assert client.evaluate_position.await_count == 2

    async def test_second_timeout_is_unavailable(self):
        client = AsyncMock()
        client.evaluate_position.side_effect = EngineTimeoutError("slow")
        with pytest.raises(EngineUnavailableError, match="timed out twice"):
            await LocalEngineBackend(client).evaluate(START, 12)

    async def test_no_score_searches_deeper(self):
        client = AsyncMock()
        client.evaluate_position.side_effect = [
            AnalysisResult(best_move="e2e4", depth=3),
            AnalysisResult(score_cp=14, best_move="e2e4", depth=5),
        ]
        result = await LocalEngineBackend(client).evaluate(START, 3)
        assert result.score_cp == 14
        assert client.evaluate_position.await_args_list[1].args == (START, 5, 1)

    async def test_terminated_is_unavailable(self):
        client = AsyncMock()
        client.evaluate_position.side_effect = EngineTerminatedError("crashed")
        with pytest.raises(EngineUnavailableError, match="terminated"):
            await LocalEngineBackend(client).evaluate(START, 12)

    async def test_invalid_fen_propagates(self):
        client = AsyncMock()
        client.evaluate_position.side_effect = ValueError("Invalid FEN: x")
        with pytest.raises(ValueError):
            await LocalEngineBackend(client).evaluate("x", 12)

    async def test_close_closes_client(self):
        client = AsyncMock()
        await LocalEngineBackend(client).close()
        client.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# MaterialEstimateBackend
# ---------------------------------------------------------------------------

async def test_estimate_balanced_start():
    result = await MaterialEstimateBackend().evaluate(START, 15)
    assert result.score_cp == 0
    assert result.degraded
    assert result.best_move is None


async def test_estimate_counts_missing_queen():
    fen = "rnb1kbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
    result = await MaterialEstimateBackend().evaluate(fen, 15)
    assert result.score_cp == 900


# ---------------------------------------------------------------------------
# EvaluationChain
# ---------------------------------------------------------------------------

class TestEvaluationChain:
    async def test_first_backend_answers(self):
        first = ScriptedBackend(AnalysisResult(score_cp=3))
        second = ScriptedBackend(AnalysisResult(score_cp=99))
        result = await EvaluationChain([first, second]).evaluate(START, 10)
        assert result.score_cp == 3
        assert result.source == "scripted"
        assert second.calls == []

    async def test_falls_back_in_order(self):
        fallback = ScriptedBackend(AnalysisResult(score_cp=-8))
        result = await EvaluationChain([DownBackend(), fallback]).evaluate(START, 10)
        assert result.score_cp == -8
        assert fallback.calls == [(START, 10, 1)]

    async def test_estimate_is_last_resort(self):
        chain = EvaluationChain([DownBackend(), DownBackend(), MaterialEstimateBackend()])
        result = await chain.evaluate(START, 10)
        assert result.source == "estimate"
        assert result.degraded

    async def test_all_down_raises(self):
        with pytest.raises(EngineUnavailableError, match="All evaluation backends failed"):
            await EvaluationChain([DownBackend()]).evaluate(START, 10)

    async def test_value_error_is_not_swallowed(self):
        chain = EvaluationChain([ScriptedBackend(ValueError("Illegal position")), MaterialEstimateBackend()])
        with pytest.raises(ValueError):
            await chain.evaluate(START, 10)

    async def test_context_manager_closes_backends(self):
        backend = ScriptedBackend()
        async with EvaluationChain([backend]):
            pass
        assert backend.closed

    def test_needs_a_backend(self):
        with pytest.raises(ValueError):
            EvaluationChain([])


# ---------------------------------------------------------------------------
# build_chain
# ---------------------------------------------------------------------------

def _names(chain: EvaluationChain) -> list[str]:
    return [b.name for b in chain.backends]


def test_build_chain_without_server():
    assert _names(build_chain(Settings(_env_file=None))) == ["local", "estimate"]


def test_build_chain_with_server():
    settings = Settings(_env_file=None, analysis_server_url=SERVER)
    assert _names(build_chain(settings)) == ["server", "local", "estimate"]
    assert _names(build_chain(settings, use_server=False)) == ["local", "estimate"]


def test_build_chain_applies_difficulty():
    chain = build_chain(Settings(_env_file=None), difficulty="easy")
    local = chain.backends[0]
    assert local.client.profile.name == "easy"
