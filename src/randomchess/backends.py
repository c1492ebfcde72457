"""Evaluation backends and the ordered fallback chain.

Every backend has the same contract: ``evaluate(fen, depth, multipv)``
returns an AnalysisResult or raises EngineUnavailableError. The chain tries
them in order; the static material estimate at the end never fails.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import chess
import httpx

from randomchess.config import Settings
from randomchess.engine import (
    EngineTerminatedError,
    EngineTimeoutError,
    EngineUnavailableError,
    UciEngineClient,
)
from randomchess.material import estimate_centipawns
from randomchess.strength import get_profile
from randomchess.uci import AnalysisResult, PvLine

logger = logging.getLogger(__name__)


def result_to_payload(result: AnalysisResult, fen: str) -> dict:
    """Wire shape of the HTTP analysis endpoint."""
    payload = {
        "score": result.score_cp,
        "mate": result.score_mate,
        "bestMove": result.best_move,
        "lines": [
            {
                "multipv": line.multipv,
                "moves": line.moves,
                "score": line.score_cp,
                "mate": line.score_mate,
                "depth": line.depth,
            }
            for line in result.lines
        ],
        "depth": result.depth,
        "fen": fen,
    }
    if result.degraded:
        payload["degraded"] = True
    return payload


def result_from_payload(data: dict) -> AnalysisResult:
    lines = [
        PvLine(
            multipv=int(line.get("multipv", i + 1)),
            moves=list(line["moves"]),
            score_cp=line.get("score"),
            score_mate=line.get("mate"),
            depth=int(line.get("depth", data["depth"])),
        )
        for i, line in enumerate(data.get("lines") or [])
    ]
    return AnalysisResult(
        score_cp=data.get("score"),
        score_mate=data.get("mate"),
        best_move=data.get("bestMove"),
        lines=lines,
        depth=int(data["depth"]),
    )


class EvaluationBackend(ABC):
    name = "backend"

    @abstractmethod
    async def evaluate(self, fen: str, depth: int, multipv: int = 1) -> AnalysisResult: ...

    async def close(self) -> None:
        return None


class HttpBackend(EvaluationBackend):
    """Remote analysis service speaking the /api/engine/evaluate contract."""

    name = "server"

    def __init__(self, base_url: str, difficulty: str = "max", timeout: float = 15.0):
        self._url = base_url.rstrip("/")
        self._difficulty = difficulty
        self._timeout = timeout

    async def evaluate(self, fen: str, depth: int, multipv: int = 1) -> AnalysisResult:
        payload = {
            "fen": fen,
            "depth": depth,
            "multiPV": multipv,
            "difficulty": self._difficulty,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(f"{self._url}/api/engine/evaluate", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EngineUnavailableError(f"Analysis server request failed: {e}") from e

        if not isinstance(data, dict):
            raise EngineUnavailableError("Analysis server returned a malformed body")
        if data.get("degraded") or "error" in data:
            raise EngineUnavailableError(
                f"Analysis server could not run its engine: {data.get('error', 'degraded result')}"
            )
        try:
            return result_from_payload(data)
        except (KeyError, TypeError, ValueError) as e:
            raise EngineUnavailableError(f"Analysis server returned a malformed body: {e}") from e


class LocalEngineBackend(EvaluationBackend):
    """An exclusively owned local engine process."""

    name = "local"

    def __init__(self, client: UciEngineClient):
        self._client = client

    @property
    def client(self) -> UciEngineClient:
        return self._client

    async def _evaluate_once(self, fen: str, depth: int, multipv: int) -> AnalysisResult:
        """One evaluation; a timeout resets the process and retries once."""
        try:
            return await self._client.evaluate_position(fen, depth, multipv)
        except EngineTimeoutError:
            logger.warning("Local engine timed out, retrying once on a fresh process")
        try:
            return await self._client.evaluate_position(fen, depth, multipv)
        except EngineTimeoutError as e:
            raise EngineUnavailableError(f"Local engine timed out twice: {e}") from e

    async def evaluate(self, fen: str, depth: int, multipv: int = 1) -> AnalysisResult:
        try:
            result = await self._evaluate_once(fen, depth, multipv)
            if result.score_cp is None and result.score_mate is None:
                logger.info("Engine returned no score at depth %d, searching deeper", depth)
                result = await self._evaluate_once(fen, depth + 2, multipv)
        except EngineTerminatedError as e:
            raise EngineUnavailableError(f"Local engine terminated: {e}") from e
        return result

    async def close(self) -> None:
        await self._client.close()


class MaterialEstimateBackend(EvaluationBackend):
    """Last resort: sum of piece values, flagged as degraded."""

    name = "estimate"

    async def evaluate(self, fen: str, depth: int, multipv: int = 1) -> AnalysisResult:
        board = chess.Board(fen)
        return AnalysisResult(
            score_cp=estimate_centipawns(board),
            depth=0,
            source=self.name,
            degraded=True,
        )


class EvaluationChain:
    """Backends tried in order until one answers."""

    def __init__(self, backends: list[EvaluationBackend]):
        if not backends:
            raise ValueError("EvaluationChain needs at least one backend")
        self._backends = list(backends)

    @property
    def backends(self) -> list[EvaluationBackend]:
        return list(self._backends)

    async def evaluate(self, fen: str, depth: int, multipv: int = 1) -> AnalysisResult:
        failures = []
        for backend in self._backends:
            try:
                result = await backend.evaluate(fen, depth, multipv)
            except EngineUnavailableError as e:
                logger.warning("%s backend unavailable, falling back: %s", backend.name, e)
                failures.append(f"{backend.name}: {e}")
                continue
            result.source = backend.name
            if result.degraded:
                logger.warning("Evaluation degraded to %s", backend.name)
            return result
        raise EngineUnavailableError("All evaluation backends failed (" + "; ".join(failures) + ")")

    async def close(self) -> None:
        for backend in self._backends:
            try:
                await backend.close()
            except Exception as e:
                logger.warning("Closing %s backend failed: %s", backend.name, e)

    async def __aenter__(self) -> EvaluationChain:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


def local_engine_client(settings: Settings, difficulty: str | None = None) -> UciEngineClient:
    return UciEngineClient.for_binary(
        settings.stockfish_path,
        profile=get_profile(difficulty or settings.engine_difficulty),
        threads=settings.engine_threads,
        hash_mb=settings.stockfish_hash_mb,
        timeout=settings.engine_timeout,
    )


def build_chain(
    settings: Settings,
    *,
    use_server: bool = True,
    difficulty: str | None = None,
) -> EvaluationChain:
    """Server (when configured) → local engine → material estimate."""
    difficulty = difficulty or settings.engine_difficulty
    backends: list[EvaluationBackend] = []
    if use_server and settings.analysis_server_url:
        backends.append(HttpBackend(
            settings.analysis_server_url,
            difficulty=difficulty,
            timeout=settings.http_timeout,
        ))
    backends.append(LocalEngineBackend(local_engine_client(settings, difficulty)))
    backends.append(MaterialEstimateBackend())
    return EvaluationChain(backends)
