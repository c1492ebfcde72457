import asyncio
import logging
from dataclasses import asdict

import chess
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from randomchess.analyzer import analyze_position, standard_analysis
from randomchess.backends import (
    MaterialEstimateBackend,
    build_chain,
    local_engine_client,
    result_to_payload,
)
from randomchess.bot import BotMoveError, choose_bot_move
from randomchess.config import Settings
from randomchess.engine import EngineError
from randomchess.generation import GenerationAbortedError, GenerationOptions, generate_position
from randomchess.strength import DEFAULT_PROFILE, get_profile

logger = logging.getLogger(__name__)

settings = Settings()

# Pause between failed engine attempts on the analysis endpoint
RETRY_PAUSE = 0.5


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Cross-origin isolation so browser WASM engines get SharedArrayBuffer."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["Cross-Origin-Embedder-Policy"] = "require-corp"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        return response


app = FastAPI(title="Random Chess")
app.add_middleware(SecurityHeadersMiddleware)


# --- Request models ---

class EvalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fen: str
    depth: int = Field(default=settings.default_depth, ge=1, le=40)
    multipv: int = Field(default=settings.default_multipv, ge=1, le=10, alias="multiPV")
    difficulty: str = DEFAULT_PROFILE


class FairnessChecksRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kings_not_in_check: bool | None = Field(default=None, alias="kingsNotInCheck")
    bishops_on_different_colors: bool | None = Field(default=None, alias="bishopsOnDifferentColors")
    no_stalemate: bool | None = Field(default=None, alias="noStalemate")
    evaluation_within_range: bool | None = Field(default=None, alias="evaluationWithinRange")


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_evaluation: int | None = Field(default=None, ge=50, le=300, alias="maxEvaluation")
    engine_depth: int | None = Field(default=None, ge=10, le=20, alias="engineDepth")
    fairness_checks: FairnessChecksRequest | None = Field(default=None, alias="fairnessChecks")
    max_attempts: int | None = Field(default=None, ge=1, alias="maxAttempts")

    def to_options(self, base: GenerationOptions) -> GenerationOptions:
        overrides = {
            name: value
            for name, value in (
                ("max_evaluation", self.max_evaluation),
                ("engine_depth", self.engine_depth),
                ("max_attempts", self.max_attempts),
            )
            if value is not None
        }
        checks = self.fairness_checks.model_dump(exclude_none=True) if self.fairness_checks else None
        return base.merged(fairness_checks=checks, **overrides)


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fen: str
    depth: int = Field(default=12, ge=1, le=40)
    max_evaluation: int = Field(default=settings.max_evaluation, ge=0, alias="maxEvaluation")


class BotMoveRequest(BaseModel):
    fen: str
    difficulty: str = DEFAULT_PROFILE


def _parse_board(fen: str) -> chess.Board:
    try:
        board = chess.Board(fen)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid FEN: {fen}") from e
    if not board.is_valid():
        raise HTTPException(status_code=400, detail=f"Illegal position: {fen}")
    return board


# --- Endpoints ---

@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.post("/api/engine/evaluate")
async def engine_evaluate(req: EvalRequest):
    """Analyse with a fresh local engine per attempt; estimate if all fail."""
    fen = _parse_board(req.fen).fen()
    attempts = settings.engine_max_retries + 1
    last_error: Exception | None = None

    for attempt in range(attempts):
        client = local_engine_client(settings, req.difficulty)
        try:
            result = await client.evaluate_position(fen, req.depth, req.multipv)
        except EngineError as e:
            logger.warning("Engine analysis failed (attempt %d/%d): %s", attempt + 1, attempts, e)
            last_error = e
            if attempt + 1 < attempts:
                await asyncio.sleep(RETRY_PAUSE)
            continue
        finally:
            await client.close()
        logger.info("Analysed %s at depth %d (attempt %d)", fen, result.depth, attempt + 1)
        return result_to_payload(result, fen)

    logger.error("All engine attempts failed, returning material estimate: %s", last_error)
    estimate = await MaterialEstimateBackend().evaluate(fen, req.depth)
    payload = result_to_payload(estimate, fen)
    payload["depth"] = req.depth
    payload["error"] = "Analysis failed after multiple attempts, providing estimated evaluation only"
    return payload


@app.post("/api/position/generate")
async def position_generate(req: GenerateRequest | None = None):
    base = GenerationOptions.from_settings(settings)
    options = req.to_options(base) if req else base
    # The local service never calls itself; remote fallback is for clients.
    evaluator = build_chain(settings, use_server=False)
    try:
        position = await generate_position(options, settings, evaluator=evaluator)
    except GenerationAbortedError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {
        "fen": position.fen,
        "fairness": asdict(position.verdict),
        "attempts": position.attempts,
        "source": position.analysis.source,
    }


@app.post("/api/analysis/position")
async def analysis_position(req: AnalysisRequest):
    board = _parse_board(req.fen)
    if board.fen() == chess.STARTING_FEN:
        report = standard_analysis()
    else:
        async with build_chain(settings, use_server=False) as evaluator:
            report = await analyze_position(board, evaluator, req.depth, req.max_evaluation)
    payload = asdict(report)
    # A FEN carries no move history
    del payload["repetition"]
    return payload


@app.post("/api/engine/bot-move")
async def bot_move(req: BotMoveRequest):
    board = _parse_board(req.fen)
    profile = get_profile(req.difficulty)
    async with build_chain(settings, use_server=False, difficulty=profile.name) as evaluator:
        try:
            move = await choose_bot_move(board, evaluator, profile.name)
        except BotMoveError as e:
            raise HTTPException(status_code=503, detail=str(e))
    if move is None:
        return {"uci": None, "san": None, "status": "game_over"}
    return {"uci": move.uci(), "san": board.san(move), "status": "playing"}
