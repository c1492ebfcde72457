"""Generate → filter → evaluate loop for fair random starting positions.

Each attempt returns a tagged outcome instead of relying on loop restarts:
ACCEPTED carries the finished position, RETRY carries the rejection reason,
ABORT is only produced when a diagnostic attempt ceiling is configured.

The side to move in an accepted position is the side the engine considers
worse off (White when the evaluation is <= 0). This is a deliberate
fairness compensation, not a rule of chess.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import random
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field

import chess

from randomchess.backends import EvaluationChain, build_chain
from randomchess.config import Settings
from randomchess.evaluation import FairnessVerdict, build_verdict
from randomchess.generation.constructor import PlacementFailure, PositionConstructor
from randomchess.generation.fairness import FairnessChecks, LegalityRejection, Rejection
from randomchess.uci import AnalysisResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    max_evaluation: int = 50            # centipawns, fairness bound
    engine_depth: int = 15
    fairness_checks: FairnessChecks = field(default_factory=FairnessChecks)
    max_attempts: int | None = None     # diagnostic ceiling; None loops until accepted

    def merged(self, fairness_checks: dict | None = None, **overrides) -> GenerationOptions:
        """Copy with some fields replaced; fairness checks merge key by key."""
        checks = self.fairness_checks
        if fairness_checks:
            checks = dataclasses.replace(checks, **fairness_checks)
        return dataclasses.replace(self, fairness_checks=checks, **overrides)

    @classmethod
    def from_settings(cls, settings: Settings) -> GenerationOptions:
        return cls(
            max_evaluation=settings.max_evaluation,
            engine_depth=settings.default_depth,
            max_attempts=settings.max_attempts,
        )


class Outcome(enum.Enum):
    ACCEPTED = "accepted"
    RETRY = "retry"
    ABORT = "abort"


@dataclass
class GeneratedPosition:
    fen: str
    verdict: FairnessVerdict
    analysis: AnalysisResult
    attempts: int = 1


@dataclass
class AttemptResult:
    outcome: Outcome
    reason: Rejection | None = None
    position: GeneratedPosition | None = None


class GenerationAbortedError(RuntimeError):
    """The attempt ceiling was reached without an accepted position."""

    def __init__(self, attempts: int, rejections: Counter):
        summary = ", ".join(f"{r.value}={n}" for r, n in rejections.most_common())
        super().__init__(f"No fair position after {attempts} attempts ({summary})")
        self.attempts = attempts
        self.rejections = rejections


def normalized_fen(board: chess.Board) -> str | None:
    """Placeholder White-to-move FEN, re-parsed to prove it is well formed."""
    placeholder = board.copy(stack=False)
    placeholder.turn = chess.WHITE
    placeholder.castling_rights = chess.BB_EMPTY
    placeholder.ep_square = None
    try:
        reloaded = chess.Board(placeholder.fen())
    except ValueError:
        return None
    if not reloaded.is_valid():
        return None
    return reloaded.fen()


def assign_side_to_move(fen: str, evaluation: int) -> str:
    """The disadvantaged side moves first."""
    board = chess.Board(fen)
    board.turn = chess.WHITE if evaluation <= 0 else chess.BLACK
    return board.fen()


class PositionGenerator:
    """Runs attempts against one exclusively owned evaluation chain."""

    def __init__(
        self,
        evaluator: EvaluationChain,
        options: GenerationOptions | None = None,
        rng: random.Random | None = None,
    ):
        self._evaluator = evaluator
        self._options = options or GenerationOptions()
        self._constructor = PositionConstructor(rng, self._options.fairness_checks)
        self.attempts = 0
        self.rejections: Counter[Rejection] = Counter()

    @property
    def options(self) -> GenerationOptions:
        return self._options

    def _retry(self, reason: Rejection) -> AttemptResult:
        self.rejections[reason] += 1
        logger.debug("Attempt %d rejected: %s", self.attempts, reason.value)
        return AttemptResult(Outcome.RETRY, reason=reason)

    async def attempt(self, on_attempt: Callable[[int], None] | None = None) -> AttemptResult:
        """One full candidate: build, filter, validate, evaluate, judge."""
        opts = self._options
        if opts.max_attempts is not None and self.attempts >= opts.max_attempts:
            return AttemptResult(Outcome.ABORT)
        self.attempts += 1
        if on_attempt is not None:
            on_attempt(self.attempts)

        try:
            board = self._constructor.build()
        except PlacementFailure:
            return self._retry(Rejection.PLACEMENT_FAILED)
        except LegalityRejection as e:
            return self._retry(e.reason)

        fen = normalized_fen(board)
        if fen is None:
            return self._retry(Rejection.INVALID_FEN)

        try:
            analysis = await self._evaluator.evaluate(fen, opts.engine_depth)
        except ValueError:
            return self._retry(Rejection.INVALID_FEN)
        if analysis.score_mate is not None:
            return self._retry(Rejection.FORCED_MATE)

        evaluation = analysis.score_cp or 0
        checks = opts.fairness_checks
        if checks.evaluation_within_range and abs(evaluation) > opts.max_evaluation:
            return self._retry(Rejection.EVALUATION_OUT_OF_RANGE)

        fen = assign_side_to_move(fen, evaluation)
        # Handing the move over can leave the side not to move in check
        if not chess.Board(fen).is_valid():
            return self._retry(Rejection.INVALID_FEN)

        verdict = build_verdict(analysis, opts.max_evaluation)
        position = GeneratedPosition(
            fen=fen,
            verdict=verdict,
            analysis=analysis,
            attempts=self.attempts,
        )
        return AttemptResult(Outcome.ACCEPTED, position=position)

    async def generate(self, on_attempt: Callable[[int], None] | None = None) -> GeneratedPosition:
        """Loop attempts until one is accepted (or the ceiling aborts)."""
        while True:
            result = await self.attempt(on_attempt)
            if result.outcome is Outcome.ACCEPTED:
                position = result.position
                logger.info(
                    "Generated position after %d attempts (eval %+d, %s): %s",
                    position.attempts, position.verdict.evaluation,
                    position.analysis.source, position.fen,
                )
                return position
            if result.outcome is Outcome.ABORT:
                raise GenerationAbortedError(self.attempts, self.rejections)


async def generate_position(
    options: GenerationOptions | None = None,
    settings: Settings | None = None,
    on_attempt: Callable[[int], None] | None = None,
    *,
    evaluator: EvaluationChain | None = None,
    rng: random.Random | None = None,
) -> GeneratedPosition:
    """Generate one position on a fresh evaluation session.

    The session (and its engine process) is torn down on return, error or
    cancellation. Passing ``evaluator`` hands ownership of it to this call.
    """
    settings = settings or Settings()
    options = options or GenerationOptions.from_settings(settings)
    evaluator = evaluator or build_chain(settings)
    async with evaluator:
        generator = PositionGenerator(evaluator, options, rng)
        return await generator.generate(on_attempt)
