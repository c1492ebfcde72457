"""Full analysis of an arbitrary position: verdict plus board statistics."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import chess

from randomchess.backends import EvaluationChain
from randomchess.constants import SLIGHT_ADVANTAGE
from randomchess.evaluation import Description, FairnessVerdict, WinChance, build_verdict
from randomchess.generation.fairness import LegalMoveCount, legal_move_counts
from randomchess.material import MaterialCount, count_material

logger = logging.getLogger(__name__)


@dataclass
class PositionAnalysis:
    verdict: FairnessVerdict
    material: MaterialCount
    legal_moves: LegalMoveCount
    in_check: bool
    move_number: int
    halfmove_clock: int
    repetition: int | None = None
    best_move: str | None = None
    source: str = "engine"


def standard_analysis() -> PositionAnalysis:
    """The standard starting position, known fair without asking an engine."""
    board = chess.Board()
    return PositionAnalysis(
        verdict=FairnessVerdict(
            is_legal=True,
            is_fair=True,
            evaluation=0,
            forced_mate=None,
            win_chance=WinChance(white=50, black=50, draw=0),
            description=Description("standard"),
        ),
        material=count_material(board),
        legal_moves=legal_move_counts(board),
        in_check=False,
        move_number=1,
        halfmove_clock=0,
        source="static",
    )


async def analyze_position(
    board: chess.Board,
    evaluator: EvaluationChain,
    depth: int = 12,
    max_evaluation: int = SLIGHT_ADVANTAGE,
) -> PositionAnalysis:
    """Evaluate ``board`` and collect the statistics shown next to it.

    ``repetition`` reads the board's move stack, so it is only meaningful for
    a board that was played into; a board set up from a FEN reports None.

    Raises ValueError for positions the engine cannot be asked about.
    """
    if not board.is_valid():
        raise ValueError(f"Illegal position: {board.fen()}")

    analysis = await evaluator.evaluate(board.fen(), depth)
    logger.debug("Analysed %s at depth %d via %s", board.fen(), analysis.depth, analysis.source)

    return PositionAnalysis(
        verdict=build_verdict(analysis, max_evaluation),
        material=count_material(board),
        legal_moves=legal_move_counts(board),
        in_check=board.is_check(),
        move_number=board.fullmove_number,
        halfmove_clock=board.halfmove_clock,
        repetition=3 if board.can_claim_threefold_repetition() else None,
        best_move=analysis.best_move,
        source=analysis.source,
    )
