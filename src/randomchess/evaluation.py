"""Evaluation model: centipawn/mate scores to win chances and verdicts.

Everything here is pure and deterministic. Evaluations are always from
White's point of view (positive favors White).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from randomchess.constants import (
    ADVANTAGE,
    BALANCED,
    DECISIVE,
    DRAW_SCALE,
    MATE_THRESHOLD,
    MAX_DRAW_PROB,
    SIGMOID_FACTOR,
    SLIGHT_ADVANTAGE,
    WINNING,
)

if TYPE_CHECKING:
    from randomchess.uci import AnalysisResult


@dataclass(frozen=True)
class WinChance:
    white: int
    black: int
    draw: int


@dataclass(frozen=True)
class Description:
    """Classification key plus parameters, rendered by the caller."""
    key: str
    params: dict = field(default_factory=dict)


@dataclass
class FairnessVerdict:
    is_legal: bool
    is_fair: bool
    evaluation: int             # centipawns, White POV
    forced_mate: int | None
    win_chance: WinChance
    description: Description
    degraded: bool = False      # evaluation came from the static estimate


def _side(value: int) -> str:
    return "white" if value > 0 else "black"


def win_chances(evaluation: float, forced_mate: int | None = None) -> WinChance:
    """Win/draw/loss percentages for an evaluation.

    A forced mate dominates the numeric evaluation. The result always sums
    to 100.
    """
    if forced_mate is not None:
        if forced_mate > 0:
            return WinChance(white=100, black=0, draw=0)
        return WinChance(white=0, black=100, draw=0)

    if abs(evaluation) > MATE_THRESHOLD:
        if evaluation > 0:
            return WinChance(white=98, black=0, draw=2)
        return WinChance(white=0, black=98, draw=2)

    winning = 50 + 50 * (2 / (1 + math.exp(-SIGMOID_FACTOR * evaluation)) - 1)
    draw = min(MAX_DRAW_PROB, MAX_DRAW_PROB * math.exp(-((evaluation / DRAW_SCALE) ** 2)))

    white = max(0, round(winning - draw / 2))
    black = max(0, round(100 - winning - draw / 2))
    return WinChance(white=white, black=black, draw=100 - white - black)


def describe_position(
    is_legal: bool,
    is_fair: bool,
    evaluation: int,
    forced_mate: int | None = None,
) -> Description:
    if not is_legal:
        return Description("illegal")

    if forced_mate is not None:
        return Description("mate_in", {"moves": abs(forced_mate), "side": _side(forced_mate)})

    magnitude = abs(evaluation)
    if magnitude < BALANCED:
        return Description("balanced")
    if magnitude < SLIGHT_ADVANTAGE:
        key = "slight_advantage"
    elif magnitude < ADVANTAGE:
        key = "advantage"
    elif magnitude < WINNING:
        key = "winning"
    elif magnitude < DECISIVE:
        key = "decisive"
    else:
        key = "overwhelming"
    return Description(key, {"side": _side(evaluation)})


def evaluation_to_string(evaluation: int, forced_mate: int | None = None) -> str:
    """Format for display: ``+1.50``, ``-0.75``, ``0.00``, ``#3``, ``#-3``."""
    if forced_mate is not None:
        return f"#{forced_mate}" if forced_mate > 0 else f"#-{abs(forced_mate)}"
    if evaluation == 0:
        return "0.00"
    sign = "+" if evaluation > 0 else "-"
    return f"{sign}{abs(evaluation) / 100:.2f}"


def is_fair(evaluation: int, forced_mate: int | None, max_evaluation: int) -> bool:
    return forced_mate is None and abs(evaluation) <= max_evaluation


def build_verdict(analysis: AnalysisResult, max_evaluation: int) -> FairnessVerdict:
    """Verdict for a legal position from an engine (or estimate) result."""
    evaluation = analysis.score_cp if analysis.score_cp is not None else 0
    forced_mate = analysis.score_mate
    fair = is_fair(evaluation, forced_mate, max_evaluation)
    return FairnessVerdict(
        is_legal=True,
        is_fair=fair,
        evaluation=evaluation,
        forced_mate=forced_mate,
        win_chance=win_chances(evaluation, forced_mate),
        description=describe_position(True, fair, evaluation, forced_mate),
        degraded=analysis.degraded,
    )
