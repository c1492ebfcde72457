"""Evaluation thresholds, win-probability parameters and engine defaults."""

import chess

__all__ = [
    "BALANCED",
    "SLIGHT_ADVANTAGE",
    "ADVANTAGE",
    "WINNING",
    "DECISIVE",
    "MATE_THRESHOLD",
    "SIGMOID_FACTOR",
    "DRAW_SCALE",
    "MAX_DRAW_PROB",
    "CENTIPAWN_VALUES",
    "PAWN_UNIT_VALUES",
    "DEFAULT_DEPTH",
    "DEFAULT_MULTIPV",
    "ANALYSIS_TIMEOUT",
    "MAX_RETRIES",
    "ENGINE_THREADS",
]

# Evaluation thresholds in centipawns (absolute value)
BALANCED = 25
SLIGHT_ADVANTAGE = 50
ADVANTAGE = 100
WINNING = 300
DECISIVE = 1000
MATE_THRESHOLD = 2000   # beyond this the position is treated as won outright

# Win probability: W = 50 + 50 * (2 / (1 + exp(-k * cp)) - 1)
SIGMOID_FACTOR = 0.004
DRAW_SCALE = 350        # width of the draw bell curve, centipawns
MAX_DRAW_PROB = 30      # percent, at cp == 0

CENTIPAWN_VALUES: dict[chess.PieceType, int] = {
    chess.PAWN: 100,
    chess.KNIGHT: 320,
    chess.BISHOP: 330,
    chess.ROOK: 500,
    chess.QUEEN: 900,
    chess.KING: 0,
}

PAWN_UNIT_VALUES: dict[chess.PieceType, int] = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
    chess.KING: 0,
}

DEFAULT_DEPTH = 15
DEFAULT_MULTIPV = 3
ANALYSIS_TIMEOUT = 10.0  # seconds, per evaluation
MAX_RETRIES = 2
ENGINE_THREADS = 4
