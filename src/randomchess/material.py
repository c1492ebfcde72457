"""Material counting and the static fallback estimate."""

from dataclasses import dataclass

import chess

from randomchess.constants import CENTIPAWN_VALUES, PAWN_UNIT_VALUES

__all__ = [
    "MaterialCount",
    "count_material",
    "estimate_centipawns",
]


@dataclass
class MaterialCount:
    white: int
    black: int
    advantage: int  # white - black


def _side_total(board: chess.Board, color: chess.Color, values: dict[chess.PieceType, int]) -> int:
    return sum(
        len(board.pieces(piece_type, color)) * value
        for piece_type, value in values.items()
    )


def count_material(board: chess.Board) -> MaterialCount:
    """Material in pawn units (1/3/3/5/9)."""
    white = _side_total(board, chess.WHITE, PAWN_UNIT_VALUES)
    black = _side_total(board, chess.BLACK, PAWN_UNIT_VALUES)
    return MaterialCount(white=white, black=black, advantage=white - black)


def estimate_centipawns(board: chess.Board) -> int:
    """Sum of piece values from White's point of view. No positional terms."""
    return (
        _side_total(board, chess.WHITE, CENTIPAWN_VALUES)
        - _side_total(board, chess.BLACK, CENTIPAWN_VALUES)
    )
