"""Cheap legality and fairness predicates applied before engine evaluation."""

import enum
from dataclasses import dataclass

import chess

__all__ = [
    "FairnessChecks",
    "LegalMoveCount",
    "LegalityRejection",
    "Rejection",
    "bishops_share_square_color",
    "find_violation",
    "is_king_in_check",
    "kings_in_check",
    "legal_move_counts",
    "square_color",
]


class Rejection(enum.Enum):
    PLACEMENT_FAILED = "placement_failed"
    KING_IN_CHECK = "king_in_check"
    BISHOPS_SAME_COLOR = "bishops_same_color"
    STALEMATE = "stalemate"
    INVALID_FEN = "invalid_fen"
    FORCED_MATE = "forced_mate"
    EVALUATION_OUT_OF_RANGE = "evaluation_out_of_range"


class LegalityRejection(Exception):
    """A candidate failed a predicate; generate a new one."""

    def __init__(self, reason: Rejection):
        super().__init__(reason.value)
        self.reason = reason


@dataclass(frozen=True)
class FairnessChecks:
    kings_not_in_check: bool = True
    bishops_on_different_colors: bool = True
    no_stalemate: bool = True
    evaluation_within_range: bool = True


@dataclass
class LegalMoveCount:
    white: int
    black: int
    current: int    # for the side actually to move


def _with_turn(board: chess.Board, color: chess.Color) -> chess.Board:
    copy = board.copy(stack=False)
    copy.turn = color
    copy.ep_square = None
    return copy


def is_king_in_check(board: chess.Board, color: chess.Color) -> bool:
    """Whether ``color``'s king is attacked, whatever the side to move."""
    return _with_turn(board, color).is_check()


def kings_in_check(board: chess.Board) -> bool:
    return is_king_in_check(board, chess.WHITE) or is_king_in_check(board, chess.BLACK)


def square_color(square: chess.Square) -> int:
    """Square parity: (file + rank) % 2."""
    return (chess.square_file(square) + chess.square_rank(square)) % 2


def bishops_share_square_color(board: chess.Board) -> bool:
    """True if any side has two bishops on same-colored squares."""
    for color in chess.COLORS:
        parities = [square_color(sq) for sq in board.pieces(chess.BISHOP, color)]
        if len(parities) >= 2 and len(set(parities)) < len(parities):
            return True
    return False


def legal_move_counts(board: chess.Board) -> LegalMoveCount:
    white = _with_turn(board, chess.WHITE).legal_moves.count()
    black = _with_turn(board, chess.BLACK).legal_moves.count()
    return LegalMoveCount(
        white=white,
        black=black,
        current=white if board.turn == chess.WHITE else black,
    )


def find_violation(board: chess.Board, checks: FairnessChecks) -> Rejection | None:
    """First enabled predicate the board fails, or None."""
    if checks.kings_not_in_check and kings_in_check(board):
        return Rejection.KING_IN_CHECK
    if checks.bishops_on_different_colors and bishops_share_square_color(board):
        return Rejection.BISHOPS_SAME_COLOR
    if checks.no_stalemate:
        counts = legal_move_counts(board)
        if counts.white == 0 or counts.black == 0:
            return Rejection.STALEMATE
    return None
