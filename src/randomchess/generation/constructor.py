"""Randomized placement of a full set of men on an empty board.

Each side's men are confined to rank zones on their own half. Kings go down
first (never adjacent), then pawns, then the back pieces. Cheap fairness
predicates run as soon as a side's back pieces are on the board, so a bad
candidate is dropped before the other side is even built.
"""

import random
from collections.abc import Sequence

import chess

from randomchess.generation.fairness import FairnessChecks, LegalityRejection, find_violation

__all__ = [
    "BACK_PIECES",
    "MAX_PLACEMENT_DRAWS",
    "PlacementFailure",
    "PositionConstructor",
    "kings_adjacent",
    "place_kings",
    "place_pieces",
    "random_square",
]

# Rank indices (0 = rank 1)
KING_RANKS = {chess.WHITE: (0, 1, 2), chess.BLACK: (5, 6, 7)}
PAWN_RANKS = {chess.WHITE: (1, 2, 3), chess.BLACK: (4, 5, 6)}
PIECE_RANKS = {chess.WHITE: (0, 1, 2, 3), chess.BLACK: (4, 5, 6, 7)}

BACK_PIECES: tuple[chess.PieceType, ...] = (
    chess.QUEEN, chess.ROOK, chess.ROOK,
    chess.BISHOP, chess.BISHOP, chess.KNIGHT, chess.KNIGHT,
)
PAWN_COUNT = 8
MAX_PLACEMENT_DRAWS = 100


class PlacementFailure(Exception):
    """No empty square found for a piece; abandon the whole candidate."""


def random_square(rng: random.Random, ranks: Sequence[int]) -> chess.Square:
    return chess.square(rng.randrange(8), rng.choice(ranks))


def kings_adjacent(a: chess.Square, b: chess.Square) -> bool:
    return chess.square_distance(a, b) <= 1


def place_kings(board: chess.Board, rng: random.Random) -> tuple[chess.Square, chess.Square]:
    while True:
        white = random_square(rng, KING_RANKS[chess.WHITE])
        black = random_square(rng, KING_RANKS[chess.BLACK])
        if not kings_adjacent(white, black):
            break
    board.set_piece_at(white, chess.Piece(chess.KING, chess.WHITE))
    board.set_piece_at(black, chess.Piece(chess.KING, chess.BLACK))
    return white, black


def place_pieces(
    board: chess.Board,
    pieces: Sequence[chess.Piece],
    ranks: Sequence[int],
    rng: random.Random,
) -> None:
    """First-fit random placement within ``ranks``. Raises PlacementFailure."""
    for piece in pieces:
        for _ in range(MAX_PLACEMENT_DRAWS):
            square = random_square(rng, ranks)
            if board.piece_at(square) is None:
                board.set_piece_at(square, piece)
                break
        else:
            raise PlacementFailure(
                f"no empty square for {piece.symbol()} on ranks "
                f"{','.join(str(r + 1) for r in ranks)}"
            )


class PositionConstructor:
    """Builds one candidate board per call to ``build``."""

    def __init__(self, rng: random.Random | None = None, checks: FairnessChecks | None = None):
        self._rng = rng or random.Random()
        self._checks = checks or FairnessChecks()

    def _check(self, board: chess.Board) -> None:
        reason = find_violation(board, self._checks)
        if reason is not None:
            raise LegalityRejection(reason)

    def build(self) -> chess.Board:
        """A 32-man board, White to move, no castling or en passant.

        Raises PlacementFailure or LegalityRejection for a discarded candidate.
        """
        board = chess.Board(None)
        rng = self._rng

        place_kings(board, rng)
        for color in chess.COLORS:  # white first
            place_pieces(board, [chess.Piece(chess.PAWN, color)] * PAWN_COUNT, PAWN_RANKS[color], rng)

        for color in chess.COLORS:
            pieces = [chess.Piece(piece_type, color) for piece_type in BACK_PIECES]
            place_pieces(board, pieces, PIECE_RANKS[color], rng)
            self._check(board)

        board.turn = chess.WHITE
        board.castling_rights = chess.BB_EMPTY
        board.ep_square = None
        board.halfmove_clock = 0
        board.fullmove_number = 1
        return board
