"""Tests for the cheap legality/fairness predicates."""

import chess

from randomchess.generation.fairness import (
    FairnessChecks,
    Rejection,
    bishops_share_square_color,
    find_violation,
    is_king_in_check,
    kings_in_check,
    legal_move_counts,
    square_color,
)

# White king e1 attacked by a rook on h1
WHITE_IN_CHECK = "4k3/8/8/8/8/8/8/4K2r w - - 0 1"
# Black king a8 has no moves, but is not in check
BLACK_STALEMATED = "k7/2Q5/1K6/8/8/8/8/8 b - - 0 1"


def test_square_color():
    assert square_color(chess.A1) == 0
    assert square_color(chess.B1) == 1
    assert square_color(chess.H8) == 0
    assert square_color(chess.A8) == 1


class TestKingsInCheck:
    def test_side_to_move_in_check(self):
        board = chess.Board(WHITE_IN_CHECK)
        assert is_king_in_check(board, chess.WHITE)
        assert not is_king_in_check(board, chess.BLACK)
        assert kings_in_check(board)

    def test_side_not_to_move_in_check(self):
        board = chess.Board(WHITE_IN_CHECK)
        board.turn = chess.BLACK
        assert is_king_in_check(board, chess.WHITE)
        assert kings_in_check(board)

    def test_quiet_board(self):
        assert not kings_in_check(chess.Board())


class TestBishops:
    def test_start_position_bishops_differ(self):
        assert not bishops_share_square_color(chess.Board())

    def test_same_colored_pair(self):
        board = chess.Board("4k3/8/8/8/8/4B3/8/2B1K3 w - - 0 1")  # c1 and e3
        assert bishops_share_square_color(board)

    def test_black_pair_checked_too(self):
        board = chess.Board("2b1k3/8/4b3/8/8/8/8/2B1KB2 w - - 0 1")  # c8 and e6
        assert bishops_share_square_color(board)

    def test_single_bishop_is_fine(self):
        board = chess.Board("4k3/8/8/8/8/8/8/2B1K3 w - - 0 1")
        assert not bishops_share_square_color(board)


class TestLegalMoves:
    def test_start_position(self):
        counts = legal_move_counts(chess.Board())
        assert (counts.white, counts.black, counts.current) == (20, 20, 20)

    def test_stalemated_side(self):
        counts = legal_move_counts(chess.Board(BLACK_STALEMATED))
        assert counts.black == 0
        assert counts.current == 0
        assert counts.white > 0


class TestFindViolation:
    def test_clean_board(self):
        assert find_violation(chess.Board(), FairnessChecks()) is None

    def test_check_reported_first(self):
        assert find_violation(chess.Board(WHITE_IN_CHECK), FairnessChecks()) is Rejection.KING_IN_CHECK

    def test_bishops(self):
        board = chess.Board("4k3/8/8/8/8/4B3/8/2B1K3 w - - 0 1")
        assert find_violation(board, FairnessChecks()) is Rejection.BISHOPS_SAME_COLOR

    def test_stalemate(self):
        board = chess.Board(BLACK_STALEMATED)
        assert find_violation(board, FairnessChecks()) is Rejection.STALEMATE

    def test_disabled_checks_are_skipped(self):
        off = FairnessChecks(
            kings_not_in_check=False,
            bishops_on_different_colors=False,
            no_stalemate=False,
        )
        assert find_violation(chess.Board(WHITE_IN_CHECK), off) is None
        assert find_violation(chess.Board(BLACK_STALEMATED), off) is None
