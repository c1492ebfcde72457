"""Tests for full position analysis."""

import chess
import pytest

from randomchess.analyzer import analyze_position, standard_analysis
from randomchess.uci import AnalysisResult

ITALIAN = "r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3"


async def test_analysis_fields(scripted_chain):
    chain, backend = scripted_chain(AnalysisResult(score_cp=35, best_move="g8f6", depth=12))
    report = await analyze_position(chess.Board(ITALIAN), chain, depth=12)

    assert backend.calls == [(ITALIAN, 12, 1)]
    assert report.verdict.evaluation == 35
    assert report.verdict.is_fair
    assert report.verdict.description.key == "slight_advantage"
    assert report.material.advantage == 0
    assert report.legal_moves.current == report.legal_moves.black
    assert report.in_check is False
    assert report.move_number == 3
    assert report.halfmove_clock == 3
    assert report.repetition is None
    assert report.best_move == "g8f6"
    assert report.source == "scripted"


async def test_unfair_when_beyond_bound(scripted_chain):
    chain, _ = scripted_chain(AnalysisResult(score_cp=-180, depth=12))
    report = await analyze_position(chess.Board(ITALIAN), chain, max_evaluation=100)
    assert not report.verdict.is_fair
    assert report.verdict.description.params == {"side": "black"}


async def test_in_check_and_mate(scripted_chain):
    chain, _ = scripted_chain(AnalysisResult(score_mate=1, best_move="d8h4", depth=12))
    board = chess.Board("rnbqkbnr/pppp1ppp/8/4p3/6P1/5P2/PPPPP2P/RNBQKBNR b KQkq - 0 2")
    report = await analyze_position(board, chain)
    assert report.verdict.forced_mate == 1
    assert report.verdict.description.key == "mate_in"
    assert report.in_check is False


async def test_threefold_repetition(scripted_chain):
    chain, _ = scripted_chain()
    board = chess.Board()
    for _ in range(2):
        for uci in ("g1f3", "g8f6", "f3g1", "f6g8"):
            board.push_uci(uci)
    report = await analyze_position(board, chain)
    assert report.repetition == 3


async def test_illegal_position_rejected(scripted_chain):
    chain, backend = scripted_chain()
    with pytest.raises(ValueError, match="Illegal position"):
        await analyze_position(chess.Board("8/8/8/8/8/8/8/8 w - - 0 1"), chain)
    assert backend.calls == []


def test_standard_analysis():
    report = standard_analysis()
    assert report.verdict.win_chance.white == 50
    assert report.verdict.win_chance.black == 50
    assert report.verdict.win_chance.draw == 0
    assert report.verdict.description.key == "standard"
    assert report.legal_moves.white == 20
    assert report.source == "static"
