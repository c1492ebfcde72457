"""Bot move selection at a given strength tier."""

from __future__ import annotations

import logging

import chess

from randomchess.backends import EvaluationChain
from randomchess.strength import get_profile

logger = logging.getLogger(__name__)


class BotMoveError(RuntimeError):
    """The engine did not produce a playable move."""


async def choose_bot_move(
    board: chess.Board,
    evaluator: EvaluationChain,
    difficulty: str = "max",
) -> chess.Move | None:
    """Engine's best move for the side to move, validated against the board.

    Returns None when the game is already over. Strength (skill level, Elo
    limit) is applied by whoever built ``evaluator``; the difficulty here
    only picks the search depth.
    """
    if board.is_game_over():
        return None

    depth = get_profile(difficulty).move_depth
    analysis = await evaluator.evaluate(board.fen(), depth)
    if not analysis.best_move:
        raise BotMoveError(f"No best move from {analysis.source} backend")

    try:
        move = chess.Move.from_uci(analysis.best_move)
    except chess.InvalidMoveError as e:
        raise BotMoveError(f"Malformed best move: {analysis.best_move}") from e
    if move not in board.legal_moves:
        logger.error("Engine proposed illegal move %s on %s", analysis.best_move, board.fen())
        raise BotMoveError(f"Illegal best move: {analysis.best_move}")
    return move
