"""Shared fakes: a scripted evaluation backend and chains built from it."""

import dataclasses

import pytest

from randomchess.backends import EvaluationBackend, EvaluationChain
from randomchess.engine import EngineUnavailableError
from randomchess.uci import AnalysisResult


class ScriptedBackend(EvaluationBackend):
    """Returns queued results in order, repeating the last one forever.

    An exception instance in the script is raised instead of returned.
    """

    name = "scripted"

    def __init__(self, *results):
        self._script = list(results) or [AnalysisResult(score_cp=0, best_move="e2e4", depth=15)]
        self.calls: list[tuple[str, int, int]] = []
        self.closed = False

    async def evaluate(self, fen, depth, multipv=1):
        self.calls.append((fen, depth, multipv))
        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, Exception):
            raise item
        return dataclasses.replace(item, lines=list(item.lines))

    async def close(self):
        self.closed = True


class DownBackend(EvaluationBackend):
    name = "down"

    async def evaluate(self, fen, depth, multipv=1):
        raise EngineUnavailableError("backend is down")


@pytest.fixture
def scripted_chain():
    """Factory: ``scripted_chain(*results)`` -> (chain, backend)."""
    def make(*results):
        backend = ScriptedBackend(*results)
        return EvaluationChain([backend]), backend
    return make
