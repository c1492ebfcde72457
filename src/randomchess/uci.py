"""UCI output tokenizer and analysis accumulator.

Engine output is line-oriented text with no request correlation. Each line
is tokenized into a typed message keyed by category; an accumulator folds
``info`` messages into the running analysis until ``bestmove`` ends the
search. Anything unrecognized parses to ``UNKNOWN`` and is ignored.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

import chess

_UCI_MOVE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbnQRBN]?$")

# info keywords followed by exactly one integer argument
_INT_FIELDS = {
    "depth", "seldepth", "multipv", "nodes", "nps", "time",
    "hashfull", "tbhits", "currmovenumber", "cpuload",
}


class MessageKind(enum.Enum):
    ID = "id"
    UCIOK = "uciok"
    READYOK = "readyok"
    OPTION = "option"
    INFO = "info"
    BESTMOVE = "bestmove"
    UNKNOWN = "unknown"


@dataclass
class InfoMessage:
    depth: int | None = None
    multipv: int | None = None
    score_cp: int | None = None
    score_mate: int | None = None
    bound: str | None = None        # "lowerbound" / "upperbound"
    pv: list[str] = field(default_factory=list)
    text: str | None = None         # "info string ..."


@dataclass
class UciMessage:
    kind: MessageKind
    raw: str
    info: InfoMessage | None = None
    best_move: str | None = None
    ponder: str | None = None


@dataclass
class PvLine:
    """A single principal variation."""
    multipv: int
    moves: list[str]
    score_cp: int | None
    score_mate: int | None
    depth: int


@dataclass
class AnalysisResult:
    """Final result of one evaluation, scores from White's point of view."""
    score_cp: int | None = None
    score_mate: int | None = None
    best_move: str | None = None
    lines: list[PvLine] = field(default_factory=list)
    depth: int = 0
    source: str = "engine"
    degraded: bool = False

    @property
    def evaluation(self) -> int | None:
        """Centipawns, or None when a forced mate supersedes the score."""
        if self.score_mate is not None:
            return None
        return self.score_cp

    @property
    def pv(self) -> list[str]:
        return self.lines[0].moves if self.lines else []


def is_uci_move(token: str) -> bool:
    return bool(_UCI_MOVE.match(token))


def _to_int(token: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        return None


def _parse_info(tokens: list[str]) -> InfoMessage:
    info = InfoMessage()
    i = 1
    while i < len(tokens):
        tok = tokens[i]
        if tok in _INT_FIELDS:
            value = _to_int(tokens[i + 1]) if i + 1 < len(tokens) else None
            if tok == "depth":
                info.depth = value
            elif tok == "multipv":
                info.multipv = value
            i += 2
        elif tok == "score":
            kind = tokens[i + 1] if i + 1 < len(tokens) else None
            value = _to_int(tokens[i + 2]) if i + 2 < len(tokens) else None
            if kind == "cp" and value is not None:
                info.score_cp = value
            elif kind == "mate" and value is not None:
                info.score_mate = value
            i += 3
            if i < len(tokens) and tokens[i] in ("lowerbound", "upperbound"):
                info.bound = tokens[i]
                i += 1
        elif tok == "pv":
            moves = []
            for move in tokens[i + 1:]:
                if not is_uci_move(move):
                    break
                moves.append(move)
            info.pv = moves
            i = len(tokens)
        elif tok == "string":
            info.text = " ".join(tokens[i + 1:])
            i = len(tokens)
        else:
            # currmove, refutation, currline, or junk
            i += 1
    return info


def parse_line(line: str) -> UciMessage:
    """Tokenize one line of engine output. Never raises."""
    raw = line.rstrip("\r\n")
    tokens = raw.split()
    if not tokens:
        return UciMessage(MessageKind.UNKNOWN, raw)

    head = tokens[0]
    if head == "readyok":
        return UciMessage(MessageKind.READYOK, raw)
    if head == "uciok":
        return UciMessage(MessageKind.UCIOK, raw)
    if head == "id":
        return UciMessage(MessageKind.ID, raw)
    if head == "option":
        return UciMessage(MessageKind.OPTION, raw)
    if head == "info":
        return UciMessage(MessageKind.INFO, raw, info=_parse_info(tokens))
    if head == "bestmove" and len(tokens) >= 2:
        move = tokens[1]
        if move == "(none)" or move == "0000":
            return UciMessage(MessageKind.BESTMOVE, raw, best_move=None)
        if is_uci_move(move):
            ponder = None
            if len(tokens) >= 4 and tokens[2] == "ponder" and is_uci_move(tokens[3]):
                ponder = tokens[3]
            return UciMessage(MessageKind.BESTMOVE, raw, best_move=move, ponder=ponder)
    return UciMessage(MessageKind.UNKNOWN, raw)


class AnalysisAccumulator:
    """Folds info messages of one search into an AnalysisResult.

    ``turn`` is the side to move of the analysed position; UCI scores are
    relative to it and get flipped to White's point of view here.
    """

    def __init__(self, turn: chess.Color = chess.WHITE):
        self.turn = turn
        self.reset()

    def reset(self) -> None:
        self._score_cp: int | None = None
        self._score_mate: int | None = None
        self._depth = 0
        self._lines: dict[int, PvLine] = {}

    def _white(self, value: int | None) -> int | None:
        if value is None or self.turn == chess.WHITE:
            return value
        return -value

    def feed(self, info: InfoMessage) -> None:
        if info.depth is not None:
            self._depth = max(self._depth, info.depth)

        # Bounded scores come from aspiration re-searches; the exact one follows.
        if info.bound is not None:
            return

        index = info.multipv or 1
        cp = self._white(info.score_cp)
        mate = self._white(info.score_mate)

        if index == 1:
            if mate is not None:
                self._score_mate = mate
                self._score_cp = None
            elif cp is not None:
                self._score_cp = cp
                self._score_mate = None

        if info.pv:
            self._lines[index] = PvLine(
                multipv=index,
                moves=list(info.pv),
                score_cp=cp if mate is None else None,
                score_mate=mate,
                depth=info.depth or self._depth,
            )

    @property
    def has_score(self) -> bool:
        return self._score_cp is not None or self._score_mate is not None

    def finish(self, best_move: str | None) -> AnalysisResult:
        """Build the final result and reset for the next search."""
        result = AnalysisResult(
            score_cp=self._score_cp,
            score_mate=self._score_mate,
            best_move=best_move,
            lines=[self._lines[k] for k in sorted(self._lines)],
            depth=self._depth,
        )
        self.reset()
        return result
