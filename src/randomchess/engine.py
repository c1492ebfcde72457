"""UCI analysis engine client.

Owns exactly one engine process (or any other line transport) and exposes a
single-flight ``evaluate_position``. Engine output is read by a background
task, tokenized by ``randomchess.uci`` and folded into the pending request.
"""

import asyncio
import contextlib
import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import chess

from randomchess.constants import ANALYSIS_TIMEOUT, DEFAULT_DEPTH, ENGINE_THREADS
from randomchess.strength import EngineStrengthProfile, get_profile
from randomchess.uci import AnalysisAccumulator, AnalysisResult, MessageKind, UciMessage, parse_line

logger = logging.getLogger(__name__)

# How long a cancelled search may take to answer "stop" with its bestmove.
STOP_GRACE = 2.0


class EngineError(RuntimeError):
    """Base class for analysis engine failures."""


class EngineUnavailableError(EngineError):
    """The engine (or backend) cannot be used; try another one."""


class EngineTimeoutError(EngineError):
    """The engine did not finish within the per-request timeout."""


class EngineTerminatedError(EngineError):
    """The engine process exited or its pipe closed."""


class EngineState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    STARTING = "starting"
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    ANALYZING = "analyzing"
    TERMINATED = "terminated"


class UciTransport(ABC):
    """Bidirectional line channel to a UCI engine."""

    @abstractmethod
    async def send(self, line: str) -> None: ...

    @abstractmethod
    async def readline(self) -> str | None:
        """Next output line, or None once the engine has gone away."""

    @abstractmethod
    async def close(self) -> None: ...


class ProcessTransport(UciTransport):
    """UCI engine running as a local subprocess."""

    def __init__(self, process: asyncio.subprocess.Process):
        self._process = process

    @classmethod
    async def spawn(cls, path: str) -> "ProcessTransport":
        process = await asyncio.create_subprocess_exec(
            path,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return cls(process)

    async def send(self, line: str) -> None:
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            raise EngineTerminatedError("Engine stdin is closed")
        try:
            stdin.write(f"{line}\n".encode())
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise EngineTerminatedError("Engine pipe closed") from e

    async def readline(self) -> str | None:
        data = await self._process.stdout.readline()
        if not data:
            return None
        return data.decode(errors="replace")

    async def close(self) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.terminate()
            await asyncio.wait_for(self._process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            self._process.kill()
            await self._process.wait()
        except ProcessLookupError:
            # Already exited between the returncode check and terminate()
            pass


TransportFactory = Callable[[], Awaitable[UciTransport]]


def _validate_board(fen: str) -> chess.Board:
    try:
        board = chess.Board(fen)
    except ValueError as e:
        raise ValueError(f"Invalid FEN: {fen}") from e
    if not board.is_valid():
        raise ValueError(f"Illegal position: {fen}")
    return board


class UciEngineClient:
    """One engine process, one search at a time.

    Concurrent ``evaluate_position`` calls queue on an internal lock: the
    protocol has no request ids, so output can only be attributed to the
    single search in flight.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        profile: EngineStrengthProfile | None = None,
        threads: int = ENGINE_THREADS,
        hash_mb: int = 64,
        timeout: float = ANALYSIS_TIMEOUT,
    ):
        self._factory = transport_factory
        self._profile = profile or get_profile("max")
        self._threads = threads
        self._hash_mb = hash_mb
        self._timeout = timeout
        self._transport: UciTransport | None = None
        self._reader_task: asyncio.Task | None = None
        self._state = EngineState.UNINITIALIZED
        self._lock = asyncio.Lock()
        self._ready: asyncio.Future | None = None
        self._pending: asyncio.Future | None = None
        self._accumulator = AnalysisAccumulator()
        self._multipv = 1

    @classmethod
    def for_binary(cls, path: str = "stockfish", **kwargs) -> "UciEngineClient":
        return cls(lambda: ProcessTransport.spawn(path), **kwargs)

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def profile(self) -> EngineStrengthProfile:
        return self._profile

    # --- lifecycle ---

    async def start(self) -> None:
        """(Re)start the engine and wait until it answers ``readyok``."""
        if self._transport is not None:
            await self._shutdown()
        self._state = EngineState.STARTING
        try:
            self._transport = await self._factory()
        except OSError as e:
            self._state = EngineState.TERMINATED
            raise EngineUnavailableError(f"Could not start engine: {e}") from e

        self._accumulator.reset()
        self._multipv = 1
        self._reader_task = asyncio.create_task(self._read_loop())
        try:
            await self._send("uci")
            await self._send("setoption name UCI_AnalyseMode value true")
            await self._send(f"setoption name Threads value {self._threads}")
            await self._send(f"setoption name Hash value {self._hash_mb}")
            await self._apply_strength()
            self._state = EngineState.AWAITING_READY
            await self._wait_ready()
        except (EngineError, asyncio.CancelledError):
            await self._shutdown()
            raise
        self._state = EngineState.READY
        logger.debug("Engine ready (profile=%s)", self._profile.name)

    async def close(self) -> None:
        if self._transport is not None and self._state is not EngineState.TERMINATED:
            with contextlib.suppress(EngineError):
                await self._send("quit")
        await self._shutdown()

    async def stop(self) -> None:
        """Ask the engine to finish the current search early."""
        if self._state is EngineState.ANALYZING:
            await self._send("stop")

    async def set_strength(self, profile: EngineStrengthProfile) -> None:
        async with self._lock:
            self._profile = profile
            if self._state is EngineState.READY:
                await self._apply_strength()

    # --- analysis ---

    async def evaluate_position(
        self, fen: str, depth: int = DEFAULT_DEPTH, multipv: int = 1,
    ) -> AnalysisResult:
        board = _validate_board(fen)
        async with self._lock:
            if self._state in (EngineState.UNINITIALIZED, EngineState.TERMINATED):
                await self.start()
            try:
                return await self._search(board, depth, multipv)
            except EngineTerminatedError:
                await self._shutdown()
                raise

    async def _search(self, board: chess.Board, depth: int, multipv: int) -> AnalysisResult:
        self._accumulator.turn = board.turn
        self._accumulator.reset()
        self._pending = asyncio.get_running_loop().create_future()

        await self._send(f"position fen {board.fen()}")
        if multipv != self._multipv:
            await self._send(f"setoption name MultiPV value {multipv}")
            self._multipv = multipv
        self._state = EngineState.ANALYZING
        await self._send(f"go depth {depth}")

        try:
            return await asyncio.wait_for(self._pending, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Engine timed out after %.1fs (depth %d), resetting", self._timeout, depth)
            await self._shutdown()
            raise EngineTimeoutError(f"Engine timed out after {self._timeout:.1f}s") from None
        except asyncio.CancelledError:
            await self._abort_search()
            raise
        finally:
            self._pending = None

    async def _abort_search(self) -> None:
        """Stop an abandoned search and drain it back to READY."""
        if self._state is not EngineState.ANALYZING:
            return
        self._pending = asyncio.get_running_loop().create_future()
        try:
            await self._send("stop")
            await asyncio.wait_for(self._pending, timeout=STOP_GRACE)
        except (EngineError, asyncio.TimeoutError):
            logger.warning("Engine ignored stop, terminating it")
            await self._shutdown()

    # --- protocol plumbing ---

    async def _send(self, line: str) -> None:
        if self._transport is None:
            raise EngineTerminatedError("Engine not running")
        logger.debug(">> %s", line)
        await self._transport.send(line)

    async def _apply_strength(self) -> None:
        for name, value in self._profile.uci_options():
            await self._send(f"setoption name {name} value {value}")

    async def _wait_ready(self) -> None:
        self._ready = asyncio.get_running_loop().create_future()
        await self._send("isready")
        try:
            await asyncio.wait_for(self._ready, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise EngineTimeoutError("Engine did not answer isready") from None
        finally:
            self._ready = None

    async def _read_loop(self) -> None:
        try:
            while True:
                line = await self._transport.readline()
                if line is None:
                    break
                self._dispatch(parse_line(line))
        except Exception as e:
            logger.warning("Engine read failed: %s", e)
        self._state = EngineState.TERMINATED
        self._fail_waiters(EngineTerminatedError("Engine process exited"))

    def _dispatch(self, msg: UciMessage) -> None:
        if msg.kind is MessageKind.READYOK:
            if self._ready is not None and not self._ready.done():
                self._ready.set_result(True)
        elif msg.kind is MessageKind.INFO:
            if self._state is EngineState.ANALYZING:
                self._accumulator.feed(msg.info)
        elif msg.kind is MessageKind.BESTMOVE:
            if self._state is not EngineState.ANALYZING:
                logger.debug("Stray bestmove ignored: %s", msg.raw)
                return
            result = self._accumulator.finish(msg.best_move)
            self._state = EngineState.READY
            if self._pending is not None and not self._pending.done():
                self._pending.set_result(result)
        elif msg.kind is MessageKind.UNKNOWN:
            logger.debug("Ignoring engine output: %r", msg.raw)

    def _fail_waiters(self, exc: EngineError) -> None:
        for fut in (self._ready, self._pending):
            if fut is not None and not fut.done():
                fut.set_exception(exc)

    async def _shutdown(self) -> None:
        self._state = EngineState.TERMINATED
        task, self._reader_task = self._reader_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        transport, self._transport = self._transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                # Process may already be gone (crash, shutdown race)
                logger.debug("Engine transport close failed: %s", e)
        self._fail_waiters(EngineTerminatedError("Engine was shut down"))
