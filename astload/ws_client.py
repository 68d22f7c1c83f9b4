"""
WebSocket Session Runner for Streaming ASR Load Testing

Runs one simulated client: connect, stream the audio file, wait for the
terminal response, and record connection / first-response / total latency.

Connection callbacks are modelled as events fed into apply_event(), which
updates the session record and tells the runner what to do with the
connection. apply_event() does no I/O, so the lifecycle rules can be tested
without a server.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from .config import TestConfig
from .envelope import extract_text, is_terminal, parse_response
from .errors import StreamingError
from .streamer import stream_audio

logger = logging.getLogger(__name__)

ERROR_CONNECT_TIMEOUT = "connection timeout"
ERROR_RESPONSE_TIMEOUT = "response timeout"
ERROR_UNEXPECTED_CLOSE = "connection closed unexpectedly"


@dataclass
class ClientResult:
    """Outcome of one client session. Timings are milliseconds from session start."""
    client_id: int
    success: bool = False
    connection_time: float = 0.0
    first_response_time: float = 0.0
    total_time: float = 0.0
    error: Optional[str] = None
    received_messages: int = 0
    final_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientResult":
        return cls(
            client_id=int(data['client_id']),
            success=bool(data.get('success', False)),
            connection_time=float(data.get('connection_time', 0.0)),
            first_response_time=float(data.get('first_response_time', 0.0)),
            total_time=float(data.get('total_time', 0.0)),
            error=data.get('error'),
            received_messages=int(data.get('received_messages', 0)),
            final_text=data.get('final_text'),
        )


class SessionPhase(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    AWAITING_TERMINAL = "awaiting_terminal"
    RESOLVED = "resolved"


class SessionAction(Enum):
    """What the runner must do with the connection after an event."""
    NONE = "none"
    CLOSE = "close"
    ABORT = "abort"


@dataclass(frozen=True)
class Opened:
    at_ms: float


@dataclass(frozen=True)
class StreamFinished:
    at_ms: float


@dataclass(frozen=True)
class StreamFailed:
    error: str
    at_ms: float


@dataclass(frozen=True)
class ConnectTimedOut:
    at_ms: float


@dataclass(frozen=True)
class ResponseTimedOut:
    at_ms: float


@dataclass(frozen=True)
class MessageReceived:
    raw: Union[str, bytes]
    at_ms: float


@dataclass(frozen=True)
class TransportError:
    error: str
    at_ms: float


@dataclass(frozen=True)
class Closed:
    at_ms: float


SessionEvent = Union[
    Opened, StreamFinished, StreamFailed, ConnectTimedOut,
    ResponseTimedOut, MessageReceived, TransportError, Closed,
]


@dataclass
class SessionState:
    """Mutable lifecycle record for one session."""
    result: ClientResult
    phase: SessionPhase = SessionPhase.CONNECTING
    first_response_received: bool = False

    @property
    def resolved(self) -> bool:
        return self.phase is SessionPhase.RESOLVED

    def resolve(self, at_ms: float, error: Optional[str] = None) -> None:
        if error is not None and not self.result.success:
            self.result.error = error
        if not self.result.total_time:
            self.result.total_time = at_ms
        self.phase = SessionPhase.RESOLVED


def _on_message(state: SessionState, event: MessageReceived) -> SessionAction:
    result = state.result
    if not state.first_response_received:
        result.first_response_time = event.at_ms
        state.first_response_received = True
    result.received_messages += 1

    try:
        response = parse_response(event.raw)
    except ValueError:
        # partial or malformed frames are expected; keep listening
        return SessionAction.NONE

    if not is_terminal(response):
        return SessionAction.NONE

    result.success = True
    result.final_text = extract_text(response)
    result.total_time = event.at_ms
    state.resolve(event.at_ms)
    return SessionAction.CLOSE


def apply_event(state: SessionState, event: SessionEvent) -> SessionAction:
    """
    Advance a session by one event.

    Once the session is resolved every further event is ignored, so the
    result is finalized exactly once no matter how many close/error
    callbacks follow.
    """
    if state.resolved:
        return SessionAction.NONE

    if isinstance(event, Opened):
        state.result.connection_time = event.at_ms
        state.phase = SessionPhase.STREAMING
        return SessionAction.NONE

    if isinstance(event, StreamFinished):
        state.phase = SessionPhase.AWAITING_TERMINAL
        return SessionAction.NONE

    if isinstance(event, MessageReceived):
        return _on_message(state, event)

    if isinstance(event, StreamFailed):
        state.resolve(event.at_ms, f"audio streaming failed: {event.error}")
        return SessionAction.CLOSE

    if isinstance(event, ConnectTimedOut):
        state.resolve(event.at_ms, ERROR_CONNECT_TIMEOUT)
        return SessionAction.ABORT

    if isinstance(event, ResponseTimedOut):
        state.resolve(event.at_ms, ERROR_RESPONSE_TIMEOUT)
        return SessionAction.CLOSE

    if isinstance(event, TransportError):
        state.resolve(event.at_ms, f"connection error: {event.error}")
        return SessionAction.NONE

    if isinstance(event, Closed):
        state.resolve(event.at_ms, None if state.result.success or state.result.error else ERROR_UNEXPECTED_CLOSE)
        return SessionAction.NONE

    raise TypeError(f"unknown session event: {event!r}")


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class SessionRunner:
    """Drives one client session against a live endpoint."""

    def __init__(self,
                 client_id: int,
                 config: TestConfig,
                 connect: Callable[..., Any] = websockets.connect,
                 clock: Callable[[], float] = time.perf_counter):
        self.client_id = client_id
        self.config = config
        self.connect = connect
        self.clock = clock
        self.trace_id = str(uuid.uuid4())
        self.state = SessionState(result=ClientResult(client_id=client_id))
        self._start = 0.0

    def _elapsed_ms(self) -> float:
        return (self.clock() - self._start) * 1000.0

    def _apply(self, event: SessionEvent) -> SessionAction:
        was_resolved = self.state.resolved
        action = apply_event(self.state, event)
        if self.state.resolved and not was_resolved:
            result = self.state.result
            if result.success:
                logger.info(f"Client {self.client_id}: completed in {result.total_time:.0f}ms "
                            f"({result.received_messages} messages)")
            else:
                logger.warning(f"Client {self.client_id}: failed: {result.error}")
        return action

    async def _close(self, ws) -> None:
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"Client {self.client_id}: close error: {e}")

    async def _send_audio(self, ws) -> None:
        config = self.config
        try:
            frames = await stream_audio(
                ws,
                config.audio_path,
                trace_id=self.trace_id,
                frame_size=config.frame_size,
                interval_s=config.interval_s,
                app_id=config.app_id,
                biz_id=config.biz_id,
                engine_params=config.engine_params,
            )
        except StreamingError as e:
            if self._apply(StreamFailed(str(e), self._elapsed_ms())) is SessionAction.CLOSE:
                await self._close(ws)
            return

        logger.debug(f"Client {self.client_id}: sent {frames} frames")
        self._apply(StreamFinished(self._elapsed_ms()))

    async def _receive(self, ws) -> None:
        try:
            async for raw in ws:
                if self._apply(MessageReceived(raw, self._elapsed_ms())) is SessionAction.CLOSE:
                    return
                if self.state.resolved:
                    return
        except (ConnectionClosedError, OSError) as e:
            self._apply(TransportError(_describe(e), self._elapsed_ms()))

    async def run(self) -> ClientResult:
        """Run the session to resolution. Per-session failures are recorded, not raised."""
        config = self.config
        self._start = self.clock()
        logger.debug(f"Client {self.client_id}: connecting to {config.ws_url} (trace {self.trace_id})")

        try:
            ws = await asyncio.wait_for(
                self.connect(config.ws_url, max_size=None, open_timeout=None),
                timeout=config.connect_timeout_s,
            )
        except asyncio.TimeoutError:
            # wait_for has already cancelled the pending handshake
            self._apply(ConnectTimedOut(self._elapsed_ms()))
            return self.state.result
        except (OSError, WebSocketException) as e:
            self._apply(TransportError(_describe(e), self._elapsed_ms()))
            return self.state.result

        self._apply(Opened(self._elapsed_ms()))
        logger.debug(f"Client {self.client_id}: connected in {self.state.result.connection_time:.0f}ms")

        sender = asyncio.create_task(self._send_audio(ws))
        try:
            if config.response_timeout_s is not None:
                await asyncio.wait_for(self._receive(ws), timeout=config.response_timeout_s)
            else:
                await self._receive(ws)
        except asyncio.TimeoutError:
            self._apply(ResponseTimedOut(self._elapsed_ms()))
        finally:
            if not sender.done():
                sender.cancel()
            (send_outcome,) = await asyncio.gather(sender, return_exceptions=True)
            await self._close(ws)
            self._apply(Closed(self._elapsed_ms()))

        # StreamingError is handled inside _send_audio; anything else is a bug
        if isinstance(send_outcome, Exception):
            raise send_outcome
        return self.state.result


async def run_session(client_id: int,
                      config: TestConfig,
                      connect: Callable[..., Any] = websockets.connect) -> ClientResult:
    """Simulate a single client connecting and streaming the audio file."""
    return await SessionRunner(client_id, config, connect=connect).run()
