"""
Streaming speech-to-text client.

One StreamingSttClient session is one WebSocket connection to the STT service.
Audio goes out as binary PCM16 frames, transcripts come back as JSON text frames.

Session flow:
    1. connect_and_transcribe() opens the connection (optionally authenticated)
    2. A sender task forwards audio chunks from a bounded queue (AudioSink)
    3. A receiver task parses server messages and calls on_result per turn update
    4. Closing the sink sends {"type": "CloseStream"}; the server flushes its
       final results and closes the connection
    5. The completion task finishes when both sender and receiver have finished

Session states:
    CONNECTING -> ACTIVE -> CLOSING -> CLOSED
    Any state can move to FAILED, which is terminal.

Failure policy:
    Every error is fatal to the session and nothing is retried here. The
    completion task raises the first failure; the other half is cancelled.
    Reconnecting means building a new session.

Threading model:
    Everything runs on one asyncio event loop except AudioSink.send(), which is
    called from the audio capture thread and blocks it while the queue is full.
    Blocking is the backpressure mechanism: audio is never dropped silently.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidStatus,
    InvalidURI,
)

from voice_keyboard.errors import (
    ConfigurationError,
    HandshakeError,
    ProtocolViolationError,
    ServerReportedError,
    TransportError,
)
from voice_keyboard.messages import (
    Configuration,
    Connected,
    ServerError,
    TranscriptionResult,
    TurnInfo,
    parse_server_message,
)

logger = logging.getLogger(__name__)

CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})
DEFAULT_QUEUE_SIZE = 32

# Visible ASCII plus space and tab, as allowed in an HTTP field value
_HEADER_VALUE = re.compile(r"[\t\x20-\x7e]*")


class SessionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


def build_stt_url(base_url: str, params: dict[str, object]) -> str:
    """Append query parameters to base_url, skipping None values.

    Query parameters already present on base_url are kept.
    """
    parts = urlsplit(base_url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, str(value)) for key, value in params.items() if value is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_auth_header(api_key: str | None, scheme: str = "Token") -> str | None:
    """Build the Authorization header value for api_key.

    Returns None when there is no key.

    Raises:
        ConfigurationError: The key cannot be sent as an HTTP header value.
    """
    if not api_key:
        return None
    value = f"{scheme} {api_key}"
    if not _HEADER_VALUE.fullmatch(value):
        raise ConfigurationError("Invalid Authorization header value constructed from API key")
    return value


def _handshake_error(error: InvalidHandshake, url: str) -> HandshakeError:
    if isinstance(error, InvalidStatus):
        response = error.response
        body = response.body.decode("utf-8", errors="replace") if response.body else ""
        return HandshakeError(
            f"STT service rejected the connection to {url}",
            status_code=response.status_code,
            headers=dict(response.headers.raw_items()),
            body=body,
        )
    return HandshakeError(f"WebSocket handshake with {url} failed: {error}")


async def select_endpoint(
    local_url: str | None,
    cloud_url: str,
    *,
    params: dict[str, object] | None = None,
    timeout: float = 1.0,
) -> str:
    """Prefer a local STT endpoint when it accepts a WebSocket handshake.

    The probe connection is closed straight away. Any failure (refused,
    timeout, non-101 response) falls back to cloud_url.
    """
    if not local_url:
        return cloud_url

    probe_url = build_stt_url(local_url, params or {})
    try:
        async with connect(probe_url, open_timeout=timeout):
            pass
    except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as e:
        logger.info("Local STT endpoint %s unavailable (%s), using %s", local_url, e, cloud_url)
        return cloud_url

    logger.info("Using local STT endpoint %s", local_url)
    return local_url


class AudioSink:
    """
    Bounded queue of audio chunks feeding one session's sender task.

    put() and aclose() are for code running on the event loop; send() and
    close() are for other threads such as the audio capture callback. Once the
    session has finished, further chunks are refused instead of blocking.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = DEFAULT_QUEUE_SIZE):
        self._loop = loop
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed or self._finished

    async def put(self, chunk: bytes) -> bool:
        """Queue one chunk, waiting while the queue is full.

        Returns False if the chunk was refused because the sink is closed.
        """
        if self.closed:
            return False
        await self._queue.put(chunk)
        return True

    async def aclose(self) -> None:
        """Signal that no more audio will be produced."""
        if self.closed:
            return
        self._closed = True
        await self._queue.put(None)

    def _check_foreign_thread(self) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            return
        if running is self._loop:
            raise RuntimeError("called from the event loop thread; use the async variant")

    def send(self, chunk: bytes) -> bool:
        """Thread-safe put(); blocks the calling thread while the queue is full."""
        if self.closed:
            return False
        self._check_foreign_thread()
        return asyncio.run_coroutine_threadsafe(self.put(chunk), self._loop).result()

    def close(self) -> None:
        """Thread-safe aclose()."""
        if self.closed:
            return
        self._check_foreign_thread()
        asyncio.run_coroutine_threadsafe(self.aclose(), self._loop).result()

    async def get(self) -> bytes | None:
        """Next chunk, or None once the sink has been closed."""
        return await self._queue.get()

    def finish(self) -> None:
        """Mark the session over and release producers blocked on a full queue."""
        self._finished = True
        while not self._queue.empty():
            self._queue.get_nowait()


class StreamingSttClient:
    """
    Client for one streaming STT session at a time.

    The API key is passed in explicitly; this class never reads the environment.

    Args:
        url: Base WebSocket URL (wss://.../v2/listen); query parameters are added.
        sample_rate: Sample rate of the PCM16 audio that will be sent.
        model: Model identifier.
        encoding: Audio encoding name sent to the service.
        eot_threshold: End-of-turn confidence threshold (service default if None).
        eager_eot_threshold: Threshold for EagerEndOfTurn events (disabled if None).
        eot_timeout_ms: Force end of turn after this much silence (service default if None).
        api_key: Secret for the Authorization header, or None for no header.
        auth_scheme: Authorization scheme placed before the key.
        queue_size: Maximum outstanding audio chunks before producers block.
        allow_flat_schema: Also accept the older untagged result messages.
        open_timeout: Seconds allowed for the connection handshake.
        close_timeout: Seconds to wait for the server to close after the
            end-of-audio message. None waits as long as it takes.
    """

    def __init__(
        self,
        url: str,
        sample_rate: int,
        *,
        model: str = "flux-general-en",
        encoding: str = "linear16",
        eot_threshold: float | None = None,
        eager_eot_threshold: float | None = None,
        eot_timeout_ms: int | None = None,
        api_key: str | None = None,
        auth_scheme: str = "Token",
        queue_size: int = DEFAULT_QUEUE_SIZE,
        allow_flat_schema: bool = False,
        open_timeout: float | None = 10.0,
        close_timeout: float | None = None,
    ):
        self.url = url
        self.sample_rate = sample_rate
        self.model = model
        self.encoding = encoding
        self.eot_threshold = eot_threshold
        self.eager_eot_threshold = eager_eot_threshold
        self.eot_timeout_ms = eot_timeout_ms
        self.auth_scheme = auth_scheme
        self.queue_size = queue_size
        self.allow_flat_schema = allow_flat_schema
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self._api_key = api_key
        self._state: SessionState | None = None

    @property
    def state(self) -> SessionState | None:
        """State of the most recent session, None before the first one."""
        return self._state

    def query_params(self) -> dict[str, object]:
        return {
            "model": self.model,
            "sample_rate": self.sample_rate,
            "encoding": self.encoding,
            "eot_threshold": self.eot_threshold,
            "eager_eot_threshold": self.eager_eot_threshold,
            "eot_timeout_ms": self.eot_timeout_ms,
        }

    def build_url(self) -> str:
        return build_stt_url(self.url, self.query_params())

    async def connect_and_transcribe(
        self, on_result: Callable[[TranscriptionResult], None]
    ) -> tuple[AudioSink, asyncio.Task[None]]:
        """Open a session.

        Args:
            on_result: Called synchronously from the receive loop for every
                transcript update. Exceptions it raises fail the session.

        Returns:
            (sink, completion) where sink accepts audio chunks and completion is
            a task that finishes when the session ends and raises its error.

        Raises:
            ConfigurationError: Invalid API key or URL, before any network access.
            HandshakeError: The server refused the upgrade.
            TransportError: The connection could not be established.
        """
        self._state = SessionState.CONNECTING
        try:
            ws_url = self.build_url()
            auth = build_auth_header(self._api_key, self.auth_scheme)
            headers = {"Authorization": auth} if auth else None
            if auth is None:
                logger.debug("No API key configured; connecting without Authorization header")

            logger.debug("Connecting to speech-to-text service: %s", ws_url)
            try:
                ws = await connect(
                    ws_url,
                    additional_headers=headers,
                    open_timeout=self.open_timeout,
                )
            except InvalidURI as e:
                raise ConfigurationError(f"Invalid STT URL {ws_url!r}: {e}") from e
            except InvalidHandshake as e:
                raise _handshake_error(e, ws_url) from e
            except (OSError, TimeoutError) as e:
                raise TransportError(f"Failed to connect to {ws_url}: {e}") from e
        except Exception:
            self._state = SessionState.FAILED
            raise

        logger.info("Connected to speech-to-text service")
        self._state = SessionState.ACTIVE
        sink = AudioSink(asyncio.get_running_loop(), maxsize=self.queue_size)
        completion = asyncio.create_task(
            self._run_session(ws, sink, on_result), name="stt-session"
        )
        return sink, completion

    async def _run_session(
        self,
        ws: ClientConnection,
        sink: AudioSink,
        on_result: Callable[[TranscriptionResult], None],
    ) -> None:
        sender = asyncio.create_task(self._send_audio(ws, sink), name="stt-sender")
        receiver = asyncio.create_task(self._receive_results(ws, on_result), name="stt-receiver")
        try:
            await self._wait_for_both(sender, receiver)
        except BaseException as e:
            self._state = SessionState.FAILED
            if not isinstance(e, asyncio.CancelledError):
                logger.error("Speech-to-text session failed: %s", e)
            raise
        else:
            self._state = SessionState.CLOSED
            logger.info("Speech-to-text session closed")
        finally:
            for task in (sender, receiver):
                task.cancel()
            await asyncio.gather(sender, receiver, return_exceptions=True)
            sink.finish()
            await ws.close()

    async def _wait_for_both(self, sender: asyncio.Task, receiver: asyncio.Task) -> None:
        """Return once both tasks succeed; raise the first failure otherwise."""
        pending = {sender, receiver}
        while pending:
            # The close timeout only runs once end-of-audio has been sent
            waiting_for_close = sender.done() and receiver in pending
            timeout = self.close_timeout if waiting_for_close else None
            done, pending = await asyncio.wait(
                pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if not done:
                raise TransportError(
                    f"Server did not close the stream within {self.close_timeout}s "
                    "after end of audio"
                )
            for task in done:
                error = task.exception()
                if error is not None:
                    raise error
            if pending:
                self._state = SessionState.CLOSING

    async def _send_audio(self, ws: ClientConnection, sink: AudioSink) -> None:
        sent = 0
        while True:
            chunk = await sink.get()
            if chunk is None:
                break
            try:
                await ws.send(chunk)
            except (ConnectionClosed, OSError) as e:
                logger.error("Failed to send audio data: %s", e)
                raise TransportError(f"failed to send audio over websocket: {e}") from e
            sent += 1

        logger.debug("Audio finished after %d chunks, sending CloseStream", sent)
        try:
            await ws.send(CLOSE_STREAM_MESSAGE)
        except (ConnectionClosed, OSError) as e:
            raise TransportError(f"failed to send CloseStream: {e}") from e

    async def _receive_results(
        self, ws: ClientConnection, on_result: Callable[[TranscriptionResult], None]
    ) -> None:
        while True:
            try:
                message = await ws.recv()
            except ConnectionClosed as e:
                # Any close frame ends the stream; no close frame means the link dropped
                if e.rcvd is not None:
                    logger.debug(
                        "WebSocket closed by server (code=%d, reason=%r)",
                        e.rcvd.code,
                        e.rcvd.reason,
                    )
                    return
                logger.error("WebSocket error: %s", e)
                raise TransportError(f"websocket receive error: {e}") from e
            except OSError as e:
                logger.error("WebSocket error: %s", e)
                raise TransportError(f"websocket receive error: {e}") from e

            if isinstance(message, bytes):
                raise ProtocolViolationError("received a binary frame; only text is expected")

            logger.debug("Received text message: %s", message)
            parsed = parse_server_message(message, allow_flat_schema=self.allow_flat_schema)

            if isinstance(parsed, TurnInfo):
                on_result(parsed.result)
            elif isinstance(parsed, Connected):
                logger.info(
                    "STT session started (request_id=%s, sequence_id=%d)",
                    parsed.request_id,
                    parsed.sequence_id,
                )
            elif isinstance(parsed, Configuration):
                logger.info(
                    "STT configuration: eot_threshold=%s, eager_eot_threshold=%s, "
                    "eot_timeout_ms=%s",
                    parsed.eot_threshold,
                    parsed.eager_eot_threshold,
                    parsed.eot_timeout_ms,
                )
            elif isinstance(parsed, ServerError):
                raise ServerReportedError(parsed.code, parsed.description)

