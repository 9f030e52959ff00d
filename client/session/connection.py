"""
Realtime session connection.

Owns one WebSocket to the realtime service per successful connect:

    conn = RealtimeConnection(
        listener=listener,
        fetch_credential=CredentialFetcher(cfg.token_endpoint_url),
        realtime_url=cfg.realtime_ws_url,
    )
    if await conn.connect(build_session_config(...)):
        await conn.send(AudioAppend(audio=pcm_bytes))
        ...
    await conn.disconnect()

Core model (IMPORTANT):
- A fresh credential is fetched for every connect attempt and dropped as
  soon as the handshake completes. It is never logged in full.
- session.update is always the first frame on a new transport. Nothing else
  may be sent before it (send() refuses until the session is configured).
- One receive task per transport; all state transitions and listener
  callbacks happen on the event loop thread.
- Every connect attempt gets a monotonic attempt number. disconnect() bumps
  it, which invalidates whatever attempt or receive loop is still in flight.

Listener guarantees:
- on_error fires exactly once per terminal failure, before on_disconnected.
- on_disconnected fires at most once per on_connected.
- Nothing fires after disconnect() has returned.
"""

from __future__ import annotations

import asyncio
import ssl
import time
import uuid
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidStatus, InvalidURI
from websockets.typing import Subprotocol

from constants import (
    CLOSE_NORMAL,
    CONNECT_TIMEOUT_S,
    SUBPROTOCOL_REALTIME_BETA,
    SUBPROTOCOL_TOKEN_PREFIX,
    WS_MAX_MESSAGE_BYTES,
    WS_PING_INTERVAL_S,
)
from errors import (
    ApiError,
    CloseClassification,
    ConnectionTimeout,
    NotConnected,
    ProtocolError,
    RealtimeClientError,
    TransportError,
)
from observability.logger import log_event
from protocol.codec import decode_server_event, encode_client_event
from protocol.events import (
    ApiErrorEvent,
    AudioAppend,
    AudioDelta,
    ClientEvent,
    ContentItemAdded,
    ConversationItemCreate,
    ResponseCreate,
    ResponseDone,
    ServerEvent,
    SessionCreated,
    SessionUpdate,
    SessionUpdated,
    TranscriptDelta,
    TranscriptDone,
)
from session.connection_status import RESTARTABLE_STATES, ConnectionState
from session.credentials import Credential
from session.listener import SessionListener
from session.session_config import SessionConfig
from session.transcript import Speaker, TranscriptEntry

if TYPE_CHECKING:
    from audio.bridge import AudioBridge


CredentialSource = Callable[[SessionConfig], Awaitable[Credential]]
TransportOpener = Callable[[str, list[str]], Awaitable[Any]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_connection_id() -> str:
    return f"conn_{uuid.uuid4().hex[:12]}"


async def open_websocket(url: str, subprotocols: list[str]) -> Any:
    """
    Open the realtime WebSocket.

    open_timeout is disabled here; the caller bounds the open with its own
    connection-establishment timeout.
    """
    return await ws_connect(
        url,
        subprotocols=[Subprotocol(p) for p in subprotocols],
        max_size=WS_MAX_MESSAGE_BYTES,
        ping_interval=WS_PING_INTERVAL_S,
        open_timeout=None,
    )


async def _close_quietly(ws: Any, connection_id: str | None) -> None:
    try:
        await ws.close()
    except Exception as e:  # pylint: disable=broad-exception-caught
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "TRANSPORT_CLOSE_FAILED",
            "connection_id": connection_id,
            "error": repr(e),
        })


class RealtimeConnection:
    """
    Session connection to the realtime service.

    Responsibilities:
    - Drive the ConnectionState machine
    - Fetch a credential and open the transport with the realtime subprotocols
    - Configure the session (session.update, optional opening message)
    - Decode inbound frames and route them to the SessionListener

    Non-responsibilities:
    - Retry policy (orchestrator/reconnect.py)
    - Audio devices (audio/bridge.py; released here on disconnect only)
    """

    def __init__(
        self,
        *,
        listener: SessionListener,
        fetch_credential: CredentialSource,
        realtime_url: str,
        open_transport: TransportOpener = open_websocket,
        connect_timeout_s: float = CONNECT_TIMEOUT_S,
    ) -> None:
        self._listener = listener
        self._fetch_credential = fetch_credential
        self._realtime_url = realtime_url
        self._open_transport = open_transport
        self._connect_timeout_s = connect_timeout_s

        self._state = ConnectionState.IDLE
        self._ws: Any | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._credential: Credential | None = None
        self._config: SessionConfig | None = None
        self._session_configured = False
        self._connected_notified = False

        self._attempt = 0
        self._connection_id: str | None = None
        self._audio_bridge: AudioBridge | None = None

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """True once the transport is open and session.update has been sent."""
        return (
            self._state is ConnectionState.OPEN
            and self._ws is not None
            and self._session_configured
        )

    @property
    def connection_id(self) -> str | None:
        return self._connection_id

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def has_credential(self) -> bool:
        return self._credential is not None

    def attach_audio_bridge(self, bridge: "AudioBridge") -> None:
        """Register the bridge whose capture is released on disconnect."""
        self._audio_bridge = bridge

    # -------------------------------------------------------------------------
    # Connect
    # -------------------------------------------------------------------------

    async def connect(self, config: SessionConfig) -> bool:
        """
        Connect and configure a session.

        Returns True on success. On failure reports exactly one on_error
        and returns False. A disconnect() racing the attempt returns False
        without an error callback.
        """
        try:
            await self.establish(config)
        except NotConnected:
            return False
        except RealtimeClientError as e:
            self.report_error(e)
            return False
        return True

    async def establish(self, config: SessionConfig) -> None:
        """
        Raising variant of connect(), used by the retry loop.

        Raises:
            CredentialError, ConnectionTimeout, TransportError on failure.
            NotConnected if disconnect() superseded this attempt.
        """
        if self._state not in RESTARTABLE_STATES or self._ws is not None:
            await self.disconnect()

        self._attempt += 1
        attempt = self._attempt
        self._connection_id = _new_connection_id()
        self._config = config
        self._session_configured = False
        self._set_state(ConnectionState.CONNECTING)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECT_STARTED",
            "connection_id": self._connection_id,
            "url": self._realtime_url,
            "timeout_s": self._connect_timeout_s,
        })

        try:
            credential = await self._fetch_credential(config)
            self._ensure_current(attempt)
            self._credential = credential

            ws = await self._open(credential)
            # Consumed by the handshake
            self._credential = None
            if attempt != self._attempt:
                await _close_quietly(ws, self._connection_id)
                raise NotConnected("connect")
        except NotConnected:
            raise
        except RealtimeClientError as e:
            if attempt == self._attempt:
                self._fail_attempt(e)
            raise

        self._ws = ws
        self._set_state(ConnectionState.OPEN)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "TRANSPORT_OPENED",
            "connection_id": self._connection_id,
        })

        try:
            await self._configure_session(ws, config)
        except ConnectionClosed as e:
            if attempt != self._attempt:
                raise NotConnected("connect") from e
            error = TransportError.from_close(
                getattr(e.rcvd, "code", None),
                getattr(e.rcvd, "reason", None),
            )
            self._ws = None
            await _close_quietly(ws, self._connection_id)
            self._fail_attempt(error)
            raise error from e

        self._ensure_current(attempt)
        self._session_configured = True
        self._recv_task = asyncio.create_task(self._recv_loop(ws, attempt))

        self._connected_notified = True
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECTED",
            "connection_id": self._connection_id,
            "voice": config.voice,
            "opening_message": bool(config.opening_message),
        })
        self._notify("on_connected")

    async def _open(self, credential: Credential) -> Any:
        subprotocols = [
            SUBPROTOCOL_REALTIME_BETA,
            f"{SUBPROTOCOL_TOKEN_PREFIX}{credential.token}",
        ]
        try:
            return await asyncio.wait_for(
                self._open_transport(self._realtime_url, subprotocols),
                timeout=self._connect_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise ConnectionTimeout(self._connect_timeout_s) from e
        except InvalidStatus as e:
            status = e.response.status_code
            classification = (
                CloseClassification.AUTH_OR_POLICY
                if status in (401, 403)
                else CloseClassification.NETWORK_OR_HANDSHAKE
            )
            raise TransportError.from_open_failure(
                classification, f"handshake rejected with HTTP {status}"
            ) from e
        except InvalidURI as e:
            raise TransportError.from_open_failure(
                CloseClassification.NETWORK_OR_HANDSHAKE, f"invalid realtime URL: {e.uri}"
            ) from e
        except InvalidHandshake as e:
            # Handshake errors may echo negotiated subprotocols; keep the token out.
            raise TransportError.from_open_failure(
                CloseClassification.NETWORK_OR_HANDSHAKE, type(e).__name__
            ) from e
        except ssl.SSLError as e:
            raise TransportError.from_open_failure(
                CloseClassification.TLS_FAILURE, type(e).__name__
            ) from e
        except OSError as e:
            raise TransportError.from_open_failure(
                CloseClassification.NETWORK_OR_HANDSHAKE, f"{type(e).__name__}: {e}"
            ) from e

    async def _configure_session(self, ws: Any, config: SessionConfig) -> None:
        await self._send_frame(ws, SessionUpdate(session=config))
        if config.opening_message:
            await self._send_frame(ws, ConversationItemCreate(text=config.opening_message))
            await self._send_frame(ws, ResponseCreate())

    def _ensure_current(self, attempt: int) -> None:
        if attempt != self._attempt:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CONNECT_SUPERSEDED",
                "attempt": attempt,
            })
            raise NotConnected("connect")

    def _fail_attempt(self, error: RealtimeClientError) -> None:
        self._credential = None
        self._session_configured = False
        self._set_state(ConnectionState.FAILED)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECT_FAILED",
            "connection_id": self._connection_id,
            "error_type": type(error).__name__,
            "error": str(error),
        })

    # -------------------------------------------------------------------------
    # Send
    # -------------------------------------------------------------------------

    async def send(self, event: ClientEvent) -> None:
        """
        Send one client event, in call order.

        Raises:
            NotConnected unless the session is open and configured.
        """
        ws = self._ws
        if not self.is_open or ws is None:
            raise NotConnected(f"send {event.TYPE.value}")
        try:
            await self._send_frame(ws, event)
        except ConnectionClosed as e:
            # The receive loop observes the same closure and reports it.
            raise NotConnected(f"send {event.TYPE.value}") from e

    async def _send_frame(self, ws: Any, event: ClientEvent) -> None:
        await ws.send(encode_client_event(event))
        if not isinstance(event, AudioAppend):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CLIENT_EVENT_SENT",
                "connection_id": self._connection_id,
                "type": event.TYPE.value,
            })

    # -------------------------------------------------------------------------
    # Disconnect
    # -------------------------------------------------------------------------

    async def disconnect(self) -> None:
        """
        Tear the session down. Idempotent and safe in every state,
        including from inside a listener callback.
        """
        idle = (
            self._state in RESTARTABLE_STATES
            and self._ws is None
            and self._recv_task is None
        )
        if idle:
            await self._release_audio()
            self._credential = None
            self._config = None
            return

        self._attempt += 1
        self._set_state(ConnectionState.CLOSING)
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "DISCONNECT_REQUESTED",
            "connection_id": self._connection_id,
        })

        await self._teardown()
        self._notify_disconnected()
        self._set_state(ConnectionState.CLOSED)

    async def wait_closed(self) -> None:
        """Wait until the current receive loop (if any) has finished."""
        task = self._recv_task
        if task is not None:
            await asyncio.wait({task})

    async def _teardown(self) -> None:
        await self._release_audio()

        task = self._recv_task
        self._recv_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.wait({task})

        ws = self._ws
        self._ws = None
        self._session_configured = False
        if ws is not None:
            await _close_quietly(ws, self._connection_id)

        self._credential = None
        self._config = None

    async def _release_audio(self) -> None:
        bridge = self._audio_bridge
        if bridge is None:
            return
        try:
            await bridge.release()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "AUDIO_RELEASE_FAILED",
                "connection_id": self._connection_id,
                "error": repr(e),
            })

    # -------------------------------------------------------------------------
    # Receive loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self, ws: Any, attempt: int) -> None:
        failure: RealtimeClientError | None = None
        try:
            async for raw in ws:
                try:
                    event = decode_server_event(raw)
                except ProtocolError as e:
                    log_event({
                        "ts_ms": _now_ms(),
                        "event_type": "FRAME_DROPPED",
                        "connection_id": self._connection_id,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    })
                    continue

                failure = self._dispatch(event)
                if failure is not None or attempt != self._attempt:
                    break
        except asyncio.CancelledError:
            return
        except ConnectionClosed:
            pass
        except Exception as e:  # pylint: disable=broad-exception-caught
            failure = TransportError(
                CloseClassification.NETWORK_OR_HANDSHAKE,
                f"Realtime connection lost ({type(e).__name__}). Please try again.",
            )

        if attempt != self._attempt:
            return

        if failure is None:
            code = getattr(ws, "close_code", None)
            if code != CLOSE_NORMAL:
                failure = TransportError.from_close(code, getattr(ws, "close_reason", None))

        await self._finish(attempt, failure)

    async def _finish(self, attempt: int, failure: RealtimeClientError | None) -> None:
        """Terminal path for a session ended by the server or the network."""
        if failure is not None:
            self._set_state(ConnectionState.FAILED)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SESSION_FAILED",
                "connection_id": self._connection_id,
                "error_type": type(failure).__name__,
                "error": str(failure),
            })
            self._notify("on_error", failure)
            if attempt != self._attempt:
                # The listener called disconnect() from on_error.
                return
        else:
            self._set_state(ConnectionState.CLOSING)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SESSION_CLOSED",
                "connection_id": self._connection_id,
            })

        self._attempt += 1
        await self._teardown()
        self._notify_disconnected()
        self._set_state(ConnectionState.CLOSED)

    def _dispatch(self, event: ServerEvent) -> RealtimeClientError | None:
        """Route one inbound event. Returns the error that ends the session, if any."""
        if isinstance(event, ApiErrorEvent):
            error = ApiError.from_payload(event.raw_error)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "API_ERROR",
                "connection_id": self._connection_id,
                "error_type": event.error_type,
                "code": event.code,
                "message": event.message,
            })
            if error.is_invalid_api_key:
                return error
            self._notify("on_error", error)

        elif isinstance(event, AudioDelta):
            if event.audio:
                self._notify("on_audio_received", event.audio)

        elif isinstance(event, TranscriptDelta):
            self._emit_transcript(event.speaker, event.text, is_final=False)

        elif isinstance(event, TranscriptDone):
            self._emit_transcript(event.speaker, event.text, is_final=True)

        elif isinstance(event, ContentItemAdded):
            self._emit_transcript(Speaker.AI, event.text, is_final=True)

        elif isinstance(event, (SessionCreated, SessionUpdated)):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SERVER_SESSION_EVENT",
                "connection_id": self._connection_id,
                "type": event.event_type,
                "session_id": event.session_id,
            })

        elif isinstance(event, ResponseDone):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "RESPONSE_DONE",
                "connection_id": self._connection_id,
                "status": event.status,
            })

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "SERVER_EVENT_UNHANDLED",
                "connection_id": self._connection_id,
                "type": event.event_type,
            })

        return None

    def _emit_transcript(self, speaker: Speaker, text: str, *, is_final: bool) -> None:
        if not text:
            return
        self._notify(
            "on_transcription_received",
            TranscriptEntry(speaker=speaker, text=text, is_final=is_final),
        )

    # -------------------------------------------------------------------------
    # Listener plumbing
    # -------------------------------------------------------------------------

    def report_error(self, error: RealtimeClientError) -> None:
        """Route an error raised outside the receive loop to the listener."""
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "ERROR_REPORTED",
            "connection_id": self._connection_id,
            "error_type": type(error).__name__,
            "error": str(error),
        })
        self._notify("on_error", error)

    def _notify_disconnected(self) -> None:
        if not self._connected_notified:
            return
        self._connected_notified = False
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "DISCONNECTED",
            "connection_id": self._connection_id,
        })
        self._notify("on_disconnected")

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "CONNECTION_STATE_CHANGED",
            "connection_id": self._connection_id,
            "from": previous.value,
            "to": state.value,
        })
        self._notify("on_state_changed", state)

    def _notify(self, callback_name: str, *args: Any) -> None:
        callback = getattr(self._listener, callback_name)
        try:
            callback(*args)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "LISTENER_CALLBACK_FAILED",
                "connection_id": self._connection_id,
                "callback": callback_name,
                "error": repr(e),
            })
