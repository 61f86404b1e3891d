"""AssemblyAI streaming WebSocket client.

This module handles one upstream streaming connection: fetching the
short-lived credential, opening the stream, forwarding audio and
delivering decoded messages. It separates I/O concerns from the relay
logic.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import aiohttp
import websockets
from websockets import ClientConnection

from ..constants import (
    STREAM_CLOSE_TIMEOUT,
    STREAM_CONNECT_TIMEOUT,
    STREAM_PING_INTERVAL,
    STREAM_PING_TIMEOUT,
    TOKEN_EXPIRES_IN_SECONDS,
    TOKEN_TIMEOUT,
)
from ..livetypes import ClientState, ConnectError, CredentialError, DecodeError
from ..protocols.assemblyai import (
    StreamingConfig,
    TranscriberMessage,
    create_terminate_message,
    get_token_params,
    parse_token_response,
    parse_transcriber_message,
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[TranscriberMessage], Awaitable[None]]
CloseHandler = Callable[[], Awaitable[None]]


def describe_close(exc: websockets.ConnectionClosed) -> str:
    """Human-readable cause of an abnormal stream close."""
    if exc.rcvd is None:
        return "Transcriber connection lost"
    return f"Transcriber closed the stream ({exc.rcvd.code}): {exc.rcvd.reason or 'no reason'}"


class TranscriptionClient:
    """Single-use handle for one AssemblyAI streaming session.

    Usage:
        client = TranscriptionClient(StreamingConfig.from_env())
        client.on_event(handle_message)
        client.on_close(handle_close)

        await client.open()
        await client.send_audio(pcm_bytes)
        ...
        await client.terminate()

    The close handler runs exactly once for a handle that reached Open,
    whatever closed it; close_error is set before it runs when the close
    was abnormal. A handle that failed to open raises instead and never
    calls it.
    """

    def __init__(
        self,
        config: StreamingConfig,
        generation: int = 0,
        token_timeout: float = TOKEN_TIMEOUT,
        connect_timeout: float = STREAM_CONNECT_TIMEOUT,
        close_timeout: float = STREAM_CLOSE_TIMEOUT,
    ):
        """Initialize the client.

        Args:
            config: Streaming configuration with the API key
            generation: Session generation this handle belongs to
            token_timeout: Timeout for the credential request
            connect_timeout: Timeout for the streaming handshake
            close_timeout: Longest wait for the closing handshake in terminate()
        """
        self.config = config
        self.generation = generation
        self.token_timeout = token_timeout
        self.connect_timeout = connect_timeout
        self.close_timeout = close_timeout
        self.sample_rate = config.sample_rate

        self.state = ClientState.IDLE
        # Set when the stream ended abnormally (error close code or receive failure)
        self.close_error: Optional[str] = None
        self._ws: Optional[ClientConnection] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._event_handler: Optional[EventHandler] = None
        self._close_handler: Optional[CloseHandler] = None
        self._close_notified = False

    @property
    def is_open(self) -> bool:
        return self.state == ClientState.OPEN

    def on_event(self, handler: EventHandler) -> None:
        """Register the handler for decoded inbound messages."""
        self._event_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        """Register the handler called once when the stream closes."""
        self._close_handler = handler

    async def fetch_token(self) -> str:
        """Request a temporary streaming credential.

        Raises:
            CredentialError: If the request fails, times out or returns no token
        """
        if not self.config.is_configured():
            raise CredentialError("AssemblyAI not configured. Set ASSEMBLYAI_API_KEY.")

        timeout = aiohttp.ClientTimeout(total=self.token_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    self.config.token_url,
                    params=get_token_params(TOKEN_EXPIRES_IN_SECONDS),
                    headers=self.config.headers,
                ) as resp:
                    resp.raise_for_status()
                    data = await resp.json(content_type=None)
        except aiohttp.ClientResponseError as e:
            raise CredentialError(f"Token request rejected: HTTP {e.status}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise CredentialError(f"Token request failed: {e!r}") from e
        except ValueError as e:
            raise CredentialError("Token response is not valid JSON") from e

        try:
            return parse_token_response(data)
        except ValueError as e:
            raise CredentialError(str(e)) from e

    async def open(self, sample_rate: Optional[int] = None) -> None:
        """Fetch a credential and open the streaming connection.

        Returns once the transport is open; the handle is never left
        half-open.

        Args:
            sample_rate: Rate of the audio that will be sent; defaults to
                the configured rate

        Raises:
            CredentialError: If no credential could be obtained
            ConnectError: If the streaming handshake did not complete
        """
        if self.state != ClientState.IDLE:
            raise RuntimeError(f"Transcription client already used ({self.state.value})")

        if sample_rate:
            self.sample_rate = sample_rate
        self.state = ClientState.OPENING
        try:
            token = await self.fetch_token()
            self._ws = await self._establish_connection(token)
        except BaseException:
            self.state = ClientState.CLOSED
            raise

        self.state = ClientState.OPEN
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.info(
            "Connected to AssemblyAI streaming",
            extra={"generation": self.generation, "sample_rate": self.sample_rate},
        )

    async def _establish_connection(self, token: str) -> ClientConnection:
        """Establish WebSocket connection.

        Internal method - use open() for proper lifecycle management.
        """
        logger.info(
            f"Connecting to AssemblyAI streaming at {self.config.host}",
            extra={"generation": self.generation},
        )
        try:
            return await asyncio.wait_for(
                websockets.connect(
                    self.config.stream_url(token, self.sample_rate),
                    open_timeout=self.connect_timeout,
                    ping_interval=STREAM_PING_INTERVAL,
                    ping_timeout=STREAM_PING_TIMEOUT,
                    close_timeout=self.close_timeout,
                    max_size=None,
                ),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
            raise ConnectError(f"Streaming handshake failed: {e!r}") from e

    async def send_audio(self, audio_bytes: bytes) -> bool:
        """Forward raw audio bytes verbatim.

        Returns:
            True if sent, False if the handle is not open (audio dropped)
        """
        if self.state != ClientState.OPEN or self._ws is None:
            return False

        try:
            await self._ws.send(audio_bytes)
            return True
        except websockets.ConnectionClosed:
            self.state = ClientState.CLOSED
            return False

    async def terminate(self) -> None:
        """Send the Terminate control frame and close the transport.

        Idempotent. Audio is refused from the moment this is called; the
        close handler runs from the receive loop, not from here.
        """
        if self.state != ClientState.OPEN or self._ws is None:
            return

        self.state = ClientState.CLOSED
        ws = self._ws
        try:
            await ws.send(create_terminate_message())
        except websockets.ConnectionClosed:
            pass
        try:
            await ws.close()
        except Exception as e:
            logger.debug(
                f"Error closing AssemblyAI stream: {e}",
                extra={"generation": self.generation},
            )

    async def wait_closed(self) -> None:
        """Wait until the receive loop has finished (and notified close)."""
        if self._receive_task:
            await asyncio.shield(self._receive_task)

    async def _receive_loop(self) -> None:
        """Decode inbound frames and deliver them in arrival order."""
        assert self._ws is not None
        try:
            async for raw_message in self._ws:
                try:
                    msg = parse_transcriber_message(raw_message)
                except DecodeError as e:
                    logger.debug(
                        f"Dropping malformed transcriber frame: {e}",
                        extra={"generation": self.generation},
                    )
                    continue

                if self._event_handler:
                    await self._event_handler(msg)

        except websockets.ConnectionClosedOK as e:
            logger.info(f"AssemblyAI connection closed: {e}")
        except websockets.ConnectionClosed as e:
            self.close_error = describe_close(e)
            logger.warning(
                f"AssemblyAI connection closed with error: {self.close_error}",
                extra={"generation": self.generation},
            )
        except Exception as e:
            self.close_error = f"Error receiving transcriber messages: {e}"
            logger.error(
                f"Error receiving AssemblyAI messages: {e}",
                extra={"generation": self.generation},
            )
        finally:
            self.state = ClientState.CLOSED
            await self._notify_closed()

    async def _notify_closed(self) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        logger.info("AssemblyAI stream closed", extra={"generation": self.generation})
        if self._close_handler:
            await self._close_handler()
