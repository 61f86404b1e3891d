"""Session relay - routes device audio upstream and transcripts back to the peers.

Every input (device audio, UI commands, transcriber messages and closes,
session open results) becomes an event on one queue, handled in order by a
single loop. Transcriber events carry the generation of the session that
produced them and are ignored once that session has been replaced.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .livetypes import PeerRole, TranscriberError
from .peers import PeerRegistry
from .protocols import peers as messages
from .protocols.assemblyai import (
    StreamingConfig,
    TranscriberMessage,
    TranscriberMessageType,
)
from .transcription.session import TranscriptionSession
from .transport.assemblyai_client import TranscriptionClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceAudio:
    """Raw audio frame received from the device."""

    data: bytes


@dataclass(frozen=True)
class UiCommandReceived:
    """A validated "start" or "stop" from the UI."""

    command: str


@dataclass(frozen=True)
class TranscriberEvent:
    """Decoded message from the client of session `generation`."""

    generation: int
    message: TranscriberMessage


@dataclass(frozen=True)
class TranscriberClosed:
    """Close of the client of session `generation`; error is set for abnormal closes."""

    generation: int
    error: Optional[str] = None


@dataclass(frozen=True)
class SessionOpened:
    generation: int
    client: TranscriptionClient


@dataclass(frozen=True)
class SessionOpenFailed:
    generation: int
    error: Exception


RelayEvent = Union[
    DeviceAudio,
    UiCommandReceived,
    TranscriberEvent,
    TranscriberClosed,
    SessionOpened,
    SessionOpenFailed,
]

ClientFactory = Callable[[int], TranscriptionClient]


class SessionRelay:
    """Relay between the device, the UI and the streaming transcriber.

    Owns the peer registry and at most one TranscriptionSession.

    Usage:
        relay = SessionRelay(StreamingConfig.from_env())
        await relay.start()

        relay.registry.register(PeerRole.UI, ui_peer)
        relay.submit_command("start")
        relay.submit_audio(pcm_bytes)
        ...
        await relay.shutdown()
    """

    def __init__(
        self,
        config: StreamingConfig,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        """Initialize the relay.

        Args:
            config: Streaming configuration used for every session
            client_factory: Builds the client for a new session generation
        """
        self.config = config
        self.registry = PeerRegistry()
        self._client_factory = client_factory or self._default_client_factory
        self._generations = itertools.count(1)
        self._session: Optional[TranscriptionSession] = None
        self._events: Optional[asyncio.Queue[RelayEvent]] = None
        self._task: Optional[asyncio.Task] = None

    def _default_client_factory(self, generation: int) -> TranscriptionClient:
        return TranscriptionClient(self.config, generation=generation)

    @property
    def session(self) -> Optional[TranscriptionSession]:
        return self._session

    @property
    def session_active(self) -> bool:
        return self._session is not None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the event loop."""
        if self.is_running:
            return

        self._events = asyncio.Queue()
        self._task = asyncio.create_task(self._run())
        logger.info("Session relay started")

    async def shutdown(self) -> None:
        """Stop the event loop and close any open upstream session."""
        logger.info("Shutting down session relay")
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._events = None

        session, self._session = self._session, None
        if session:
            session.cancel_opening()
            await session.client.terminate()
            session.buffer.reset()

        logger.info("Session relay shutdown complete")

    def submit(self, event: RelayEvent) -> None:
        """Queue an event for the relay loop."""
        if self._events is None:
            logger.warning(
                "Relay not running, dropping event",
                extra={"event": type(event).__name__},
            )
            return
        self._events.put_nowait(event)

    def submit_audio(self, data: bytes) -> None:
        self.submit(DeviceAudio(data))

    def submit_command(self, command: str) -> None:
        self.submit(UiCommandReceived(command))

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._events is not None:
            await self._events.join()

    async def _run(self) -> None:
        assert self._events is not None
        events = self._events
        while True:
            event = await events.get()
            try:
                await self.handle(event)
            except Exception as e:
                logger.exception(
                    "Error handling relay event",
                    exc_info=e,
                    extra={"event": type(event).__name__},
                )
            finally:
                events.task_done()

    async def handle(self, event: RelayEvent) -> None:
        """Apply one event. Called only from the relay loop (or tests)."""
        if isinstance(event, DeviceAudio):
            await self._forward_audio(event.data)
        elif isinstance(event, UiCommandReceived):
            await self._handle_command(event.command)
        elif isinstance(event, TranscriberEvent):
            await self._handle_transcriber_message(event)
        elif isinstance(event, TranscriberClosed):
            await self._handle_transcriber_closed(event)
        elif isinstance(event, SessionOpened):
            await self._handle_session_opened(event)
        elif isinstance(event, SessionOpenFailed):
            await self._handle_session_open_failed(event)
        else:
            raise TypeError(f"Unknown relay event: {event!r}")

    def _current(self, generation: int) -> Optional[TranscriptionSession]:
        session = self._session
        if session is None or session.generation != generation:
            return None
        return session

    async def _broadcast(self, ui_message: dict, device_message: dict) -> None:
        await self.registry.send(PeerRole.UI, ui_message)
        await self.registry.send(PeerRole.DEVICE, device_message)

    async def _forward_audio(self, data: bytes) -> None:
        session = self._session
        if session is None or not session.is_open:
            logger.debug("No open session, dropping device audio")
            return
        await session.client.send_audio(data)

    async def _handle_command(self, command: str) -> None:
        if command == "start":
            await self._start_session()
        elif command == "stop":
            await self._stop_session()
        else:
            logger.warning(f"Ignoring unknown UI command: {command!r}")

    async def _start_session(self) -> None:
        if self._session is not None:
            logger.info(
                "Start received during an active session, stopping it first",
                extra={"generation": self._session.generation},
            )
            await self._stop_session()

        generation = next(self._generations)
        client = self._client_factory(generation)
        session = TranscriptionSession(generation=generation, client=client)

        async def on_event(message: TranscriberMessage) -> None:
            self.submit(TranscriberEvent(generation, message))

        async def on_close() -> None:
            self.submit(TranscriberClosed(generation, client.close_error))

        client.on_event(on_event)
        client.on_close(on_close)

        session.buffer.reset()
        self._session = session
        session.opening_task = asyncio.create_task(self._open_client(session))
        logger.info(
            "Starting transcription session",
            extra={"generation": generation},
        )

    async def _open_client(self, session: TranscriptionSession) -> None:
        """Open the session's client off the relay loop and report the result."""
        try:
            await session.client.open(self.config.sample_rate)
        except TranscriberError as e:
            self.submit(SessionOpenFailed(session.generation, e))
            return
        except Exception as e:
            logger.exception(
                "Unexpected error opening transcription client",
                exc_info=e,
                extra={"generation": session.generation},
            )
            self.submit(SessionOpenFailed(session.generation, e))
            return

        self.submit(SessionOpened(session.generation, session.client))

    async def _stop_session(self) -> None:
        session = self._session
        if session is None:
            return

        self._session = None
        session.cancel_opening()
        await self.registry.send(PeerRole.DEVICE, messages.device_stop())
        await session.client.terminate()
        await self.registry.send(PeerRole.UI, messages.ui_stop())
        session.buffer.reset()
        logger.info(
            "Stopped transcription session",
            extra={"generation": session.generation},
        )

    async def _handle_session_opened(self, event: SessionOpened) -> None:
        session = self._current(event.generation)
        if session is None:
            logger.debug(
                "Closing client of a superseded session",
                extra={"generation": event.generation},
            )
            await event.client.terminate()
            return

        session.opening_task = None
        logger.info(
            "Transcription session connected, waiting for Begin",
            extra={"generation": event.generation},
        )

    async def _handle_session_open_failed(self, event: SessionOpenFailed) -> None:
        session = self._current(event.generation)
        if session is None:
            return

        self._session = None
        session.opening_task = None
        session.buffer.reset()
        logger.error(
            f"Failed to start transcription session: {event.error}",
            extra={"generation": event.generation},
        )
        await self.registry.send(
            PeerRole.UI, messages.ui_error(f"Session start failed: {event.error}")
        )

    async def _handle_transcriber_message(self, event: TranscriberEvent) -> None:
        session = self._current(event.generation)
        if session is None:
            logger.debug(
                "Ignoring message from a superseded session",
                extra={"generation": event.generation},
            )
            return

        msg = event.message
        if msg.type == TranscriberMessageType.BEGIN:
            logger.info(
                "AssemblyAI streaming begun",
                extra={"generation": event.generation},
            )
            await self._broadcast(messages.ui_start(), messages.device_start())

        elif msg.type == TranscriberMessageType.TURN:
            session.buffer.put(msg.turn_order, msg.transcript)
            text = session.buffer.render()
            logger.info(
                f"Turn {msg.turn_order}: {msg.transcript}",
                extra={"generation": event.generation, "turn_order": msg.turn_order},
            )
            await self._broadcast(messages.ui_transcript(text), messages.device_text(text))

        else:
            logger.info(f"AssemblyAI message: {msg.raw[:200]}")

    async def _handle_transcriber_closed(self, event: TranscriberClosed) -> None:
        session = self._current(event.generation)
        if session is None:
            logger.debug(
                "Ignoring close of a superseded session",
                extra={"generation": event.generation},
            )
            return

        self._session = None
        session.buffer.reset()
        if event.error:
            logger.error(
                f"AssemblyAI stream failed, ending session: {event.error}",
                extra={"generation": event.generation},
            )
            await self.registry.send(PeerRole.UI, messages.ui_error(event.error))
        else:
            logger.info(
                "AssemblyAI stream closed, ending session",
                extra={"generation": event.generation},
            )
        await self._broadcast(messages.ui_stop(), messages.device_stop())
