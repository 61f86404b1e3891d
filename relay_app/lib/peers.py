"""Peer registry for the device and UI WebSocket connections."""

import logging
from typing import Optional, Protocol

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from .livetypes import PeerRole, PeerSendError

logger = logging.getLogger(__name__)


class PeerConnection(Protocol):
    """Protocol for a bidirectional peer channel."""

    @property
    def is_open(self) -> bool:
        """Whether outbound messages can currently be sent."""
        ...

    async def send_json(self, message: dict) -> None:
        """Send a JSON message. Raises PeerSendError on transport failure."""
        ...


class WebSocketPeer:
    """PeerConnection backed by a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket, role: PeerRole):
        self.websocket = websocket
        self.role = role

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, message: dict) -> None:
        try:
            await self.websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            # starlette raises RuntimeError once the socket is closing
            raise PeerSendError(f"{self.role.value} send failed: {e}") from e

    def __repr__(self) -> str:
        client = self.websocket.client
        return f"WebSocketPeer(role={self.role.value}, client={client})"


class PeerRegistry:
    """Holds at most one current connection per peer role.

    A new connection for a role silently supersedes the previous one, and
    a stale connection can never unregister its successor.
    """

    def __init__(self) -> None:
        self._peers: dict[PeerRole, PeerConnection] = {}

    def register(self, role: PeerRole, connection: PeerConnection) -> None:
        """Make connection the current one for role."""
        previous = self._peers.get(role)
        self._peers[role] = connection
        if previous is not None and previous is not connection:
            logger.info(
                "Peer connection superseded",
                extra={"role": role.value},
            )
        else:
            logger.info("Peer connected", extra={"role": role.value})

    def current(self, role: PeerRole) -> Optional[PeerConnection]:
        return self._peers.get(role)

    def clear(self, role: PeerRole, connection: PeerConnection) -> bool:
        """Unregister connection, but only if it is still current for role.

        Returns:
            True if the registration was removed
        """
        if self._peers.get(role) is not connection:
            logger.debug(
                "Ignoring close of a superseded peer connection",
                extra={"role": role.value},
            )
            return False

        del self._peers[role]
        logger.info("Peer disconnected", extra={"role": role.value})
        return True

    def is_connected(self, role: PeerRole) -> bool:
        connection = self._peers.get(role)
        return connection is not None and connection.is_open

    async def send(self, role: PeerRole, message: dict) -> bool:
        """Send message to the current connection for role.

        Never raises: a missing, closed or failing peer drops the message.

        Returns:
            True if the message was handed to an open connection
        """
        connection = self._peers.get(role)
        if connection is None or not connection.is_open:
            logger.debug(
                "No open peer, dropping message",
                extra={"role": role.value},
            )
            return False

        try:
            await connection.send_json(message)
        except PeerSendError as e:
            logger.debug(f"Dropping message: {e}", extra={"role": role.value})
            return False
        return True
