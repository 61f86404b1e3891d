"""Transcription session - the state the relay keeps for one active session.

A session is replaced wholesale when a new one starts; the generation tags
every event its client produces so late events from a replaced client can
be recognised and dropped.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from ..transport.assemblyai_client import TranscriptionClient
from .turn_buffer import TurnBuffer


@dataclass
class TranscriptionSession:
    """One start..stop period.

    Owns the upstream client handle and the turn buffer for that period.
    """

    generation: int
    client: TranscriptionClient
    buffer: TurnBuffer = field(default_factory=TurnBuffer)

    # Task running client.open(); None once the relay has seen the result
    opening_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def is_open(self) -> bool:
        return self.client.is_open

    def cancel_opening(self) -> None:
        """Abort a client.open() that has not completed yet."""
        if self.opening_task and not self.opening_task.done():
            self.opening_task.cancel()
        self.opening_task = None
