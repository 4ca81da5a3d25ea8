"""Abstract client connection speaking MessagePack frames."""

from abc import ABC, abstractmethod
from typing import Any

from game.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    Abstract interface for one participant's connection.

    The session layer only needs a stable identity and ordered send/receive,
    so handlers can be tested without real WebSocket connections.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Stable opaque identifier for this connection."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None:
        ...

    @abstractmethod
    async def receive_bytes(self) -> bytes:
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """
        Send a message dict encoded as MessagePack.
        """
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        """
        Receive one frame and decode it. Raises DecodeError on bad input.
        """
        return decode(await self.receive_bytes())
