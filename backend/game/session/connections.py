"""Live connection registry with the room each connection sits in."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from game.messaging.protocol import ConnectionProtocol


class ConnectionTracker:
    """Track live connections and the room code each one occupies.

    A connection holds at most one seat at a time. This is the only source
    the disconnect path consults to find the seat to release, so bind() and
    unbind() must be called in the same step as the seat change.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}  # connection_id -> connection
        self._connection_rooms: dict[str, str] = {}  # connection_id -> room code

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        """Forget a connection. Its room binding must already be released."""
        self._connections.pop(connection_id, None)

    def get(self, connection_id: str) -> ConnectionProtocol | None:
        return self._connections.get(connection_id)

    def bind(self, connection_id: str, code: str) -> None:
        current = self._connection_rooms.get(connection_id)
        if current is not None and current != code:
            raise ValueError(f"connection {connection_id} is already bound to room {current}")
        self._connection_rooms[connection_id] = code

    def unbind(self, connection_id: str) -> str | None:
        """Release a connection's room binding. Returns the room code, or None."""
        return self._connection_rooms.pop(connection_id, None)

    def room_of(self, connection_id: str) -> str | None:
        return self._connection_rooms.get(connection_id)

    def is_seated(self, connection_id: str) -> bool:
        return connection_id in self._connection_rooms

    @property
    def count(self) -> int:
        return len(self._connections)
