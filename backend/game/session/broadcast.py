"""Send one message to every seated connection of a session."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from game.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
) -> None:
    """Send to each connection in order.

    A failed send to one seat must not stop delivery to the other, so
    transport errors are suppressed per recipient.
    """
    for connection in list(connections):
        with contextlib.suppress(ConnectionError, RuntimeError, OSError):
            await connection.send_message(message)
