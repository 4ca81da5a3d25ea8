from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from game.messaging.types import (
    CreateRoomMessage,
    ErrorMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    MoveMessage,
    PingMessage,
    SessionErrorCode,
    UndoMessage,
    dump_message,
    parse_client_message,
)

if TYPE_CHECKING:
    from game.messaging.protocol import ConnectionProtocol
    from game.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes each inbound message to exactly one SessionManager operation.

    Holds no state of its own and can be tested without real WebSocket
    connections. Messages may arrive in any order relative to session
    state; the manager turns every such mismatch into an error reply.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await self._send_error(connection, SessionErrorCode.INVALID_MESSAGE, str(e))
            return

        try:
            await self._dispatch(connection, message)
        except Exception:
            logger.exception("unexpected error handling message", connection_id=connection.connection_id)
            await self._send_error(connection, SessionErrorCode.ACTION_FAILED, "Internal error")

    async def _dispatch(
        self,
        connection: ConnectionProtocol,
        message: CreateRoomMessage | JoinRoomMessage | MoveMessage | UndoMessage | LeaveRoomMessage | PingMessage,
    ) -> None:
        if isinstance(message, CreateRoomMessage):
            await self._session_manager.create_room(connection)
        elif isinstance(message, JoinRoomMessage):
            await self._session_manager.join_room(connection, message.code)
        elif isinstance(message, MoveMessage):
            await self._session_manager.submit_move(
                connection,
                message.code,
                message.from_square,
                message.to_square,
                message.promotion,
            )
        elif isinstance(message, UndoMessage):
            await self._session_manager.undo(connection, message.code)
        elif isinstance(message, LeaveRoomMessage):
            await self._session_manager.leave(connection)
        elif isinstance(message, PingMessage):
            await self._session_manager.handle_ping(connection)

    @staticmethod
    async def _send_error(connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        await connection.send_message(dump_message(ErrorMessage(code=code, message=message)))

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        try:
            await self._session_manager.leave(connection, notify_player=False)
        finally:
            self._session_manager.unregister_connection(connection)
