from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from game.messaging.types import (
    BoardUpdateMessage,
    ErrorMessage,
    GameStartMessage,
    InvalidMoveMessage,
    PongMessage,
    RoomCreatedMessage,
    RoomLeftMessage,
    SessionErrorCode,
    dump_message,
)
from game.session.broadcast import broadcast_to_connections
from game.session.connections import ConnectionTracker
from game.session.exceptions import (
    AlreadyInRoomError,
    IllegalMoveError,
    RoomNotFoundError,
    ServerAtCapacityError,
    SessionError,
)
from game.session.models import SessionPhase
from game.session.registry import SessionRegistry, normalize_code

if TYPE_CHECKING:
    from pydantic import BaseModel

    from game.messaging.protocol import ConnectionProtocol
    from game.session.models import Session
    from game.session.types import RoomInfo

logger = structlog.get_logger()

DEFAULT_MAX_ROOMS = 100
DEFAULT_REAPER_INTERVAL_SECONDS = 30.0


class SessionManager:
    """Run room and move operations and deliver their results.

    Every operation that touches a session holds that session's lock from
    validation through broadcast, and re-checks that the session is still
    registered once the lock is acquired. Broadcasts of accepted moves
    therefore reach both seats in acceptance order. Rejections are sent to
    the originating connection only and leave the session unchanged.
    """

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        tracker: ConnectionTracker | None = None,
        *,
        max_rooms: int = DEFAULT_MAX_ROOMS,
        idle_room_ttl_seconds: float = 0,
        reaper_interval_seconds: float = DEFAULT_REAPER_INTERVAL_SECONDS,
    ) -> None:
        self._registry = registry if registry is not None else SessionRegistry()
        self._tracker = tracker if tracker is not None else ConnectionTracker()
        self._max_rooms = max_rooms
        self._idle_room_ttl_seconds = idle_room_ttl_seconds
        self._reaper_interval_seconds = reaper_interval_seconds
        self._reaper_task: asyncio.Task[None] | None = None

    # --- Connections ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._tracker.register(connection)

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._tracker.unregister(connection.connection_id)

    @property
    def connection_count(self) -> int:
        return self._tracker.count

    # --- Queries ---

    def get_session(self, code: str) -> Session | None:
        return self._registry.lookup(code)

    @property
    def room_count(self) -> int:
        return self._registry.count

    def get_rooms_info(self) -> list[RoomInfo]:
        return [session.get_info() for session in self._registry.sessions()]

    # --- Operations ---

    async def create_room(self, connection: ConnectionProtocol) -> None:
        """Open a new session and seat the creator first."""
        connection_id = connection.connection_id
        try:
            if self._tracker.is_seated(connection_id):
                raise AlreadyInRoomError
            if self._registry.count >= self._max_rooms:
                raise ServerAtCapacityError
            session = self._registry.create_session()
            side = session.join(connection_id)
            self._tracker.bind(connection_id, session.code)
        except SessionError as e:
            await self._send_error(connection, e)
            return

        logger.info("room created", room_code=session.code, connection_id=connection_id, side=side)
        await self._send(connection, RoomCreatedMessage(code=session.code, side=side))

    async def join_room(self, connection: ConnectionProtocol, code: str) -> None:
        """Seat a connection in an existing session; start the game when it fills."""
        connection_id = connection.connection_id
        try:
            session = self._resolve(code)
            async with session.lock:
                self._ensure_registered(session)
                if self._tracker.is_seated(connection_id):
                    raise AlreadyInRoomError
                side = session.join(connection_id)
                self._tracker.bind(connection_id, session.code)
                logger.info("player joined room", room_code=session.code, connection_id=connection_id, side=side)
                if session.phase is SessionPhase.ACTIVE:
                    await self._broadcast_game_start(session)
        except SessionError as e:
            logger.info("join rejected", room_code=code, connection_id=connection_id, reason=e.code)
            await self._send_error(connection, e)

    async def submit_move(
        self,
        connection: ConnectionProtocol,
        code: str,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> None:
        """Validate and apply a move, then broadcast the new state to both seats."""
        connection_id = connection.connection_id
        try:
            session = self._resolve(code)
            async with session.lock:
                self._ensure_registered(session)
                applied = session.submit_move(connection_id, from_square, to_square, promotion)
                outcome = session.engine.outcome()
                logger.info(
                    "move applied",
                    room_code=session.code,
                    side=applied.side,
                    move=applied.uci,
                    result=outcome.result if outcome else None,
                )
                await self._broadcast(
                    session,
                    BoardUpdateMessage(
                        code=session.code,
                        state=session.engine.current_state(),
                        side_to_move=session.side_to_move,
                        move=applied,
                        outcome=outcome,
                    ),
                )
        except IllegalMoveError as e:
            await self._send(
                connection,
                InvalidMoveMessage(
                    code=normalize_code(code),
                    from_square=from_square,
                    to_square=to_square,
                    reason=e.message,
                ),
            )
        except SessionError as e:
            logger.info("move rejected", room_code=code, connection_id=connection_id, reason=e.code)
            await self._send_error(connection, e)

    async def undo(self, connection: ConnectionProtocol, code: str) -> None:
        """Revert the last move and broadcast the reverted state to both seats."""
        connection_id = connection.connection_id
        try:
            session = self._resolve(code)
            async with session.lock:
                self._ensure_registered(session)
                reverted = session.undo(connection_id)
                logger.info("move undone", room_code=session.code, connection_id=connection_id, move=reverted.uci)
                await self._broadcast(
                    session,
                    BoardUpdateMessage(
                        code=session.code,
                        state=session.engine.current_state(),
                        side_to_move=session.side_to_move,
                        undone=reverted,
                    ),
                )
        except SessionError as e:
            logger.info("undo rejected", room_code=code, connection_id=connection_id, reason=e.code)
            await self._send_error(connection, e)

    async def leave(self, connection: ConnectionProtocol, *, notify_player: bool = True) -> None:
        """Release the connection's seat.

        The remaining occupant, if any, is told the opponent disconnected; the
        session is destroyed when nobody is left. Vacated seats are never
        re-opened, so an abandoned game cannot be resumed.
        """
        connection_id = connection.connection_id
        code = self._tracker.room_of(connection_id)
        if code is None:
            return

        session = self._registry.lookup(code)
        if session is None:
            # session already gone; drop the stale binding
            self._tracker.unbind(connection_id)
            return

        async with session.lock:
            self._tracker.unbind(connection_id)
            if self._registry.lookup(code) is not session:
                return
            side = session.leave(connection_id)
            if session.is_empty:
                self._registry.destroy(code)
                remaining = []
            else:
                remaining = self._connections_of(session)
            logger.info("player left room", room_code=code, connection_id=connection_id, side=side)

            if notify_player:
                with contextlib.suppress(ConnectionError, RuntimeError, OSError):
                    await self._send(connection, RoomLeftMessage(code=code))

            if remaining:
                await broadcast_to_connections(
                    remaining,
                    dump_message(
                        ErrorMessage(
                            code=SessionErrorCode.OPPONENT_DISCONNECTED,
                            message="Opponent disconnected",
                        ),
                    ),
                )

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await self._send(connection, PongMessage())

    # --- Idle room reaper ---

    def start_reaper(self) -> None:
        """Start the periodic idle-session reaper. Idempotent; no-op when the TTL is 0."""
        if self._idle_room_ttl_seconds <= 0:
            return
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(self._reaper_loop())

    async def stop_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _reaper_loop(self) -> None:  # pragma: no cover
        while True:
            await asyncio.sleep(self._reaper_interval_seconds)
            try:
                await self._reap_idle_sessions()
            except Exception:
                logger.exception("session reaper encountered an error")

    async def _reap_idle_sessions(self) -> None:
        """Destroy sessions with no activity for longer than the TTL.

        Candidates are re-checked under their lock, since a move may have
        landed while the reaper was waiting for it.
        """
        ttl = self._idle_room_ttl_seconds
        candidates = [s for s in self._registry.sessions() if s.idle_for() > ttl]
        for session in candidates:
            async with session.lock:
                if self._registry.lookup(session.code) is not session or session.idle_for() <= ttl:
                    continue
                occupants = self._connections_of(session)
                for connection_id in session.occupants.values():
                    self._tracker.unbind(connection_id)
                self._registry.destroy(session.code)
                logger.info("room expired", room_code=session.code, idle_seconds=round(session.idle_for()))

            await broadcast_to_connections(
                occupants,
                dump_message(ErrorMessage(code=SessionErrorCode.ROOM_EXPIRED, message="Room closed for inactivity")),
            )

    # --- Internal helpers ---

    def _resolve(self, code: str) -> Session:
        session = self._registry.lookup(code)
        if session is None:
            raise RoomNotFoundError
        return session

    def _ensure_registered(self, session: Session) -> None:
        """Re-check after acquiring the lock: the session may have been destroyed meanwhile."""
        if self._registry.lookup(session.code) is not session:
            raise RoomNotFoundError

    def _connections_of(self, session: Session) -> list[ConnectionProtocol]:
        """Live connections of the seated participants, first seat first."""
        connections = []
        for connection_id in session.occupants.values():
            connection = self._tracker.get(connection_id)
            if connection is not None:
                connections.append(connection)
        return connections

    async def _broadcast_game_start(self, session: Session) -> None:
        first = session.first.connection_id
        second = session.second.connection_id
        if first is None or second is None:  # pragma: no cover
            return
        state = session.engine.current_state()
        for side, connection_id in session.occupants.items():
            connection = self._tracker.get(connection_id)
            if connection is None:
                continue
            with contextlib.suppress(ConnectionError, RuntimeError, OSError):
                await self._send(
                    connection,
                    GameStartMessage(
                        code=session.code,
                        state=state,
                        first=first,
                        second=second,
                        side=side,
                        side_to_move=session.side_to_move,
                    ),
                )

    async def _broadcast(self, session: Session, message: BaseModel) -> None:
        await broadcast_to_connections(self._connections_of(session), dump_message(message))

    @staticmethod
    async def _send(connection: ConnectionProtocol, message: BaseModel) -> None:
        await connection.send_message(dump_message(message))

    @staticmethod
    async def _send_error(connection: ConnectionProtocol, error: SessionError) -> None:
        await connection.send_message(dump_message(ErrorMessage(code=error.code, message=error.message)))
