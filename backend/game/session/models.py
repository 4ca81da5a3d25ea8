import asyncio
import time
from dataclasses import dataclass, field
from enum import StrEnum

from game.rules.engine import RulesEngine
from game.rules.types import AppliedMove, MoveRejected, Side
from game.session.exceptions import (
    AlreadyInRoomError,
    GameNotActiveError,
    IllegalMoveError,
    NoMoveHistoryError,
    NotAParticipantError,
    NotYourTurnError,
    RoomFullError,
    RoomNotFoundError,
)
from game.session.types import RoomInfo


class SessionPhase(StrEnum):
    EMPTY = "empty"
    AWAITING_OPPONENT = "awaiting_opponent"
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CLOSED = "closed"


@dataclass
class Seat:
    """One of the two fixed slots of a session, bound to a side.

    A seat is claimed at most once. When its occupant leaves it is marked
    vacated and never handed to another connection.
    """

    side: Side
    connection_id: str | None = None
    vacated: bool = False

    @property
    def is_occupied(self) -> bool:
        return self.connection_id is not None

    @property
    def is_claimed(self) -> bool:
        return self.is_occupied or self.vacated


@dataclass
class Session:
    """One two-seat game keyed by a room code.

    Lifecycle:
    - Created by the registry with both seats open (EMPTY)
    - First join fills ``first`` (AWAITING_OPPONENT)
    - Second join fills ``second`` (ACTIVE)
    - A leave from ACTIVE vacates that seat (ABANDONED)
    - The registry destroys it when no occupant is left (CLOSED)

    The side to move is always read from the engine. Methods validate
    before mutating and raise a SessionError on rejection, so a rejected
    call leaves the session untouched.
    """

    code: str
    engine: RulesEngine
    first: Seat = field(default_factory=lambda: Seat(side=Side.FIRST))
    second: Seat = field(default_factory=lambda: Seat(side=Side.SECOND))
    closed: bool = False
    last_activity_at: float = field(default_factory=time.monotonic)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def seats(self) -> tuple[Seat, Seat]:
        return (self.first, self.second)

    def seat(self, side: Side) -> Seat:
        return self.first if side is Side.FIRST else self.second

    @property
    def occupants(self) -> dict[Side, str]:
        return {seat.side: seat.connection_id for seat in self.seats if seat.connection_id is not None}

    @property
    def occupant_count(self) -> int:
        return len(self.occupants)

    @property
    def is_empty(self) -> bool:
        return self.occupant_count == 0

    @property
    def is_full(self) -> bool:
        """Both seats have been claimed at some point."""
        return all(seat.is_claimed for seat in self.seats)

    @property
    def phase(self) -> SessionPhase:
        if self.closed:
            return SessionPhase.CLOSED
        if not self.is_full:
            return SessionPhase.EMPTY if self.is_empty else SessionPhase.AWAITING_OPPONENT
        if self.occupant_count == len(self.seats):
            return SessionPhase.ACTIVE
        return SessionPhase.ABANDONED

    @property
    def side_to_move(self) -> Side:
        return self.engine.side_to_move()

    def seat_of(self, connection_id: str) -> Side | None:
        for seat in self.seats:
            if seat.connection_id == connection_id:
                return seat.side
        return None

    def join(self, connection_id: str) -> Side:
        """Seat a connection in the next open seat, first before second."""
        if self.closed:
            raise RoomNotFoundError
        if self.seat_of(connection_id) is not None:
            raise AlreadyInRoomError
        if any(seat.vacated for seat in self.seats):
            raise RoomFullError
        for seat in self.seats:
            if not seat.is_claimed:
                seat.connection_id = connection_id
                self.touch()
                return seat.side
        raise RoomFullError

    def submit_move(
        self,
        connection_id: str,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> AppliedMove:
        side = self._require_participant(connection_id)
        self._require_active()
        if side is not self.side_to_move:
            raise NotYourTurnError
        result = self.engine.try_apply_move(from_square, to_square, promotion)
        if isinstance(result, MoveRejected):
            raise IllegalMoveError(result.reason)
        self.touch()
        return result

    def undo(self, connection_id: str) -> AppliedMove:
        """Revert the most recent move. Either participant may undo."""
        self._require_participant(connection_id)
        self._require_active()
        reverted = self.engine.undo_last()
        if reverted is None:
            raise NoMoveHistoryError
        self.touch()
        return reverted

    def leave(self, connection_id: str) -> Side | None:
        """Vacate the connection's seat. Returns the side it held, or None."""
        side = self.seat_of(connection_id)
        if side is None:
            return None
        seat = self.seat(side)
        seat.connection_id = None
        seat.vacated = True
        self.touch()
        return side

    def touch(self) -> None:
        self.last_activity_at = time.monotonic()

    def idle_for(self, now: float | None = None) -> float:
        return (now if now is not None else time.monotonic()) - self.last_activity_at

    def get_info(self) -> RoomInfo:
        return RoomInfo(
            code=self.code,
            phase=self.phase,
            occupant_count=self.occupant_count,
            side_to_move=self.side_to_move,
            moves_played=len(self.engine.history()),
        )

    def _require_participant(self, connection_id: str) -> Side:
        side = self.seat_of(connection_id)
        if side is None:
            raise NotAParticipantError
        return side

    def _require_active(self) -> None:
        if self.phase is not SessionPhase.ACTIVE:
            raise GameNotActiveError
