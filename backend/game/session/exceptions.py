"""Typed rejections raised by the session layer.

Session and SessionRegistry raise these before mutating anything; the
SessionManager catches them and reports the error to the originating
connection only. None of them is fatal to the process.
"""

from game.messaging.types import SessionErrorCode


class SessionError(Exception):
    """Base class for rejected session operations."""

    code: SessionErrorCode = SessionErrorCode.ACTION_FAILED
    default_message = "Action failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class RoomNotFoundError(SessionError):
    code = SessionErrorCode.ROOM_NOT_FOUND
    default_message = "Room does not exist"


class RoomFullError(SessionError):
    code = SessionErrorCode.ROOM_FULL
    default_message = "Room full"


class AlreadyInRoomError(SessionError):
    code = SessionErrorCode.ALREADY_IN_ROOM
    default_message = "You must leave your current room first"


class NotAParticipantError(SessionError):
    code = SessionErrorCode.NOT_A_PARTICIPANT
    default_message = "You are not a participant in this room"


class GameNotActiveError(SessionError):
    """The session is waiting for an opponent or has been abandoned."""

    code = SessionErrorCode.GAME_NOT_ACTIVE
    default_message = "Game is not in progress"


class NotYourTurnError(SessionError):
    code = SessionErrorCode.NOT_YOUR_TURN
    default_message = "Not your turn"


class IllegalMoveError(SessionError):
    """The rules engine rejected the move."""

    code = SessionErrorCode.ILLEGAL_MOVE
    default_message = "Invalid move"


class NoMoveHistoryError(SessionError):
    code = SessionErrorCode.NO_MOVE_HISTORY
    default_message = "No move to undo"


class DuplicateRoomCodeError(SessionError):
    """Every generated room code collided with an open session."""

    code = SessionErrorCode.ROOM_CODE_UNAVAILABLE
    default_message = "Could not allocate a room code, try again"


class ServerAtCapacityError(SessionError):
    code = SessionErrorCode.SERVER_AT_CAPACITY
    default_message = "Server at capacity"
