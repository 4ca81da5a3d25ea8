from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from game.rules.types import AppliedMove, GameOutcome, Side

_ROOM_CODE_PATTERN = r"^[A-Z0-9]+$"
_MAX_ROOM_CODE_LENGTH = 12
_MAX_SQUARE_LENGTH = 8


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    MOVE = "move"
    UNDO = "undo"
    LEAVE_ROOM = "leave_room"
    PING = "ping"


class SessionMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_LEFT = "room_left"
    GAME_START = "game_start"
    BOARD_UPDATE = "board_update"
    INVALID_MOVE = "invalid_move"
    ERROR = "session_error"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    ROOM_NOT_FOUND = "room_not_found"
    ROOM_FULL = "room_full"
    ALREADY_IN_ROOM = "already_in_room"
    NOT_A_PARTICIPANT = "not_a_participant"
    NOT_YOUR_TURN = "not_your_turn"
    GAME_NOT_ACTIVE = "game_not_active"
    ILLEGAL_MOVE = "illegal_move"
    NO_MOVE_HISTORY = "no_move_history"
    ROOM_CODE_UNAVAILABLE = "room_code_unavailable"
    SERVER_AT_CAPACITY = "server_at_capacity"
    OPPONENT_DISCONNECTED = "opponent_disconnected"
    ROOM_EXPIRED = "room_expired"
    INVALID_MESSAGE = "invalid_message"
    ACTION_FAILED = "action_failed"


class _RoomScopedMessage(BaseModel):
    code: str = Field(min_length=1, max_length=_MAX_ROOM_CODE_LENGTH, pattern=_ROOM_CODE_PATTERN)

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, v: Any) -> Any:  # noqa: ANN401
        # room codes are case-insensitive; the canonical form is uppercase
        return v.strip().upper() if isinstance(v, str) else v


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM


class JoinRoomMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM


class MoveMessage(_RoomScopedMessage):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal[ClientMessageType.MOVE] = ClientMessageType.MOVE
    from_square: str = Field(alias="from", min_length=1, max_length=_MAX_SQUARE_LENGTH)
    to_square: str = Field(alias="to", min_length=1, max_length=_MAX_SQUARE_LENGTH)
    promotion: Literal["q", "r", "b", "n"] | None = None

    @field_validator("promotion", mode="before")
    @classmethod
    def _normalize_promotion(cls, v: Any) -> Any:  # noqa: ANN401
        return v.strip().lower() if isinstance(v, str) else v


class UndoMessage(_RoomScopedMessage):
    type: Literal[ClientMessageType.UNDO] = ClientMessageType.UNDO


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage | JoinRoomMessage | MoveMessage | UndoMessage | LeaveRoomMessage | PingMessage,
    Field(discriminator="type"),
]


class RoomCreatedMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_CREATED] = SessionMessageType.ROOM_CREATED
    code: str
    side: Side


class RoomLeftMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_LEFT] = SessionMessageType.ROOM_LEFT
    code: str


class GameStartMessage(BaseModel):
    """Sent to both seats when the second seat fills.

    ``first``/``second`` are the connection ids holding each seat, ``side`` is
    the recipient's own seat.
    """

    type: Literal[SessionMessageType.GAME_START] = SessionMessageType.GAME_START
    code: str
    state: str
    first: str
    second: str
    side: Side
    side_to_move: Side


class BoardUpdateMessage(BaseModel):
    type: Literal[SessionMessageType.BOARD_UPDATE] = SessionMessageType.BOARD_UPDATE
    code: str
    state: str
    side_to_move: Side
    move: AppliedMove | None = None
    undone: AppliedMove | None = None
    outcome: GameOutcome | None = None


class InvalidMoveMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal[SessionMessageType.INVALID_MOVE] = SessionMessageType.INVALID_MOVE
    code: str
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    reason: str


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG


_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(
    data: dict[str, Any],
) -> CreateRoomMessage | JoinRoomMessage | MoveMessage | UndoMessage | LeaveRoomMessage | PingMessage:
    """Parse a decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)


def dump_message(message: BaseModel) -> dict[str, Any]:
    """Serialize an outbound message with its wire field names."""
    return message.model_dump(mode="json", by_alias=True)
