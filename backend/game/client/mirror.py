"""Client-side mirror of a session's board, driven by server messages."""

from typing import Any

from game.messaging.types import SessionErrorCode, SessionMessageType
from game.rules.engine import ChessRulesEngine, RulesEngine
from game.rules.types import AppliedMove, MoveRejected, Side

# errors after which the server rejects every further move in the room
_GAME_ENDING_ERRORS = {SessionErrorCode.OPPONENT_DISCONNECTED, SessionErrorCode.ROOM_EXPIRED}


class BoardMirror:
    """
    Track one seat's view of a game from the messages the server sends it.

    The server is authoritative: every board_update replaces the mirrored
    state wholesale. check_move() lets a client reject obviously illegal
    input before sending it, using a scratch engine so the mirror itself
    never diverges from what the server broadcast.
    """

    def __init__(self) -> None:
        self._engine: RulesEngine = ChessRulesEngine()
        self.code: str | None = None
        self.side: Side | None = None
        self.started = False
        self.last_move: AppliedMove | None = None

    @property
    def state(self) -> str:
        return self._engine.current_state()

    @property
    def side_to_move(self) -> Side:
        return self._engine.side_to_move()

    @property
    def is_my_turn(self) -> bool:
        return self.started and self.side is self.side_to_move

    def apply(self, message: dict[str, Any]) -> None:
        """Update the mirror from one decoded server message. Unrelated messages are ignored."""
        message_type = message.get("type")
        if message_type == SessionMessageType.ROOM_CREATED:
            self.code = message["code"]
            self.side = Side(message["side"])
        elif message_type == SessionMessageType.GAME_START:
            self.code = message["code"]
            self.side = Side(message["side"])
            self._engine.load_state(message["state"])
            self.started = True
            self.last_move = None
        elif message_type == SessionMessageType.BOARD_UPDATE:
            self._engine.load_state(message["state"])
            move = message.get("move")
            self.last_move = AppliedMove.model_validate(move) if move is not None else None
        elif message_type == SessionMessageType.ROOM_LEFT:
            self.started = False
            self.code = None
            self.side = None
        elif message_type == SessionMessageType.ERROR and message.get("code") in _GAME_ENDING_ERRORS:
            self.started = False

    def check_move(self, from_square: str, to_square: str, promotion: str | None = None) -> bool:
        if not self.is_my_turn:
            return False
        scratch = ChessRulesEngine(self.state)
        return not isinstance(scratch.try_apply_move(from_square, to_square, promotion), MoveRejected)
