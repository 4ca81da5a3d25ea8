"""Room code to Session mapping."""

import secrets
import string
from collections.abc import Callable, Iterator

import structlog

from game.rules.engine import ChessRulesEngine, RulesEngine
from game.session.exceptions import DuplicateRoomCodeError
from game.session.models import Session

logger = structlog.get_logger()

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_ROOM_CODE_LENGTH = 5
DEFAULT_MAX_CODE_ATTEMPTS = 16


def normalize_code(code: str) -> str:
    """Room codes are case-insensitive; the canonical form is stripped uppercase."""
    return code.strip().upper()


def random_room_code(length: int = DEFAULT_ROOM_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


class SessionRegistry:
    """Own every open session, keyed by room code.

    Purely a map: creating, looking up and destroying sessions has no side
    effects beyond it. Callers serialize registry mutations with the seat
    changes that trigger them.
    """

    def __init__(
        self,
        *,
        engine_factory: Callable[[], RulesEngine] = ChessRulesEngine,
        code_generator: Callable[[], str] = random_room_code,
        max_code_attempts: int = DEFAULT_MAX_CODE_ATTEMPTS,
    ) -> None:
        if max_code_attempts < 1:
            raise ValueError(f"max_code_attempts must be >= 1, got {max_code_attempts}")
        self._engine_factory = engine_factory
        self._code_generator = code_generator
        self._max_code_attempts = max_code_attempts
        self._sessions: dict[str, Session] = {}

    def create_session(self) -> Session:
        """Register an empty session under a fresh code.

        Regenerates on collision up to max_code_attempts times, then fails
        closed with DuplicateRoomCodeError rather than replacing an open session.
        """
        for attempt in range(1, self._max_code_attempts + 1):
            code = normalize_code(self._code_generator())
            if code not in self._sessions:
                session = Session(code=code, engine=self._engine_factory())
                self._sessions[code] = session
                logger.info("session created", room_code=code, attempts=attempt)
                return session
            logger.debug("room code collision", room_code=code, attempt=attempt)
        logger.warning("room code space exhausted", attempts=self._max_code_attempts)
        raise DuplicateRoomCodeError

    def lookup(self, code: str) -> Session | None:
        return self._sessions.get(normalize_code(code))

    def destroy(self, code: str) -> Session | None:
        """Remove a session. Destroying an unknown code is a no-op."""
        session = self._sessions.pop(normalize_code(code), None)
        if session is not None:
            session.closed = True
            logger.info("session destroyed", room_code=session.code)
        return session

    def sessions(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    @property
    def codes(self) -> list[str]:
        return list(self._sessions)

    @property
    def count(self) -> int:
        return len(self._sessions)
