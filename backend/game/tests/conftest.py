import pytest

from game.messaging.router import MessageRouter
from game.server.app import create_app
from game.server.settings import GameServerSettings
from game.session.manager import SessionManager
from game.session.registry import SessionRegistry
from game.tests.helpers.session import sequential_codes
from game.tests.mocks import MockConnection


@pytest.fixture
def registry():
    return SessionRegistry(code_generator=sequential_codes())


@pytest.fixture
def session_manager(registry):
    return SessionManager(registry)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def settings():
    return GameServerSettings(idle_room_ttl_seconds=0, cors_origins=["http://localhost:3000"])


@pytest.fixture
def app(settings, session_manager, message_router):
    return create_app(settings=settings, session_manager=session_manager, message_router=message_router)
