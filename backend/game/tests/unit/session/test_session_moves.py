import asyncio

from game.client.mirror import BoardMirror
from game.messaging.types import SessionErrorCode, SessionMessageType
from game.rules.types import Side
from game.tests.helpers.session import create_room, create_started_game
from game.tests.mocks import MockConnection

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


class TestSubmitMove:
    async def test_accepted_move_broadcast_to_both_seats(self, manager):
        code, first, second = await create_started_game(manager)

        await manager.submit_move(first, code, "e2", "e4")

        for conn in (first, second):
            [update] = conn.sent_messages
            assert update["type"] == SessionMessageType.BOARD_UPDATE
            assert update["code"] == code
            assert update["state"] == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
            assert update["side_to_move"] == Side.SECOND
            assert update["move"]["from"] == "e2"
            assert update["move"]["to"] == "e4"
            assert update["move"]["san"] == "e4"
            assert update["outcome"] is None

    async def test_out_of_turn_rejected_to_sender_only(self, manager):
        code, first, second = await create_started_game(manager)

        await manager.submit_move(second, code, "e7", "e5")

        assert second.sent_messages == [
            {"type": SessionMessageType.ERROR, "code": SessionErrorCode.NOT_YOUR_TURN, "message": "Not your turn"},
        ]
        assert first.sent_messages == []
        assert manager.get_session(code).engine.current_state() == START_FEN

    async def test_illegal_move_rejected_to_sender_only(self, manager):
        code, first, second = await create_started_game(manager)

        await manager.submit_move(first, code, "e2", "e5")

        [reply] = first.sent_messages
        assert reply["type"] == SessionMessageType.INVALID_MOVE
        assert reply["from"] == "e2"
        assert reply["to"] == "e5"
        assert "illegal move" in reply["reason"]
        assert second.sent_messages == []
        assert manager.get_session(code).side_to_move is Side.FIRST

    async def test_unknown_square_is_invalid_move(self, manager):
        code, first, _ = await create_started_game(manager)

        await manager.submit_move(first, code, "x9", "e4")

        assert first.sent_messages[0]["type"] == SessionMessageType.INVALID_MOVE

    async def test_non_participant_rejected(self, manager):
        code, first, second = await create_started_game(manager)
        stranger = MockConnection()
        manager.register_connection(stranger)

        await manager.submit_move(stranger, code, "e2", "e4")

        assert stranger.sent_messages[0]["code"] == SessionErrorCode.NOT_A_PARTICIPANT
        assert first.sent_messages == []
        assert second.sent_messages == []

    async def test_move_while_awaiting_opponent(self, manager):
        code, creator = await create_room(manager)
        creator._outbox.clear()

        await manager.submit_move(creator, code, "e2", "e4")

        assert creator.sent_messages[0]["code"] == SessionErrorCode.GAME_NOT_ACTIVE

    async def test_unknown_room(self, manager, mock_connection):
        await manager.submit_move(mock_connection, "ZZZZ", "e2", "e4")

        assert mock_connection.sent_messages[0]["code"] == SessionErrorCode.ROOM_NOT_FOUND

    async def test_turns_alternate(self, manager):
        code, first, second = await create_started_game(manager)

        await manager.submit_move(first, code, "e2", "e4")
        await manager.submit_move(first, code, "d2", "d4")
        await manager.submit_move(second, code, "e7", "e5")

        assert first.messages_of_type(SessionMessageType.ERROR)[0]["code"] == SessionErrorCode.NOT_YOUR_TURN
        assert len(second.messages_of_type(SessionMessageType.BOARD_UPDATE)) == 2
        assert manager.get_session(code).side_to_move is Side.FIRST

    async def test_promotion_defaults_to_queen(self, manager):
        code, first, second = await create_started_game(manager)
        session = manager.get_session(code)
        session.engine.load_state("8/4P3/8/8/8/8/8/k6K w - - 0 1")

        await manager.submit_move(first, code, "e7", "e8")

        update = second.sent_messages[0]
        assert update["move"]["promotion"] == "q"
        assert update["state"].startswith("4Q3/")

    async def test_checkmate_reports_outcome(self, manager):
        code, first, second = await create_started_game(manager)

        for conn, from_square, to_square in (
            (first, "f2", "f3"),
            (second, "e7", "e5"),
            (first, "g2", "g4"),
            (second, "d8", "h4"),
        ):
            await manager.submit_move(conn, code, from_square, to_square)

        outcome = first.sent_messages[-1]["outcome"]
        assert outcome == {"result": "0-1", "termination": "checkmate", "winner": "second"}

    async def test_failed_send_does_not_block_other_seat(self, manager):
        code, first, second = await create_started_game(manager)
        second.fail_sends = True

        await manager.submit_move(first, code, "e2", "e4")

        assert first.sent_messages[0]["type"] == SessionMessageType.BOARD_UPDATE
        assert manager.get_session(code).side_to_move is Side.SECOND

    async def test_concurrent_moves_accept_only_one(self, manager):
        code, first, second = await create_started_game(manager)

        await asyncio.gather(
            manager.submit_move(first, code, "e2", "e4"),
            manager.submit_move(first, code, "d2", "d4"),
        )

        updates = second.messages_of_type(SessionMessageType.BOARD_UPDATE)
        assert len(updates) == 1
        assert first.messages_of_type(SessionMessageType.ERROR)[0]["code"] == SessionErrorCode.NOT_YOUR_TURN


class TestBroadcastConsistency:
    async def test_mirrors_track_authoritative_state(self, manager):
        code, first, second = await create_started_game(manager)
        mirrors = {first: BoardMirror(), second: BoardMirror()}
        # replay the game_start each seat received before the outbox was cleared
        session = manager.get_session(code)
        for conn, side in ((first, Side.FIRST), (second, Side.SECOND)):
            mirrors[conn].apply(
                {
                    "type": SessionMessageType.GAME_START,
                    "code": code,
                    "state": session.engine.current_state(),
                    "side": side,
                },
            )

        moves = [(first, "e2", "e4"), (second, "c7", "c5"), (first, "g1", "f3"), (second, "d7", "d6")]
        for mover, from_square, to_square in moves:
            assert mirrors[mover].check_move(from_square, to_square)
            await manager.submit_move(mover, code, from_square, to_square)
            for conn, mirror in mirrors.items():
                mirror.apply(conn.sent_messages[-1])

        for mirror in mirrors.values():
            assert mirror.state == session.engine.current_state()
        assert mirrors[first].is_my_turn
        assert not mirrors[second].is_my_turn
