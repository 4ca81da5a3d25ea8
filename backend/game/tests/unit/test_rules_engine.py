import chess
import pytest

from game.rules.engine import ChessRulesEngine, InvalidStateError
from game.rules.types import AppliedMove, MoveRejected, Side

START_FEN = chess.STARTING_FEN


def play(engine: ChessRulesEngine, *moves: str) -> None:
    for uci in moves:
        result = engine.try_apply_move(uci[:2], uci[2:4], uci[4:] or None)
        assert isinstance(result, AppliedMove), f"{uci}: {result}"


class TestInitialState:
    def test_starts_from_standard_position(self):
        engine = ChessRulesEngine()

        assert engine.current_state() == START_FEN
        assert engine.side_to_move() is Side.FIRST
        assert engine.history() == []
        assert engine.outcome() is None

    def test_twenty_opening_moves(self):
        assert len(ChessRulesEngine().legal_moves()) == 20

    def test_constructs_from_state(self):
        fen = "4k3/8/8/8/8/8/8/4K2R w K - 0 1"

        assert ChessRulesEngine(fen).current_state() == fen


class TestTryApplyMove:
    def test_accepts_legal_move(self):
        engine = ChessRulesEngine()

        result = engine.try_apply_move("e2", "e4")

        assert isinstance(result, AppliedMove)
        assert result.from_square == "e2"
        assert result.to_square == "e4"
        assert result.san == "e4"
        assert result.uci == "e2e4"
        assert result.side is Side.FIRST
        assert engine.side_to_move() is Side.SECOND

    def test_squares_are_case_insensitive(self):
        result = ChessRulesEngine().try_apply_move("G1", "F3")

        assert isinstance(result, AppliedMove)
        assert result.san == "Nf3"

    def test_rejects_illegal_move_without_mutation(self):
        engine = ChessRulesEngine()

        result = engine.try_apply_move("e2", "e5")

        assert isinstance(result, MoveRejected)
        assert engine.current_state() == START_FEN

    @pytest.mark.parametrize(("from_square", "to_square"), [("z9", "e4"), ("e2", ""), ("e2e4", "e5")])
    def test_rejects_malformed_squares(self, from_square, to_square):
        engine = ChessRulesEngine()

        result = engine.try_apply_move(from_square, to_square)

        assert isinstance(result, MoveRejected)
        assert "unknown square" in result.reason
        assert engine.current_state() == START_FEN

    def test_rejects_moving_opponent_piece(self):
        assert isinstance(ChessRulesEngine().try_apply_move("e7", "e5"), MoveRejected)

    def test_castling(self):
        engine = ChessRulesEngine("4k3/8/8/8/8/8/8/4K2R w K - 0 1")

        result = engine.try_apply_move("e1", "g1")

        assert isinstance(result, AppliedMove)
        assert result.san == "O-O"

    def test_en_passant(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4", "a7a6", "e4e5", "d7d5")

        result = engine.try_apply_move("e5", "d6")

        assert isinstance(result, AppliedMove)
        assert result.san == "exd6"


class TestPromotion:
    FEN = "8/4P3/8/8/8/8/8/k6K w - - 0 1"

    def test_defaults_to_queen(self):
        result = ChessRulesEngine(self.FEN).try_apply_move("e7", "e8")

        assert isinstance(result, AppliedMove)
        assert result.promotion == "q"
        assert result.uci == "e7e8q"

    def test_under_promotion(self):
        result = ChessRulesEngine(self.FEN).try_apply_move("e7", "e8", "n")

        assert isinstance(result, AppliedMove)
        assert result.promotion == "n"

    def test_invalid_promotion_piece(self):
        engine = ChessRulesEngine(self.FEN)

        result = engine.try_apply_move("e7", "e8", "k")

        assert isinstance(result, MoveRejected)
        assert engine.current_state() == self.FEN

    def test_promotion_ignored_for_ordinary_moves(self):
        result = ChessRulesEngine().try_apply_move("e2", "e4", "q")

        assert isinstance(result, AppliedMove)
        assert result.promotion is None


class TestUndo:
    def test_empty_history_returns_none(self):
        assert ChessRulesEngine().undo_last() is None

    def test_restores_previous_state(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4")
        after_first = engine.current_state()
        play(engine, "e7e5")

        reverted = engine.undo_last()

        assert reverted is not None
        assert reverted.uci == "e7e5"
        assert reverted.san == "e5"
        assert reverted.side is Side.SECOND
        assert engine.current_state() == after_first
        assert engine.side_to_move() is Side.SECOND

    def test_repeated_undo_back_to_start(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4", "e7e5", "g1f3")

        while engine.undo_last() is not None:
            pass

        assert engine.current_state() == START_FEN


class TestLoadState:
    def test_round_trips_current_state(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4", "c7c5", "g1f3")

        mirror = ChessRulesEngine()
        mirror.load_state(engine.current_state())

        assert mirror.current_state() == engine.current_state()
        assert mirror.legal_moves() == engine.legal_moves()

    def test_history_not_carried(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4")

        mirror = ChessRulesEngine(engine.current_state())

        assert mirror.undo_last() is None

    @pytest.mark.parametrize("state", ["", "not a fen", "8/8/8/8/8/8/8/8 w - - 0 1"])
    def test_rejects_invalid_state(self, state):
        engine = ChessRulesEngine()

        with pytest.raises(InvalidStateError):
            engine.load_state(state)

        assert engine.current_state() == START_FEN


class TestOutcome:
    def test_fools_mate(self):
        engine = ChessRulesEngine()
        play(engine, "f2f3", "e7e5", "g2g4", "d8h4")

        outcome = engine.outcome()

        assert outcome is not None
        assert outcome.result == "0-1"
        assert outcome.termination == "checkmate"
        assert outcome.winner is Side.SECOND
        assert engine.legal_moves() == []

    def test_stalemate_has_no_winner(self):
        engine = ChessRulesEngine("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")

        outcome = engine.outcome()

        assert outcome is not None
        assert outcome.termination == "stalemate"
        assert outcome.winner is None


class TestHistory:
    def test_lists_moves_in_san(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4", "e7e5", "g1f3", "b8c6")

        assert engine.history() == ["e4", "e5", "Nf3", "Nc6"]

    def test_every_legal_move_is_accepted(self):
        engine = ChessRulesEngine()
        play(engine, "e2e4", "d7d5")
        state = engine.current_state()

        for uci in engine.legal_moves():
            scratch = ChessRulesEngine(state)
            assert isinstance(scratch.try_apply_move(uci[:2], uci[2:4], uci[4:] or None), AppliedMove)
