from __future__ import annotations

from abc import ABC, abstractmethod

import chess

from game.rules.types import AppliedMove, GameOutcome, MoveRejected, Side

_PROMOTION_PIECES = {
    "q": chess.QUEEN,
    "r": chess.ROOK,
    "b": chess.BISHOP,
    "n": chess.KNIGHT,
}
_DEFAULT_PROMOTION = "q"
_PROMOTION_RANKS = (0, 7)


class InvalidStateError(ValueError):
    """Raised by load_state when a serialized state cannot be loaded."""


class RulesEngine(ABC):
    """
    Abstract interface for one game's legality and state.

    The session layer never inspects the game itself: it asks the engine
    whose turn it is, hands it moves, and broadcasts its serialized state.
    """

    @abstractmethod
    def current_state(self) -> str:
        """
        Return a complete, round-trippable snapshot of the game state.
        """
        ...

    @abstractmethod
    def side_to_move(self) -> Side:
        ...

    @abstractmethod
    def try_apply_move(
        self,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> AppliedMove | MoveRejected:
        """
        Validate and apply a move.

        Never raises for illegal or malformed input; returns MoveRejected instead
        and leaves the state untouched.
        """
        ...

    @abstractmethod
    def undo_last(self) -> AppliedMove | None:
        """
        Revert the most recent move. Returns None when there is no history.
        """
        ...

    @abstractmethod
    def load_state(self, serialized: str) -> None:
        """
        Replace the current state with a snapshot from current_state().

        Raises InvalidStateError if the snapshot is malformed. Move history
        is not part of the snapshot, so undo_last() has nothing to revert
        afterwards.
        """
        ...

    @abstractmethod
    def legal_moves(self) -> list[str]:
        """Return the legal moves of the side to move, in UCI notation."""
        ...

    @abstractmethod
    def history(self) -> list[str]:
        """Return the moves played since the initial state, in SAN."""
        ...

    @abstractmethod
    def outcome(self) -> GameOutcome | None:
        """Return the result if the game is over, None otherwise."""
        ...


class ChessRulesEngine(RulesEngine):
    """Rules engine for standard chess backed by python-chess. State is a FEN string."""

    def __init__(self, fen: str | None = None) -> None:
        self._board = chess.Board()
        if fen is not None:
            self.load_state(fen)

    def current_state(self) -> str:
        return self._board.fen()

    def side_to_move(self) -> Side:
        return _side_of(self._board.turn)

    def try_apply_move(
        self,
        from_square: str,
        to_square: str,
        promotion: str | None = None,
    ) -> AppliedMove | MoveRejected:
        try:
            from_sq = chess.parse_square(from_square.lower())
            to_sq = chess.parse_square(to_square.lower())
        except ValueError:
            return MoveRejected(reason=f"unknown square in {from_square}-{to_square}")

        promotion_piece = None
        if self._is_promotion(from_sq, to_sq):
            promotion_piece = _PROMOTION_PIECES.get((promotion or _DEFAULT_PROMOTION).lower())
            if promotion_piece is None:
                return MoveRejected(reason=f"invalid promotion piece: {promotion}")

        move = chess.Move(from_sq, to_sq, promotion=promotion_piece)
        if not self._board.is_legal(move):
            return MoveRejected(reason=f"illegal move {from_square}-{to_square}")

        side = self.side_to_move()
        san = self._board.san(move)
        self._board.push(move)
        return _applied_move(move, san, side)

    def undo_last(self) -> AppliedMove | None:
        if not self._board.move_stack:
            return None
        move = self._board.pop()
        # after pop() the mover is on turn again, so SAN is computed from its position
        return _applied_move(move, self._board.san(move), self.side_to_move())

    def load_state(self, serialized: str) -> None:
        try:
            board = chess.Board(serialized)
        except ValueError as e:
            raise InvalidStateError(f"malformed state: {e}") from e
        if not board.is_valid():
            raise InvalidStateError(f"impossible position: {board.status()!r}")
        self._board = board

    def legal_moves(self) -> list[str]:
        return sorted(move.uci() for move in self._board.legal_moves)

    def history(self) -> list[str]:
        replay = self._board.root()
        moves: list[str] = []
        for move in self._board.move_stack:
            moves.append(replay.san(move))
            replay.push(move)
        return moves

    def outcome(self) -> GameOutcome | None:
        outcome = self._board.outcome()
        if outcome is None:
            return None
        return GameOutcome(
            result=outcome.result(),
            termination=outcome.termination.name.lower(),
            winner=None if outcome.winner is None else _side_of(outcome.winner),
        )

    def _is_promotion(self, from_sq: chess.Square, to_sq: chess.Square) -> bool:
        piece = self._board.piece_at(from_sq)
        return (
            piece is not None
            and piece.piece_type == chess.PAWN
            and chess.square_rank(to_sq) in _PROMOTION_RANKS
        )


def _side_of(color: chess.Color) -> Side:
    return Side.FIRST if color == chess.WHITE else Side.SECOND


def _applied_move(move: chess.Move, san: str, side: Side) -> AppliedMove:
    return AppliedMove(
        from_square=chess.square_name(move.from_square),
        to_square=chess.square_name(move.to_square),
        promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
        san=san,
        uci=move.uci(),
        side=side,
    )
