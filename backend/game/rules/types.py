from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Side(StrEnum):
    """The two sides of a game. FIRST moves first (white in chess)."""

    FIRST = "first"
    SECOND = "second"


class AppliedMove(BaseModel):
    """A move accepted (or reverted) by the rules engine.

    Serialized with the wire names ``from``/``to`` via model_dump(by_alias=True).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: str | None = None
    san: str
    uci: str
    side: Side


class MoveRejected(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


class GameOutcome(BaseModel):
    """Final result once the position is terminal (checkmate, stalemate, ...)."""

    model_config = ConfigDict(frozen=True)

    result: str
    termination: str
    winner: Side | None = None
