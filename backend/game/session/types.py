"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel

from game.rules.types import Side


class RoomInfo(BaseModel):
    """Room summary for the /rooms listing."""

    code: str
    phase: str
    occupant_count: int
    side_to_move: Side
    moves_played: int
