"""Document types for the versioned roster model.

The persisted shape is plain JSON (camelCase keys). Documents travel through
the system as dicts so every backend stores and returns exactly the same
structure; the pydantic models here validate player input at the command
boundary.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

CURRENT_VERSION = "2.0"
DEFAULT_WEEK_NUMBER = 1
MAX_SQUAD_SIZE = 15

Position = Literal["goalkeeper", "defence", "midfield", "forward"]
PlayerStatus = Literal["green", "yellow", "red"]

RootDocument = dict[str, Any]
WeekRecord = dict[str, Any]
PlayerRecord = dict[str, Any]


class PlayerInput(BaseModel):
    """Fields a user supplies when creating a player.

    Attributes:
        name: Display name
        position: goalkeeper, defence, midfield or forward
        team: Club short code (may be empty)
        price: Price in millions, never negative
        have: Whether the player is in the squad
        status: Optional traffic-light status
        notes: Free-text scouting notes
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    position: Position
    team: str = ""
    price: float = Field(ge=0)
    have: bool = False
    status: PlayerStatus | None = None
    notes: str = ""


class PlayerUpdate(BaseModel):
    """Partial update for an existing player. Unset fields are left alone."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    position: Position | None = None
    team: str | None = None
    price: float | None = Field(default=None, ge=0)
    have: bool | None = None
    status: PlayerStatus | None = None
    notes: str | None = None


class Player(PlayerInput):
    """A stored player. The id is assigned at creation and never changes."""

    model_config = ConfigDict(extra="allow")

    id: str | int
