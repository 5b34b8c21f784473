"""Wire schema for the compact change-set produced by the narrative generator.

The same shape is used for the `then` payload of scenario conditionals.
Tag-like fields (item actions, endpoint types, exit statuses) are kept as plain
strings here so a single bad tag doesn't reject the whole delta; the worker
dispatches on the enums below and logs anything it doesn't recognise.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ItemAction(StrEnum):
    acquire = "acquire"
    give = "give"
    drop = "drop"
    move = "move"
    use = "use"


class EndpointType(StrEnum):
    player = "player"
    npc = "npc"
    location = "location"


class ExitStatus(StrEnum):
    blocked = "blocked"
    unblocked = "unblocked"


class SceneChange(BaseModel):
    to: str = ""
    reason: str = ""

    @field_validator("to", "reason", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        # Generators send `null` for optional strings they have nothing to say about.
        return "" if value is None else value


class ItemEndpoint(BaseModel):
    type: str
    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class ItemEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item: str
    action: str
    from_: ItemEndpoint | None = Field(default=None, alias="from")
    to: ItemEndpoint | None = None
    consumed: bool | None = None

    @property
    def is_consumed(self) -> bool:
        return bool(self.consumed)


class LocationChange(BaseModel):
    to: str
    reason: str = ""

    @field_validator("reason", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class NPCEvent(BaseModel):
    npc_id: str
    location_change: LocationChange | None = None

    # Shorthand for location_change without a reason.
    set_location: str | None = None

    # None leaves `following` untouched; "" clears it.
    set_following: str | None = None

    def destination(self) -> LocationChange | None:
        if self.location_change is not None and self.location_change.to:
            return self.location_change
        if self.set_location:
            return LocationChange(to=self.set_location)
        return None


class ExitChange(BaseModel):
    exit_id: str
    status: str
    reason: str = ""

    @field_validator("reason", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value


class LocationEvent(BaseModel):
    location_id: str
    exit_changes: list[ExitChange] = Field(default_factory=list)


class GameStateDelta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_location: str | None = None
    scene_change: SceneChange | None = None

    item_events: list[ItemEvent] = Field(default_factory=list)
    npc_events: list[NPCEvent] = Field(default_factory=list)
    location_events: list[LocationEvent] = Field(default_factory=list)

    set_vars: dict[str, str] = Field(default_factory=dict)
    game_ended: bool | None = None

    # Only meaningful on a conditional's `then`, where it becomes a story event.
    prompt: str | None = None

    @field_validator("set_vars", mode="before")
    @classmethod
    def _stringify_vars(cls, value: Any) -> Any:
        # Generators occasionally emit booleans/numbers for flag values.
        if value is None:
            return {}
        if isinstance(value, dict):
            out: dict[str, str] = {}
            for k, v in value.items():
                if isinstance(v, bool):
                    out[str(k)] = "true" if v else "false"
                elif v is None:
                    out[str(k)] = ""
                else:
                    out[str(k)] = str(v)
            return out
        return value

    @field_validator("item_events", "npc_events", "location_events", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def is_empty(self) -> bool:
        return (
            not self.user_location
            and (self.scene_change is None or not self.scene_change.to)
            and not self.item_events
            and not self.npc_events
            and not self.location_events
            and not self.set_vars
            and self.game_ended is None
            and self.prompt is None
        )
