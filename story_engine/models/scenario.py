from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from story_engine.models.delta import GameStateDelta


class ContentRating(StrEnum):
    g = "G"
    pg = "PG"
    pg13 = "PG-13"
    r = "R"


class ConditionalWhen(BaseModel):
    """Conjunction of optional sub-conditions. An empty clause never matches."""

    vars: dict[str, str] = Field(default_factory=dict)
    scene_turn_counter: int | None = None
    turn_counter: int | None = None
    location: str = ""
    min_scene_turns: int | None = None
    min_turns: int | None = None

    def has_conditions(self) -> bool:
        return bool(
            self.vars
            or self.scene_turn_counter is not None
            or self.turn_counter is not None
            or self.location
            or self.min_scene_turns is not None
            or self.min_turns is not None
        )


class ContingencyPrompt(BaseModel):
    """A prompt shown to the narrator, optionally gated by a `when` clause.

    Scenario files may use a bare string for an always-on prompt.
    """

    prompt: str
    when: ConditionalWhen | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"prompt": data}
        return data


class Conditional(BaseModel):
    name: str = ""
    when: ConditionalWhen = Field(default_factory=ConditionalWhen)
    then: GameStateDelta = Field(default_factory=GameStateDelta)


class StoryEvent(BaseModel):
    when: ConditionalWhen = Field(default_factory=ConditionalWhen)
    prompt: str


class Location(BaseModel):
    name: str
    description: str = ""

    # Direction -> location id.
    exits: dict[str, str] = Field(default_factory=dict)
    # Direction -> reason. Subset of `exits` currently impassable.
    blocked_exits: dict[str, str] = Field(default_factory=dict)

    items: list[str] = Field(default_factory=list)
    important: bool = False
    contingency_prompts: list[ContingencyPrompt] = Field(default_factory=list)


class NPC(BaseModel):
    name: str
    type: str = ""
    disposition: str = ""
    description: str = ""
    important: bool = False

    location: str = ""
    # "", "pc" (the player), or another NPC's id / display name.
    following: str = ""

    items: list[str] = Field(default_factory=list)
    contingency_prompts: list[ContingencyPrompt] = Field(default_factory=list)


class Scene(BaseModel):
    story: str = ""
    locations: dict[str, Location] = Field(default_factory=dict)
    npcs: dict[str, NPC] = Field(default_factory=dict)
    vars: dict[str, str] = Field(default_factory=dict)
    contingency_prompts: list[ContingencyPrompt] = Field(default_factory=list)
    contingency_rules: list[str] = Field(default_factory=list)

    # Insertion order is declaration order; conditionals are merged in that order.
    conditionals: dict[str, Conditional] = Field(default_factory=dict)
    story_events: dict[str, StoryEvent] = Field(default_factory=dict)


class Scenario(BaseModel):
    """Template for a session. Read-only once loaded."""

    name: str
    file_name: str = ""
    story: str = ""
    rating: ContentRating = ContentRating.pg

    locations: dict[str, Location] = Field(default_factory=dict)
    npcs: dict[str, NPC] = Field(default_factory=dict)
    vars: dict[str, str] = Field(default_factory=dict)

    opening_prompt: str = ""
    opening_location: str = ""
    opening_inventory: list[str] = Field(default_factory=list)
    opening_scene: str = ""

    contingency_prompts: list[ContingencyPrompt] = Field(default_factory=list)
    contingency_rules: list[str] = Field(default_factory=list)

    scenes: dict[str, Scene] = Field(default_factory=dict)

    def has_scene(self, scene_name: str) -> bool:
        return scene_name in self.scenes

    def get_scene(self, scene_name: str) -> Scene | None:
        return self.scenes.get(scene_name)
