from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from story_engine.conditionals import filter_contingency_prompts
from story_engine.lookup import resolve_key
from story_engine.models.scenario import NPC, Location, Scenario


class SceneLoadError(RuntimeError):
    pass


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _claim(items: list[str], claimed: set[str]) -> list[str]:
    kept: list[str] = []
    for item in items:
        if item in claimed:
            continue
        claimed.add(item)
        kept.append(item)
    return kept


class GameState(BaseModel):
    """Mutable per-session world model.

    NPC and location maps are session copies of scenario data; mutating them
    never touches the loaded `Scenario`.
    """

    game_id: UUID = Field(default_factory=uuid4)
    scenario: str = ""  # scenario file name, e.g. "pirates.json"
    scene_name: str = ""

    location: str = ""
    inventory: list[str] = Field(default_factory=list)

    npcs: dict[str, NPC] = Field(default_factory=dict)
    world_locations: dict[str, Location] = Field(default_factory=dict)

    turn_counter: int = 0
    scene_turn_counter: int = 0
    vars: dict[str, str] = Field(default_factory=dict)

    # Conditional / story-event ids that have already been narrated. Never fire twice.
    fired_story_events: list[str] = Field(default_factory=list)

    is_ended: bool = False

    # Runtime-added prompts; scenario prompts are filtered on demand instead.
    contingency_prompts: list[str] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=_now)
    last_updated_at: datetime = Field(default_factory=_now)

    def npc_key(self, ref: str | None) -> str | None:
        return resolve_key(self.npcs, ref)

    def location_key(self, ref: str | None) -> str | None:
        return resolve_key(self.world_locations, ref)

    def has_fired(self, event_id: str) -> bool:
        return event_id in self.fired_story_events

    def mark_fired(self, event_id: str) -> None:
        if event_id not in self.fired_story_events:
            self.fired_story_events.append(event_id)

    def increment_turn_counters(self) -> None:
        self.turn_counter += 1
        self.scene_turn_counter += 1

    def load_scene(self, scenario: Scenario, scene_name: str) -> None:
        """Make `scene_name` the active scene.

        - scene locations/NPCs replace any existing entries with the same id
        - entries that are neither scenario-global nor part of the new scene are dropped
        - scene vars are merged into session vars (vars are never dropped)
        """

        scene = scenario.get_scene(scene_name)
        if scene is None:
            raise SceneLoadError(f"Scene {scene_name!r} not found in scenario {scenario.name!r}")

        for key, loc in scene.locations.items():
            self.world_locations[key] = loc.model_copy(deep=True)
        self.world_locations = {
            k: v for k, v in self.world_locations.items() if k in scenario.locations or k in scene.locations
        }

        for key, npc in scene.npcs.items():
            self.npcs[key] = npc.model_copy(deep=True)
        self.npcs = {k: v for k, v in self.npcs.items() if k in scenario.npcs or k in scene.npcs}

        self.vars.update(scene.vars)

        self.scene_name = scene_name
        self.scene_turn_counter = 0
        self.normalize_items()

    def normalize_items(self) -> None:
        """Enforce item singletons: player inventory > NPCs > locations.

        Within a tier the first holder (declaration order) keeps the item.
        Duplicates are removed, never the last copy, so this is idempotent.
        """

        claimed: set[str] = set()
        self.inventory = _claim(self.inventory, claimed)
        for npc in self.npcs.values():
            npc.items = _claim(npc.items, claimed)
        for loc in self.world_locations.values():
            loc.items = _claim(loc.items, claimed)

    def contingency_prompts_for(self, scenario: Scenario) -> list[str]:
        prompts = filter_contingency_prompts(scenario.contingency_prompts, self)
        prompts.extend(self.contingency_prompts)

        scene = scenario.get_scene(self.scene_name) if self.scene_name else None
        if scene is not None:
            prompts.extend(filter_contingency_prompts(scene.contingency_prompts, self))

        # Only NPCs sharing the player's location contribute.
        for npc in self.npcs.values():
            if npc.location == self.location:
                prompts.extend(filter_contingency_prompts(npc.contingency_prompts, self))

        loc = self.world_locations.get(self.location)
        if loc is not None:
            prompts.extend(filter_contingency_prompts(loc.contingency_prompts, self))

        return prompts

    def describe_location(self) -> str:
        loc = self.world_locations.get(self.location)
        if loc is None:
            return "You are in an unknown location."
        return loc.description

    def describe_inventory(self) -> str:
        if not self.inventory:
            return "Your inventory is empty."
        return "You have:\n- " + "\n- ".join(self.inventory)


def new_game_state(*, scenario: Scenario, file_name: str | None = None) -> GameState:
    """Create a fresh session from a scenario template.

    Raises SceneLoadError if the scenario names an opening scene it doesn't define.
    """

    inventory: list[str] = []
    for item in scenario.opening_inventory:
        if item not in inventory:
            inventory.append(item)

    state = GameState(
        scenario=file_name or scenario.file_name,
        location=scenario.opening_location,
        inventory=inventory,
        npcs={k: v.model_copy(deep=True) for k, v in scenario.npcs.items()},
        world_locations={k: v.model_copy(deep=True) for k, v in scenario.locations.items()},
        vars=dict(scenario.vars),
    )

    if scenario.opening_scene:
        state.load_scene(scenario, scenario.opening_scene)
    else:
        state.normalize_items()

    return state
