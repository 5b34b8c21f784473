from __future__ import annotations

import pytest

from story_engine.models.game_state import GameState, SceneLoadError, new_game_state
from story_engine.models.scenario import NPC, Location, Scenario


def _all_items(gs: GameState) -> list[str]:
    items = list(gs.inventory)
    for npc in gs.npcs.values():
        items.extend(npc.items)
    for loc in gs.world_locations.values():
        items.extend(loc.items)
    return items


def test_new_game_state_from_scenario(state: GameState, scenario: Scenario) -> None:
    assert state.scenario == "pirates.json"
    assert state.location == "dock"
    assert state.inventory == ["compass"]
    assert state.scene_name == "harbor"
    assert set(state.world_locations) == {"dock", "tavern", "ship"}
    assert set(state.npcs) == {"captain", "parrot", "guard"}
    assert state.vars == {"has_map": "false", "alarm": "false"}
    assert state.turn_counter == 0
    assert state.scene_turn_counter == 0
    assert not state.is_ended


def test_session_copies_never_touch_the_scenario(state: GameState, scenario: Scenario) -> None:
    state.world_locations["dock"].items.append("anchor")
    state.npcs["guard"].items.clear()
    state.vars["has_map"] = "true"

    assert scenario.locations["dock"].items == ["rope"]
    assert scenario.scenes["harbor"].npcs["guard"].items == ["key"]
    assert scenario.vars["has_map"] == "false"


def test_missing_opening_scene_raises(scenario: Scenario) -> None:
    broken = scenario.model_copy(update={"opening_scene": "atlantis"})
    with pytest.raises(SceneLoadError):
        new_game_state(scenario=broken)


def test_increment_turn_counters(state: GameState) -> None:
    state.increment_turn_counters()
    state.increment_turn_counters()
    assert (state.turn_counter, state.scene_turn_counter) == (2, 2)


def test_lookup_by_id_or_display_name(state: GameState) -> None:
    assert state.npc_key("guard") == "guard"
    assert state.npc_key("  harbor   GUARD ") == "guard"
    assert state.npc_key("Blackbeard") is None
    assert state.location_key("The Black Pearl") == "ship"
    assert state.location_key("") is None


def test_normalize_items_priority_and_idempotence() -> None:
    gs = GameState(
        location="hall",
        inventory=["key", "lamp", "key"],
        npcs={
            "butler": NPC(name="Butler", location="hall", items=["key", "tray"]),
            "maid": NPC(name="Maid", location="hall", items=["tray", "duster"]),
        },
        world_locations={
            "hall": Location(name="Hall", items=["lamp", "vase", "duster"]),
            "attic": Location(name="Attic", items=["vase", "trunk"]),
        },
    )
    before = set(_all_items(gs))

    gs.normalize_items()

    assert gs.inventory == ["key", "lamp"]
    assert gs.npcs["butler"].items == ["tray"]
    assert gs.npcs["maid"].items == ["duster"]
    assert gs.world_locations["hall"].items == ["vase"]
    assert gs.world_locations["attic"].items == ["trunk"]

    after = _all_items(gs)
    assert len(after) == len(set(after))
    assert set(after) == before

    snapshot = gs.model_dump()
    gs.normalize_items()
    assert gs.model_dump() == snapshot


def test_describe_helpers(state: GameState) -> None:
    assert state.describe_location() == "Creaking planks over black water."
    assert state.describe_inventory() == "You have:\n- compass"

    state.location = "nowhere"
    state.inventory.clear()
    assert state.describe_location() == "You are in an unknown location."
    assert state.describe_inventory() == "Your inventory is empty."


def test_fired_story_events_are_a_set(state: GameState) -> None:
    state.mark_fired("gulls")
    state.mark_fired("gulls")
    assert state.fired_story_events == ["gulls"]
    assert state.has_fired("gulls")
    assert not state.has_fired("alarm_raised")
