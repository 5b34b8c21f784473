"""Deterministic when/then rule evaluation.

The evaluator only needs a read-only view of the session, so it can be used
for conditionals, story events and contingency prompts without depending on
the full `GameState` model.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from story_engine.models.scenario import (
    Conditional,
    ConditionalWhen,
    ContingencyPrompt,
    Scenario,
    StoryEvent,
)


class GameStateView(Protocol):
    @property
    def scene_name(self) -> str: ...

    @property
    def vars(self) -> Mapping[str, str]: ...

    @property
    def scene_turn_counter(self) -> int: ...

    @property
    def turn_counter(self) -> int: ...

    @property
    def location(self) -> str: ...


def evaluate_when(when: ConditionalWhen, view: GameStateView) -> bool:
    # No conditions means "never", so a typo'd rule can't fire every turn.
    if not when.has_conditions():
        return False

    if when.vars:
        game_vars = view.vars or {}
        for name, expected in when.vars.items():
            if name not in game_vars or game_vars[name] != expected:
                return False

    if when.scene_turn_counter is not None and view.scene_turn_counter != when.scene_turn_counter:
        return False

    if when.turn_counter is not None and view.turn_counter != when.turn_counter:
        return False

    if when.min_scene_turns is not None and view.scene_turn_counter < when.min_scene_turns:
        return False

    if when.min_turns is not None and view.turn_counter < when.min_turns:
        return False

    if when.location and view.location != when.location:
        return False

    return True


def evaluate_conditionals(scenario: Scenario, view: GameStateView) -> dict[str, Conditional]:
    """Return the current scene's triggered conditionals, in declaration order."""

    scene = scenario.get_scene(view.scene_name) if view.scene_name else None
    if scene is None:
        return {}
    return {cid: c for cid, c in scene.conditionals.items() if evaluate_when(c.when, view)}


def evaluate_story_events(scenario: Scenario, view: GameStateView) -> dict[str, StoryEvent]:
    scene = scenario.get_scene(view.scene_name) if view.scene_name else None
    if scene is None:
        return {}
    return {eid: e for eid, e in scene.story_events.items() if evaluate_when(e.when, view)}


def filter_contingency_prompts(prompts: Iterable[ContingencyPrompt], view: GameStateView) -> list[str]:
    """Prompts without a `when` are always active; the rest must match."""

    return [cp.prompt for cp in prompts if cp.when is None or evaluate_when(cp.when, view)]
