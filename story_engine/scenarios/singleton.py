from __future__ import annotations

from pathlib import Path

from story_engine.scenarios.registry import ScenarioRegistry, load_scenarios


_SCENARIOS: ScenarioRegistry | None = None


def init_scenarios(*, root: Path, strict: bool | None = None) -> ScenarioRegistry:
    """Load scenarios once and cache them.

    Safe to call multiple times; subsequent calls return the already loaded registry.
    """

    global _SCENARIOS
    if _SCENARIOS is None:
        _SCENARIOS = load_scenarios(root=root, strict=strict)
    return _SCENARIOS


def reset_scenarios_for_tests() -> None:
    global _SCENARIOS
    _SCENARIOS = None


def get_scenarios() -> ScenarioRegistry:
    if _SCENARIOS is None:
        raise RuntimeError("Scenarios not initialized. Call init_scenarios() at startup.")
    return _SCENARIOS
