from __future__ import annotations

import logging
from pathlib import Path

import pytest

from story_engine.models.scenario import ContentRating
from story_engine.scenarios import (
    ScenarioLoadError,
    get_scenarios,
    init_scenarios,
    load_scenario,
    load_scenarios,
)

SCENARIO_DIR = Path(__file__).resolve().parent / "scenarios"


def test_load_scenario_sets_file_name_and_parses_prompts() -> None:
    scenario = load_scenario(SCENARIO_DIR / "pirates.json")

    assert scenario.name == "Pirate Cove"
    assert scenario.file_name == "pirates.json"
    assert scenario.rating == ContentRating.pg
    assert [cp.prompt for cp in scenario.contingency_prompts] == ["The sea is always rough.", "The map glows faintly."]
    assert scenario.contingency_prompts[0].when is None
    assert list(scenario.scenes["harbor"].conditionals) == ["alarm_raised", "set_sail"]


def test_load_scenario_errors(tmp_path: Path) -> None:
    with pytest.raises(ScenarioLoadError, match="not found"):
        load_scenario(tmp_path / "missing.json")

    with pytest.raises(ScenarioLoadError, match="Invalid scenario"):
        load_scenario(SCENARIO_DIR / "broken.json")

    bad_opening = tmp_path / "bad_opening.json"
    bad_opening.write_text('{"name": "Nowhere", "opening_scene": "intro"}', encoding="utf-8")
    with pytest.raises(ScenarioLoadError, match="unknown opening scene"):
        load_scenario(bad_opening)


def test_load_scenarios_skips_invalid_files(caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STORY_ENGINE_STRICT_SCENARIOS", raising=False)

    with caplog.at_level(logging.WARNING):
        registry = load_scenarios(root=SCENARIO_DIR)

    assert registry.file_names() == ["pirates.json"]
    assert "pirates.json" in registry
    assert "broken.json" not in registry
    assert len(registry) == 1
    assert any("broken.json" in rec.message for rec in caplog.records)


def test_load_scenarios_strict(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ScenarioLoadError):
        load_scenarios(root=SCENARIO_DIR, strict=True)

    monkeypatch.setenv("STORY_ENGINE_STRICT_SCENARIOS", "1")
    with pytest.raises(ScenarioLoadError):
        load_scenarios(root=SCENARIO_DIR)


def test_missing_directory(tmp_path: Path) -> None:
    assert len(load_scenarios(root=tmp_path / "nope", strict=False)) == 0

    with pytest.raises(ScenarioLoadError):
        load_scenarios(root=tmp_path / "nope", strict=True)


def test_registry_get_and_require() -> None:
    registry = load_scenarios(root=SCENARIO_DIR, strict=False)

    assert registry.get("pirates.json") is not None
    assert registry.get("atlantis.json") is None
    assert registry.require("pirates.json").name == "Pirate Cove"

    with pytest.raises(ValueError, match="Scenario not found"):
        registry.require("atlantis.json")


def test_singleton_lifecycle() -> None:
    with pytest.raises(RuntimeError):
        get_scenarios()

    first = init_scenarios(root=SCENARIO_DIR, strict=False)
    second = init_scenarios(root=Path("/does/not/matter"), strict=True)

    assert first is second
    assert get_scenarios() is first


def test_init_scenarios_for_app_uses_settings() -> None:
    from story_engine.config import Settings
    from story_engine.scenarios.startup import init_scenarios_for_app

    registry = init_scenarios_for_app(Settings(scenario_dir=SCENARIO_DIR, strict_scenarios=False, log_level="WARNING"))

    assert registry.file_names() == ["pirates.json"]
    assert get_scenarios() is registry
