from __future__ import annotations

from story_engine.config import Settings, configure_logging, load_settings
from story_engine.scenarios.registry import ScenarioRegistry
from story_engine.scenarios.singleton import init_scenarios


def init_scenarios_for_app(settings: Settings | None = None) -> ScenarioRegistry:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    return init_scenarios(root=settings.scenario_dir, strict=settings.strict_scenarios)
