from story_engine.scenarios.registry import ScenarioLoadError, ScenarioRegistry, load_scenario, load_scenarios
from story_engine.scenarios.singleton import get_scenarios, init_scenarios, reset_scenarios_for_tests

__all__ = [
    "ScenarioLoadError",
    "ScenarioRegistry",
    "get_scenarios",
    "init_scenarios",
    "load_scenario",
    "load_scenarios",
    "reset_scenarios_for_tests",
]
