from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from story_engine.models.scenario import Scenario

logger = logging.getLogger(__name__)


class ScenarioLoadError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class ScenarioRegistry:
    """Loaded scenarios keyed by file name (e.g. "pirates.json")."""

    by_file_name: dict[str, Scenario]

    def get(self, file_name: str) -> Scenario | None:
        return self.by_file_name.get(file_name)

    def require(self, file_name: str) -> Scenario:
        scenario = self.get(file_name)
        if scenario is None:
            raise ValueError(f"Scenario not found: {file_name}")
        return scenario

    def file_names(self) -> list[str]:
        return sorted(self.by_file_name)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, str) and item in self.by_file_name

    def __len__(self) -> int:
        return len(self.by_file_name)


def load_scenario(path: Path) -> Scenario:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ScenarioLoadError(f"Scenario file not found: {path}") from e

    try:
        scenario = Scenario.model_validate_json(raw)
    except ValidationError as e:
        raise ScenarioLoadError(f"Invalid scenario file {path}: {e}") from e

    if scenario.opening_scene and not scenario.has_scene(scenario.opening_scene):
        raise ScenarioLoadError(f"Scenario {path.name} names unknown opening scene {scenario.opening_scene!r}")

    return scenario.model_copy(update={"file_name": path.name})


def load_scenarios(*, root: Path, strict: bool | None = None) -> ScenarioRegistry:
    """Load every `*.json` scenario under `root`.

    Invalid files are skipped with a warning unless strict mode is on
    (argument, or STORY_ENGINE_STRICT_SCENARIOS=1).
    """

    if strict is None:
        strict = os.getenv("STORY_ENGINE_STRICT_SCENARIOS", "").strip().lower() in {"1", "true", "yes"}

    if not root.is_dir():
        if strict:
            raise ScenarioLoadError(f"Scenario directory not found: {root}")
        logger.warning("Scenario directory not found, no scenarios loaded root=%s", root)
        return ScenarioRegistry(by_file_name={})

    out: dict[str, Scenario] = {}
    for path in sorted(root.glob("*.json")):
        try:
            out[path.name] = load_scenario(path)
        except ScenarioLoadError as e:
            if strict:
                raise
            logger.warning("Skipping scenario file=%s error=%s", path.name, e)

    logger.info("Loaded scenarios root=%s count=%d", root, len(out))
    return ScenarioRegistry(by_file_name=out)
