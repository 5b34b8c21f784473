from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from story_engine.infra.redis_client import DEFAULT_REDIS_URL

# project root is one level up from the package: story_engine/config.py
PROJECT_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_MAX_CONDITIONAL_ITERATIONS = 10


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str = DEFAULT_REDIS_URL
    scenario_dir: Path = PROJECT_ROOT / "scenarios"
    strict_scenarios: bool = False
    log_level: str = "INFO"
    max_conditional_iterations: int = DEFAULT_MAX_CONDITIONAL_ITERATIONS


def load_settings(*, env_file: Path | None = None) -> Settings:
    """Read settings from the environment, optionally primed from a `.env` file.

    Values already present in the environment win over the file.
    """

    if env_file is not None and env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)

    raw_iterations = os.environ.get("STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS", "").strip()
    try:
        max_iterations = int(raw_iterations) if raw_iterations else DEFAULT_MAX_CONDITIONAL_ITERATIONS
    except ValueError as e:
        raise ValueError(f"STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS must be an integer, got {raw_iterations!r}") from e
    if max_iterations < 1:
        raise ValueError("STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS must be >= 1")

    scenario_dir = os.environ.get("STORY_ENGINE_SCENARIO_DIR", "").strip()

    return Settings(
        redis_url=os.environ.get("REDIS_URL", DEFAULT_REDIS_URL),
        scenario_dir=Path(scenario_dir) if scenario_dir else PROJECT_ROOT / "scenarios",
        strict_scenarios=_truthy(os.environ.get("STORY_ENGINE_STRICT_SCENARIOS")),
        log_level=os.environ.get("STORY_ENGINE_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        max_conditional_iterations=max_iterations,
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
