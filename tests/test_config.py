from __future__ import annotations

from pathlib import Path

import pytest

from story_engine.config import DEFAULT_MAX_CONDITIONAL_ITERATIONS, PROJECT_ROOT, Settings, load_settings

_ENV_VARS = (
    "REDIS_URL",
    "STORY_ENGINE_SCENARIO_DIR",
    "STORY_ENGINE_STRICT_SCENARIOS",
    "STORY_ENGINE_LOG_LEVEL",
    "STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        # setenv first so teardown also removes anything a .env file injects.
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults() -> None:
    settings = load_settings()

    assert settings == Settings()
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.scenario_dir == PROJECT_ROOT / "scenarios"
    assert settings.strict_scenarios is False
    assert settings.log_level == "INFO"
    assert settings.max_conditional_iterations == DEFAULT_MAX_CONDITIONAL_ITERATIONS


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")
    monkeypatch.setenv("STORY_ENGINE_SCENARIO_DIR", str(tmp_path))
    monkeypatch.setenv("STORY_ENGINE_STRICT_SCENARIOS", "yes")
    monkeypatch.setenv("STORY_ENGINE_LOG_LEVEL", "debug")
    monkeypatch.setenv("STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS", "4")

    settings = load_settings()

    assert settings.redis_url == "redis://cache:6380/2"
    assert settings.scenario_dir == tmp_path
    assert settings.strict_scenarios is True
    assert settings.log_level == "DEBUG"
    assert settings.max_conditional_iterations == 4


def test_env_file_does_not_override_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("STORY_ENGINE_LOG_LEVEL=WARNING\nSTORY_ENGINE_MAX_CONDITIONAL_ITERATIONS=7\n", encoding="utf-8")
    monkeypatch.setenv("STORY_ENGINE_LOG_LEVEL", "ERROR")

    settings = load_settings(env_file=env_file)

    assert settings.log_level == "ERROR"
    assert settings.max_conditional_iterations == 7


@pytest.mark.parametrize("raw", ["many", "0", "-3"])
def test_invalid_iteration_limit(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS", raw)

    with pytest.raises(ValueError, match="STORY_ENGINE_MAX_CONDITIONAL_ITERATIONS"):
        load_settings()


def test_create_redis_uses_env_url(monkeypatch: pytest.MonkeyPatch) -> None:
    from story_engine.infra.redis_client import create_redis, get_redis_url

    assert get_redis_url() == "redis://localhost:6379/0"

    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")
    client = create_redis()
    kwargs = client.connection_pool.connection_kwargs

    assert kwargs["host"] == "cache"
    assert kwargs["port"] == 6380
    assert kwargs["db"] == 2
    assert kwargs["decode_responses"] is True
