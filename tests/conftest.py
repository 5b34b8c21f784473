from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import fakeredis
import pytest

from story_engine.models.game_state import GameState, new_game_state
from story_engine.models.scenario import Scenario
from story_engine.scenarios import load_scenario, reset_scenarios_for_tests
from story_engine.story_events import RedisStoryEventQueue, StoryEventQueueError

SCENARIO_DIR = Path(__file__).resolve().parent / "scenarios"


class RecordingQueue:
    """In-memory story event sink."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def enqueue(self, game_id: str, prompt: str) -> None:
        self.events.append((game_id, prompt))

    @property
    def prompts(self) -> list[str]:
        return [p for _, p in self.events]


class FailingQueue:
    def __init__(self) -> None:
        self.attempts = 0

    def enqueue(self, game_id: str, prompt: str) -> None:
        self.attempts += 1
        raise StoryEventQueueError("sink unavailable")


@pytest.fixture(autouse=True)
def _reset_scenario_cache() -> Generator[None, None, None]:
    reset_scenarios_for_tests()
    yield
    reset_scenarios_for_tests()


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    # A private server per test so keys never leak between tests.
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture()
def scenario() -> Scenario:
    return load_scenario(SCENARIO_DIR / "pirates.json")


@pytest.fixture()
def state(scenario: Scenario) -> GameState:
    return new_game_state(scenario=scenario)


@pytest.fixture()
def recording_queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture()
def redis_queue(r: fakeredis.FakeRedis) -> RedisStoryEventQueue:
    return RedisStoryEventQueue(r=r)


@pytest.fixture()
def failing_queue() -> FailingQueue:
    return FailingQueue()
