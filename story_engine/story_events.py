"""Story-event side channel.

The delta worker only depends on the `StoryEventQueue` protocol. The Redis
implementation appends to one stream per game; the chat side drains it before
the next narrator call and injects the events into the prompt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, cast
from uuid import uuid4

import redis

logger = logging.getLogger(__name__)

STORY_EVENT_KEY_PREFIX = "story-events:"  # + {game_id}
STORY_EVENT_PREFIX = "STORY EVENT: "


class StoryEventQueueError(RuntimeError):
    pass


class StoryEventQueue(Protocol):
    def enqueue(self, game_id: str, prompt: str) -> None:
        """Hand off one event. Raises StoryEventQueueError on failure."""
        ...


@dataclass(frozen=True, slots=True)
class StoryEventRequest:
    request_id: str
    game_id: str
    prompt: str
    enqueued_at: datetime

    @staticmethod
    def now(*, game_id: str, prompt: str) -> "StoryEventRequest":
        return StoryEventRequest(request_id=str(uuid4()), game_id=game_id, prompt=prompt, enqueued_at=datetime.now(tz=UTC))

    def to_fields(self) -> dict[str, str]:
        return {
            "type": "story_event",
            "request_id": self.request_id,
            "game_id": self.game_id,
            "prompt": self.prompt,
            "enqueued_at": self.enqueued_at.isoformat(),
        }


def story_event_key(game_id: str) -> str:
    return f"{STORY_EVENT_KEY_PREFIX}{game_id}"


def format_story_events(prompts: list[str]) -> str:
    return "\n\n".join(f"{STORY_EVENT_PREFIX}{p}" for p in prompts)


def _preview(s: str, n: int = 50) -> str:
    return s if len(s) <= n else s[:n] + "..."


class RedisStoryEventQueue:
    """Per-game story events on a Redis stream (`story-events:{game_id}`)."""

    def __init__(self, *, r: redis.Redis) -> None:
        self._r = r

    def enqueue(self, game_id: str, prompt: str) -> None:
        req = StoryEventRequest.now(game_id=game_id, prompt=prompt)
        try:
            self._r.xadd(story_event_key(game_id), req.to_fields())
        except redis.RedisError as e:
            raise StoryEventQueueError(f"Failed to enqueue story event for game {game_id}") from e
        logger.debug("Enqueued story event game_id=%s request_id=%s prompt=%r", game_id, req.request_id, _preview(prompt))

    def peek(self, game_id: str, limit: int = 0) -> list[str]:
        """Return queued prompts without removing them (all of them if limit <= 0)."""

        key = story_event_key(game_id)
        try:
            if limit > 0:
                entries = self._r.xrange(key, count=limit)
            else:
                entries = self._r.xrange(key)
        except redis.RedisError as e:
            raise StoryEventQueueError(f"Failed to read story events for game {game_id}") from e
        return [cast(dict[str, str], fields).get("prompt", "") for _, fields in entries]

    def dequeue(self, game_id: str) -> list[str]:
        prompts = self.peek(game_id)
        if prompts:
            self.clear(game_id)
            logger.debug("Dequeued story events game_id=%s count=%d", game_id, len(prompts))
        return prompts

    def clear(self, game_id: str) -> None:
        try:
            self._r.delete(story_event_key(game_id))
        except redis.RedisError as e:
            raise StoryEventQueueError(f"Failed to clear story events for game {game_id}") from e

    def depth(self, game_id: str) -> int:
        try:
            return int(self._r.xlen(story_event_key(game_id)))
        except redis.RedisError as e:
            raise StoryEventQueueError(f"Failed to get story event depth for game {game_id}") from e

    def formatted_events(self, game_id: str) -> str:
        return format_story_events(self.peek(game_id))
