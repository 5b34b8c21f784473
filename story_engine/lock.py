from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import redis

SESSION_LOCK_KEY_PREFIX = "lock:story-session:"  # + {game_id}


@contextmanager
def session_lock(*, r: redis.Redis, game_id: str, ttl_ms: int = 5_000) -> Iterator[None]:
    """Best-effort per-session lock.

    Turns for one session must not interleave; this serializes them across
    worker processes. Holders are not tokenized, so the TTL must exceed the
    longest turn.
    """

    key = f"{SESSION_LOCK_KEY_PREFIX}{game_id}"
    acquired = r.set(key, "1", nx=True, px=ttl_ms)
    if not acquired:
        raise ValueError("Session is busy")
    try:
        yield
    finally:
        r.delete(key)
