from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

import redis

from story_engine.models.game_state import GameState

GAMES_SET_KEY = "story-engine:games"
GAME_KEY_PREFIX = "story-engine:game:"  # + {uuid}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _game_key(game_id: UUID) -> str:
    return f"{GAME_KEY_PREFIX}{game_id}"


def save_game_state(*, r: redis.Redis, state: GameState) -> None:
    state.last_updated_at = _now()
    pipe = r.pipeline()
    pipe.set(_game_key(state.game_id), state.model_dump_json())
    pipe.sadd(GAMES_SET_KEY, str(state.game_id))
    pipe.execute()


def get_game_state(*, r: redis.Redis, game_id: UUID) -> GameState | None:
    raw = r.get(_game_key(game_id))
    if not raw:
        return None
    return GameState.model_validate_json(raw)


def require_game_state(*, r: redis.Redis, game_id: UUID) -> GameState:
    state = get_game_state(r=r, game_id=game_id)
    if state is None:
        raise ValueError("Game state not found")
    return state


def delete_game_state(*, r: redis.Redis, game_id: UUID) -> None:
    pipe = r.pipeline()
    pipe.delete(_game_key(game_id))
    pipe.srem(GAMES_SET_KEY, str(game_id))
    pipe.execute()


def list_game_states(*, r: redis.Redis) -> list[GameState]:
    ids = sorted(r.smembers(GAMES_SET_KEY))
    out: list[GameState] = []
    for sid in ids:
        try:
            gid = UUID(sid)
        except ValueError:
            continue
        state = get_game_state(r=r, game_id=gid)
        if state is not None:
            out.append(state)
    out.sort(key=lambda s: s.created_at, reverse=True)
    return out
