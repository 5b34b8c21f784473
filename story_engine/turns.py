from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

import redis

from story_engine.config import DEFAULT_MAX_CONDITIONAL_ITERATIONS
from story_engine.delta_worker import DeltaWorker
from story_engine.lock import session_lock
from story_engine.models.delta import GameStateDelta
from story_engine.models.game_state import GameState
from story_engine.models.scenario import Scenario
from story_engine.store import require_game_state, save_game_state
from story_engine.story_events import StoryEventQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TurnResult:
    # Conditional ids in the order they first triggered this turn.
    triggered_conditionals: tuple[str, ...] = ()
    # Scene story-event ids enqueued this turn (conditional prompts excluded).
    story_events: tuple[str, ...] = ()
    cascade_iterations: int = 0
    moved: dict[str, str] = field(default_factory=dict)


def _run_cascade(
    *,
    state: GameState,
    scenario: Scenario,
    queue: StoryEventQueue | None,
    seen: dict[str, None],
    max_iterations: int,
) -> int:
    """Re-evaluate conditionals against the updated world until nothing new triggers.

    Each pass merges into a fresh delta so the generator's events are applied once.
    Returns the number of passes that applied something.
    """

    for iteration in range(max_iterations):
        worker = DeltaWorker(state=state, delta=GameStateDelta(), scenario=scenario, queue=queue)
        triggered = worker.apply_conditional_overrides()
        if not triggered:
            return iteration

        new_ids = [cid for cid in triggered if cid not in seen]
        if not new_ids:
            logger.debug("No new conditionals triggered, stopping cascade game_id=%s iteration=%d", state.game_id, iteration)
            return iteration

        for cid in new_ids:
            seen[cid] = None
        logger.info("Conditional cascade game_id=%s iteration=%d triggered=%s", state.game_id, iteration, ",".join(new_ids))

        worker.apply_vars()
        worker.apply()

    logger.warning("Max conditional iterations reached game_id=%s iterations=%d", state.game_id, max_iterations)
    return max_iterations


def apply_turn_delta(
    *,
    state: GameState,
    delta: GameStateDelta | None,
    scenario: Scenario | None,
    queue: StoryEventQueue | None = None,
    max_conditional_iterations: int = DEFAULT_MAX_CONDITIONAL_ITERATIONS,
) -> TurnResult:
    """Run one full turn against `state` in place.

    Raises SceneLoadError if a scene change can't be loaded; `state` may then be
    partially updated and should not be saved.
    """

    if not state.is_ended:
        state.increment_turn_counters()

    locations_before = {k: npc.location for k, npc in state.npcs.items()}

    worker = DeltaWorker(state=state, delta=delta, scenario=scenario, queue=queue)
    worker.apply_vars()
    triggered = worker.apply_conditional_overrides()
    # Conditionals may have contributed set_vars.
    worker.apply_vars()
    worker.apply()

    seen: dict[str, None] = dict.fromkeys(triggered)
    iterations = 0
    if scenario is not None:
        iterations = _run_cascade(
            state=state,
            scenario=scenario,
            queue=queue,
            seen=seen,
            max_iterations=max_conditional_iterations,
        )

    fired = worker.queue_story_events()

    moved = {
        k: npc.location for k, npc in state.npcs.items() if k in locations_before and locations_before[k] != npc.location
    }

    return TurnResult(
        triggered_conditionals=tuple(seen),
        story_events=tuple(fired),
        cascade_iterations=iterations,
        moved=moved,
    )


def process_turn(
    *,
    r: redis.Redis,
    game_id: UUID,
    delta: GameStateDelta | None,
    scenario: Scenario | None,
    queue: StoryEventQueue | None = None,
    max_conditional_iterations: int = DEFAULT_MAX_CONDITIONAL_ITERATIONS,
) -> tuple[GameState, TurnResult]:
    """Load, update and save one session under its lock.

    Raises ValueError if the session is busy or unknown. Nothing is saved if the
    turn raises.
    """

    with session_lock(r=r, game_id=str(game_id)):
        state = require_game_state(r=r, game_id=game_id)
        result = apply_turn_delta(
            state=state,
            delta=delta,
            scenario=scenario,
            queue=queue,
            max_conditional_iterations=max_conditional_iterations,
        )
        save_game_state(r=r, state=state)

    logger.debug(
        "Turn processed game_id=%s turn=%d scene=%s conditionals=%d story_events=%d",
        game_id,
        state.turn_counter,
        state.scene_name,
        len(result.triggered_conditionals),
        len(result.story_events),
    )
    return state, result
