"""Merge and apply a turn's delta to a session.

Typical use (see `story_engine.turns`):

    worker = DeltaWorker(state=gs, delta=delta, scenario=scenario, queue=queue)
    worker.apply_vars()
    worker.apply_conditional_overrides()
    worker.apply_vars()
    worker.apply()

Resolution failures (unknown scene / location / NPC / exit / item container)
are logged and skipped. Only a scene that exists but fails to load raises.
The worker holds no locks; callers serialize access per session.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from story_engine.conditionals import evaluate_conditionals, evaluate_story_events
from story_engine.following import is_player_token, sync_following_npcs
from story_engine.fsm import SessionFSM
from story_engine.models.delta import (
    EndpointType,
    ExitStatus,
    GameStateDelta,
    ItemAction,
    ItemEndpoint,
    ItemEvent,
    LocationEvent,
    NPCEvent,
    SceneChange,
)
from story_engine.models.game_state import GameState, SceneLoadError
from story_engine.models.scenario import Conditional, Scenario
from story_engine.story_events import StoryEventQueue, StoryEventQueueError

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "blocked"

_SEPARATORS = re.compile(r"[\s.\-_]+")


def to_snake_case(s: str) -> str:
    """Lower snake_case a variable name: spaces, hyphens, dots and runs collapse to one `_`."""

    return _SEPARATORS.sub("_", s.strip().lower()).strip("_")


class DeltaWorker:
    def __init__(
        self,
        *,
        state: GameState,
        delta: GameStateDelta | None,
        scenario: Scenario | None,
        queue: StoryEventQueue | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.state = state
        self.delta = delta if delta is not None else GameStateDelta()
        self.scenario = scenario
        self.queue = queue
        self.log = log or logger

        self._item_handlers: dict[ItemAction, Callable[[ItemEvent], None]] = {
            ItemAction.acquire: self._acquire_item,
            ItemAction.drop: self._drop_item,
            ItemAction.give: self._give_item,
            ItemAction.move: self._move_item,
            ItemAction.use: self._use_item,
        }

    @property
    def game_id(self) -> str:
        return str(self.state.game_id)

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def apply_vars(self) -> None:
        for name, value in self.delta.set_vars.items():
            key = to_snake_case(name)
            if not key:
                self.log.warning("Ignoring variable with empty name game_id=%s input=%r", self.game_id, name)
                continue
            self.state.vars[key] = value

    # ------------------------------------------------------------------
    # Merge phase
    # ------------------------------------------------------------------

    def apply_conditional_overrides(self) -> dict[str, Conditional]:
        """Merge every triggered conditional's `then` into the working delta.

        Returns the triggered conditionals keyed by id, in declaration order.
        """

        if self.scenario is None:
            return {}

        triggered = evaluate_conditionals(self.scenario, self.state)
        for conditional_id, conditional in triggered.items():
            self._merge_delta(conditional.then, conditional_id)
        return triggered

    def _merge_delta(self, then: GameStateDelta, conditional_id: str) -> None:
        d = self.delta

        if then.scene_change is not None and then.scene_change.to:
            d.scene_change = SceneChange(to=then.scene_change.to, reason="conditional")

        if then.game_ended is not None:
            d.game_ended = then.game_ended

        if then.user_location:
            d.user_location = then.user_location

        if then.set_vars:
            d.set_vars.update(then.set_vars)

        # Event lists accumulate; copies keep the scenario template untouched.
        d.item_events.extend(e.model_copy(deep=True) for e in then.item_events)
        d.npc_events.extend(e.model_copy(deep=True) for e in then.npc_events)
        d.location_events.extend(e.model_copy(deep=True) for e in then.location_events)

        # A conditional prompt is a one-shot story event, not a delta field.
        if then.prompt is not None:
            self._fire_story_event(conditional_id, then.prompt)

    def queue_story_events(self) -> list[str]:
        """Fire the current scene's story events whose `when` matches. Returns ids fired now."""

        if self.scenario is None:
            return []

        fired: list[str] = []
        for event_id, event in evaluate_story_events(self.scenario, self.state).items():
            if self._fire_story_event(event_id, event.prompt):
                fired.append(event_id)
        return fired

    def _fire_story_event(self, event_id: str, prompt: str) -> bool:
        if self.state.has_fired(event_id):
            self.log.debug("Story event already fired, skipping game_id=%s event_id=%s", self.game_id, event_id)
            return False

        if self.queue is None:
            self.log.error("No story event queue configured, event not fired game_id=%s event_id=%s", self.game_id, event_id)
            return False

        try:
            self.queue.enqueue(self.game_id, prompt)
        except StoryEventQueueError as e:
            # Left unmarked so it can fire on a later turn.
            self.log.error("Failed to enqueue story event game_id=%s event_id=%s error=%s", self.game_id, event_id, e)
            return False

        self.state.mark_fired(event_id)
        self.log.info("Story event enqueued game_id=%s event_id=%s", self.game_id, event_id)
        return True

    # ------------------------------------------------------------------
    # Apply phase
    # ------------------------------------------------------------------

    def apply(self) -> None:
        """Apply the merged delta. Raises SceneLoadError if a scene change can't be loaded."""

        d = self.delta

        if d.scene_change is not None and d.scene_change.to:
            self._change_scene(d.scene_change)

        if d.user_location:
            self._move_player(d.user_location)

        for item_event in d.item_events:
            self._apply_item_event(item_event)

        for npc_event in d.npc_events:
            self._apply_npc_event(npc_event)

        for location_event in d.location_events:
            self._apply_location_event(location_event)

        if d.game_ended is True:
            self._end_game()

        # Followers react to the positions set above; items last since they moved in between.
        sync_following_npcs(self.state, log=self.log)
        self.state.normalize_items()

    def _change_scene(self, change: SceneChange) -> None:
        target = change.to
        if target == self.state.scene_name:
            return
        if self.scenario is None or not self.scenario.has_scene(target):
            self.log.warning("Scene not found game_id=%s scene=%r reason=%r", self.game_id, target, change.reason)
            return

        previous = self.state.scene_name
        try:
            self.state.load_scene(self.scenario, target)
        except SceneLoadError as e:
            raise SceneLoadError(f"Failed to load scene {target!r}: {e}") from e
        self.log.info("Scene changed game_id=%s from=%s to=%s reason=%r", self.game_id, previous, target, change.reason)

    def _move_player(self, ref: str) -> None:
        key = self.state.location_key(ref)
        if key is None:
            self.log.warning("Could not find location game_id=%s input=%r current=%s", self.game_id, ref, self.state.location)
            return
        if key != self.state.location:
            self.log.info("Location changed game_id=%s from=%s to=%s input=%r", self.game_id, self.state.location, key, ref)
        self.state.location = key

    # -- items ---------------------------------------------------------

    def _apply_item_event(self, event: ItemEvent) -> None:
        try:
            action = ItemAction(event.action.strip().lower())
        except ValueError:
            self.log.warning("Unknown item action game_id=%s item=%r action=%r", self.game_id, event.item, event.action)
            return
        self._item_handlers[action](event)

    def _container(self, endpoint: ItemEndpoint) -> list[str] | None:
        try:
            kind = EndpointType(endpoint.type.strip().lower())
        except ValueError:
            self.log.warning("Unknown item container type game_id=%s type=%r", self.game_id, endpoint.type)
            return None

        if kind is EndpointType.player:
            return self.state.inventory

        if kind is EndpointType.location:
            # An unnamed location means wherever the player is.
            key = self.state.location_key(endpoint.name) if endpoint.name else self.state.location_key(self.state.location)
            if key is None:
                self.log.warning("Item container location not found game_id=%s name=%r", self.game_id, endpoint.name)
                return None
            return self.state.world_locations[key].items

        key = self.state.npc_key(endpoint.name)
        if key is None:
            self.log.warning("Item container NPC not found game_id=%s name=%r", self.game_id, endpoint.name)
            return None
        return self.state.npcs[key].items

    def _remove_item(self, item: str, endpoint: ItemEndpoint | None) -> None:
        container = self.state.inventory if endpoint is None else self._container(endpoint)
        if container is not None and item in container:
            container.remove(item)

    def _add_item(self, item: str, endpoint: ItemEndpoint) -> None:
        container = self._container(endpoint)
        if container is not None and item not in container:
            container.append(item)

    def _acquire_item(self, event: ItemEvent) -> None:
        if event.item not in self.state.inventory:
            self.state.inventory.append(event.item)
        source = event.from_
        if source is not None and not event.is_consumed and source.type.strip().lower() != EndpointType.player:
            self._remove_item(event.item, source)

    def _drop_item(self, event: ItemEvent) -> None:
        self._remove_item(event.item, None)
        if event.to is not None:
            self._add_item(event.item, event.to)

    def _give_item(self, event: ItemEvent) -> None:
        self._remove_item(event.item, event.from_)
        if event.to is not None:
            self._add_item(event.item, event.to)

    def _move_item(self, event: ItemEvent) -> None:
        if event.from_ is not None:
            self._remove_item(event.item, event.from_)
        if event.to is not None:
            self._add_item(event.item, event.to)

    def _use_item(self, event: ItemEvent) -> None:
        if event.is_consumed:
            self._remove_item(event.item, event.from_)

    # -- NPCs ----------------------------------------------------------

    def _apply_npc_event(self, event: NPCEvent) -> None:
        npc_key = self.state.npc_key(event.npc_id)
        if npc_key is None:
            self.log.warning("NPC not found for event game_id=%s npc_id=%r", self.game_id, event.npc_id)
            return
        npc = self.state.npcs[npc_key]

        destination = event.destination()
        if destination is not None:
            location_key = self.state.location_key(destination.to)
            if location_key is None:
                self.log.warning(
                    "Location not found for NPC movement game_id=%s npc=%s to=%r reason=%r",
                    self.game_id,
                    npc_key,
                    destination.to,
                    destination.reason,
                )
            else:
                self.log.info(
                    "NPC moved game_id=%s npc=%s from=%s to=%s reason=%r",
                    self.game_id,
                    npc_key,
                    npc.location,
                    location_key,
                    destination.reason,
                )
                npc.location = location_key

        if event.set_following is not None:
            ref = event.set_following.strip()
            if ref and not is_player_token(ref) and self.state.npc_key(ref) is None:
                # Stored anyway: the target may appear in a later scene.
                self.log.warning("Following target not found game_id=%s npc=%s following=%r", self.game_id, npc_key, ref)
            npc.following = ref

    # -- locations -----------------------------------------------------

    def _apply_location_event(self, event: LocationEvent) -> None:
        location_key = self.state.location_key(event.location_id)
        if location_key is None:
            self.log.warning("Location not found for location event game_id=%s location_id=%r", self.game_id, event.location_id)
            return
        loc = self.state.world_locations[location_key]

        for change in event.exit_changes:
            try:
                status = ExitStatus(change.status.strip().lower())
            except ValueError:
                self.log.warning(
                    "Unknown exit status game_id=%s location=%s exit=%r status=%r",
                    self.game_id,
                    location_key,
                    change.exit_id,
                    change.status,
                )
                continue

            if status is ExitStatus.blocked:
                exit_key = self._exit_key(loc.exits, change.exit_id)
                if exit_key is None:
                    # blocked_exits stays a subset of exits.
                    self.log.warning("Exit not found game_id=%s location=%s exit=%r", self.game_id, location_key, change.exit_id)
                    continue
                reason = change.reason or DEFAULT_BLOCK_REASON
                loc.blocked_exits[exit_key] = reason
                self.log.info("Exit blocked game_id=%s location=%s exit=%s reason=%r", self.game_id, location_key, exit_key, reason)
            else:
                exit_key = self._exit_key(loc.blocked_exits, change.exit_id)
                if exit_key is not None:
                    del loc.blocked_exits[exit_key]
                    self.log.info("Exit unblocked game_id=%s location=%s exit=%s", self.game_id, location_key, exit_key)

    @staticmethod
    def _exit_key(exits: dict[str, str], ref: str) -> str | None:
        if ref in exits:
            return ref
        wanted = ref.strip().lower()
        return next((k for k in exits if k.strip().lower() == wanted), None)

    # -- lifecycle -----------------------------------------------------

    def _end_game(self) -> None:
        fsm = SessionFSM(self.state)
        if fsm.is_ended:
            return
        fsm.end()
        fsm.sync_to_model()
        self.log.info("Game ended game_id=%s", self.game_id)
