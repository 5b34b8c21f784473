from __future__ import annotations

import logging

from story_engine.models.game_state import GameState

logger = logging.getLogger(__name__)

PLAYER_TOKEN = "pc"


def is_player_token(ref: str) -> bool:
    return ref.strip().casefold() == PLAYER_TOKEN


def sync_following_npcs(state: GameState, *, log: logging.Logger | None = None) -> list[str]:
    """Move every following NPC to its target's location. Returns the ids that moved.

    Targets are resolved depth-first, so chains (B follows A follows pc) settle
    in a single call regardless of map order. NPCs on a following cycle keep
    their current location.
    """

    log = log or logger
    final: dict[str, str] = {}
    path: list[str] = []

    def resolve(key: str) -> str:
        if key in final:
            return final[key]

        npc = state.npcs[key]
        ref = npc.following.strip()
        if not ref:
            final[key] = npc.location
            return final[key]
        if is_player_token(ref):
            final[key] = state.location or npc.location
            return final[key]

        target = state.npc_key(ref)
        if target is None:
            log.warning("Following target not found npc=%s following=%r", key, npc.following)
            final[key] = npc.location
            return final[key]

        path.append(key)
        try:
            if target in path:
                cycle = path[path.index(target) :]
                log.warning("Following cycle detected, leaving NPCs in place: %s", " -> ".join(cycle + [target]))
                for member in cycle:
                    final[member] = state.npcs[member].location
                return final[key]

            dest = resolve(target)
            # A cycle found deeper in the recursion may already have pinned this NPC.
            final.setdefault(key, dest or npc.location)
            return final[key]
        finally:
            path.pop()

    moved: list[str] = []
    for key in list(state.npcs):
        dest = resolve(key)
        npc = state.npcs[key]
        if dest and dest != npc.location:
            log.info("NPC followed npc=%s following=%r from=%s to=%s", key, npc.following, npc.location, dest)
            npc.location = dest
            moved.append(key)
    return moved
