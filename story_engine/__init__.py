"""Rule evaluation and state-mutation engine for LLM-narrated adventure sessions.

The core (models, conditionals, lookup, delta_worker, following) is pure and
synchronous; Redis-backed adapters (store, lock, story_events) and the turn
runner sit on top of it.
"""
