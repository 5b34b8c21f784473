from __future__ import annotations

from statemachine import State, StateMachine

from story_engine.models.game_state import GameState


class SessionFSM(StateMachine):
    """Session lifecycle guard around GameState.is_ended.

    Only one transition exists: a session can end, and an ended session stays ended.
    """

    active = State("active", value="active", initial=True)
    ended = State("ended", value="ended", final=True)

    end = active.to(ended)

    def __init__(self, game: GameState):
        self.game = game
        super().__init__(start_value="ended" if game.is_ended else "active")

    @property
    def is_ended(self) -> bool:
        return self.current_state == self.ended

    def sync_to_model(self) -> None:
        self.game.is_ended = self.is_ended
