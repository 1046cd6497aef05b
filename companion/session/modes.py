"""Mode controller for the exclusive Text | Image | Voice choice plus the edit flag."""
from loguru import logger

from companion.session.models import Mode, ModeState


class ModeController:
    """Single-turn mode state machine.

    Image and Voice are mutually exclusive; toggling either on clears the
    other and the edit flag, toggling it off falls back to Text. The edit
    flag only sticks while Image is active. ``reset`` runs after every turn.
    """

    def __init__(self):
        self.state = ModeState()

    @property
    def active(self) -> Mode:
        return self.state.active

    @property
    def edit_requested(self) -> bool:
        return self.state.edit_requested

    def _toggle(self, mode: Mode) -> ModeState:
        if self.state.active == mode:
            self.state = ModeState()
        else:
            self.state = ModeState(active=mode, edit_requested=False)
        logger.debug(f"Mode -> {self.state.active.value}")
        return self.state

    def toggle_image(self) -> ModeState:
        return self._toggle(Mode.IMAGE)

    def toggle_voice(self) -> ModeState:
        return self._toggle(Mode.VOICE)

    def set_edit(self, requested: bool) -> ModeState:
        """Request (or cancel) editing the reference image. Ignored outside Image mode."""
        if requested and self.state.active != Mode.IMAGE:
            return self.state
        self.state = ModeState(active=self.state.active, edit_requested=requested)
        return self.state

    def reset(self) -> ModeState:
        self.state = ModeState()
        return self.state


def effective_edit(state: ModeState, can_edit_image: bool) -> bool:
    """The edit flag as it applies to a turn: Image mode with an editable reference only."""
    return state.edit_requested and state.active == Mode.IMAGE and can_edit_image
