"""The single logical actor behind one browser session."""
from typing import Optional

from loguru import logger

from companion.session.models import Character, Mode, ModeState, Thread
from companion.session.modes import ModeController
from companion.session.orchestrator import RequestOrchestrator, TurnOutcome
from companion.session.store import SessionStore


class ChatSession:
    """Threads, mode toggles and the one in-flight turn of a user session.

    While a turn is pending, further submissions and mode toggles are
    dropped rather than queued.
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        store: SessionStore,
        character: Character,
        user_display_name: str = "",
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.character = character
        self.user_display_name = user_display_name
        self.modes = ModeController()

        self.is_processing = False
        self.pending_indicator: Optional[str] = None
        self.error_message: Optional[str] = None

    @property
    def mode(self) -> ModeState:
        return self.modes.state

    @property
    def active_thread(self) -> Thread:
        return self.store.active_thread

    # ── Mode toggles ─────────────────────────────────────────────────────

    def toggle_image(self) -> ModeState:
        if not self.is_processing:
            self.error_message = None
            self.modes.toggle_image()
        return self.mode

    def toggle_voice(self) -> ModeState:
        if not self.is_processing:
            self.error_message = None
            self.modes.toggle_voice()
        return self.mode

    def set_edit(self, requested: bool) -> ModeState:
        if not self.is_processing:
            self.modes.set_edit(requested and self.character.can_edit_image)
        return self.mode

    # ── Threads ──────────────────────────────────────────────────────────

    def create_thread(self) -> Thread:
        thread = self.store.create_thread(f"Chat {len(self.store) + 1}")
        self.store.select_thread(thread.id)
        self.error_message = None
        self.pending_indicator = None
        return thread

    def select_thread(self, thread_id: str) -> bool:
        selected = self.store.select_thread(thread_id)
        if selected:
            self.error_message = None
            self.pending_indicator = None
        return selected

    def delete_thread(self, thread_id: str) -> bool:
        if self.is_processing:
            return False
        return self.store.delete_thread(thread_id)

    def dismiss_error(self):
        self.error_message = None

    # ── Turns ────────────────────────────────────────────────────────────

    async def submit(self, text: str) -> Optional[TurnOutcome]:
        """Send one user turn to the active thread.

        Returns None when the text is blank or a turn is already in flight.
        """
        if not text.strip() or self.is_processing:
            return None

        mode = self.mode
        thread_id = self.store.active_thread_id
        self.is_processing = True
        self.error_message = None
        self.pending_indicator = "image" if mode.active == Mode.IMAGE else "text"

        try:
            outcome = await self.orchestrator.submit(text, mode, thread_id, self.character)
            if not outcome.ok:
                self.error_message = outcome.error
            return outcome
        finally:
            self.pending_indicator = None
            self.is_processing = False
            self.modes.reset()
            logger.bind(thread=thread_id[:8]).debug("Turn finished")


def open_chat_session(config, gateway, context, storage=None) -> ChatSession:
    """Build a hydrated ChatSession for a user admitted by the gatekeeper.

    Args:
        config: Application settings (storage key, history limit)
        gateway: VeniceGateway for provider calls
        context: SessionContext from bootstrap_session
        storage: Optional KeyValueStorage; None keeps threads in memory
    """
    store = SessionStore(storage=storage, storage_key=config.storage_key)
    store.load()
    orchestrator = RequestOrchestrator(gateway, store, history_limit=config.history_limit)
    return ChatSession(
        orchestrator,
        store,
        context.character,
        user_display_name=context.user_display_name,
    )
