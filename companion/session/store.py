"""Session store owning every thread and the active-thread pointer."""
import json
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from companion.api.errors import PersistenceError
from companion.session.models import Message, Thread
from companion.session.storage import KeyValueStorage

STORAGE_KEY = "venice-chat-threads"


class SessionStore:
    """Threads for one client session, persisted as a single snapshot.

    The store always holds at least one thread. Messages are only ever
    appended, and every append swaps in a new Thread object so readers see
    either the old log or the new one.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        storage_key: str = STORAGE_KEY,
        initial_name: str = "Session 1",
    ):
        """Initialize the store with a single fresh thread.

        Args:
            storage: Persistence backend (None keeps the store in memory only)
            storage_key: Key the snapshot is stored under
            initial_name: Name of the thread created at session start
        """
        self.storage = storage
        self.storage_key = storage_key
        initial = Thread(name=initial_name)
        self._threads: Dict[str, Thread] = {initial.id: initial}
        self._active_thread_id = initial.id
        self._hydrated = False

    # ── Read access ──────────────────────────────────────────────────────

    @property
    def threads(self) -> List[Thread]:
        """Threads in creation order."""
        return list(self._threads.values())

    @property
    def active_thread_id(self) -> str:
        if self._active_thread_id not in self._threads:
            self._active_thread_id = next(iter(self._threads))
        return self._active_thread_id

    @property
    def active_thread(self) -> Thread:
        return self._threads[self.active_thread_id]

    def get(self, thread_id: str) -> Thread:
        """Return a thread or raise KeyError if missing."""
        thread = self._threads.get(thread_id)
        if thread is None:
            raise KeyError(f"Thread {thread_id} not found")
        return thread

    def __len__(self) -> int:
        return len(self._threads)

    def __contains__(self, thread_id: str) -> bool:
        return thread_id in self._threads

    # ── Mutations ────────────────────────────────────────────────────────

    def create_thread(self, name: Optional[str] = None) -> Thread:
        """Create an empty thread. It is addressable but not selected."""
        thread = Thread(name=name or "New chat")
        self._threads[thread.id] = thread
        logger.info(f"Thread created: {thread.name} ({thread.id[:8]})")
        self.save()
        return thread

    def select_thread(self, thread_id: str) -> bool:
        if thread_id not in self._threads:
            logger.warning(f"Cannot select unknown thread {thread_id}")
            return False
        self._active_thread_id = thread_id
        self.save()
        return True

    def delete_thread(self, thread_id: str) -> bool:
        """Delete a thread. The last remaining thread cannot be deleted."""
        if thread_id not in self._threads:
            return False
        if len(self._threads) <= 1:
            logger.warning("Refusing to delete the only remaining thread")
            return False

        was_active = thread_id == self.active_thread_id
        del self._threads[thread_id]
        if was_active:
            self._active_thread_id = self.threads[-1].id
        logger.info(f"Thread deleted: {thread_id[:8]}")
        self.save()
        return True

    def append_messages(self, thread_id: str, messages: Iterable[Message]) -> Thread:
        """Append messages to a thread in order, as one replacement."""
        thread = self.get(thread_id)
        updated = replace(thread, messages=thread.messages + tuple(messages))
        self._threads[thread_id] = updated
        self.save()
        return updated

    # ── Persistence ──────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {
            "activeThreadId": self.active_thread_id,
            "threads": [thread.to_dict() for thread in self._threads.values()],
        }

    def restore(self, state: Any) -> bool:
        """Replace every thread with a persisted snapshot.

        Malformed or empty snapshots are ignored and the current threads are
        kept. A stale active reference falls back to the first thread.
        """
        try:
            raw_threads = state.get("threads") if isinstance(state, dict) else None
            if not isinstance(raw_threads, list) or not raw_threads:
                return False
            threads = [Thread.from_dict(item) for item in raw_threads]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed session snapshot: {e}")
            return False

        self._threads = {thread.id: thread for thread in threads}
        stored_active = state.get("activeThreadId")
        if isinstance(stored_active, str) and stored_active in self._threads:
            self._active_thread_id = stored_active
        else:
            self._active_thread_id = threads[0].id
        return True

    def load(self) -> bool:
        """Hydrate from storage. Failures are logged and otherwise ignored."""
        restored = False
        try:
            if self.storage is not None:
                saved = self.storage.get(self.storage_key)
                if saved:
                    restored = self.restore(json.loads(saved))
        except (PersistenceError, ValueError) as e:
            logger.warning(f"Unable to hydrate threads from storage: {e}")
        finally:
            self._hydrated = True
        if restored:
            logger.info(f"Restored {len(self._threads)} thread(s) from storage")
        return restored

    def save(self) -> None:
        """Persist the snapshot. Nothing is written before hydration."""
        if self.storage is None or not self._hydrated:
            return
        try:
            self.storage.set(self.storage_key, json.dumps(self.snapshot()))
        except PersistenceError as e:
            logger.warning(f"Unable to persist threads: {e}")
