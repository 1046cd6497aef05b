"""Interactive Venice Companion chat in the terminal.

Drives a full ChatSession (threads, modes, persistence) against the real
Venice API. Requires VENICE_API_KEY in the environment or .env.

Usage:
    python interactive_chat.py [user-id]

Commands:
    /image   toggle image mode        /voice   toggle voice mode
    /edit    edit the character photo (image mode only)
    /new     start a new thread       /threads list threads
    /switch N  switch to thread N     /delete N  delete thread N
    /quit
"""

import asyncio
import base64
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from companion.access.gatekeeper import HeaderGatekeeper, USER_ID_HEADER, bootstrap_session
from companion.api.errors import AccessDenied, PersistenceError
from companion.api.venice_client import VeniceGateway
from companion.config import load_config
from companion.session.chat_session import ChatSession, open_chat_session
from companion.session.models import AudioMessage, ImageMessage, TextMessage
from companion.session.storage import InMemoryStorage, KeyValueStorage, SQLiteStorage
from companion.utils.logging_config import setup_logging

MEDIA_DIR = Path("./data/media")
_AUDIO_EXTENSIONS = {"audio/wav": "wav", "audio/ogg": "ogg"}


def _render(session: ChatSession, message) -> str:
    name = session.character.name
    if isinstance(message, TextMessage):
        speaker = "You" if message.role.value == "user" else name
        return f"{speaker}: {message.content}"

    MEDIA_DIR.mkdir(parents=True, exist_ok=True)
    if isinstance(message, ImageMessage):
        path = MEDIA_DIR / f"{message.id}.webp"
        path.write_bytes(base64.b64decode(message.image_data))
        return f"{name}: [image saved to {path}]"
    if isinstance(message, AudioMessage):
        ext = _AUDIO_EXTENSIONS.get(message.mime_type, "mp3")
        path = MEDIA_DIR / f"{message.id}.{ext}"
        path.write_bytes(base64.b64decode(message.audio_data))
        return f"{name}: [audio saved to {path}]"
    return f"{name}: {message!r}"


def open_storage(db_path) -> KeyValueStorage:
    """Open the SQLite store, or keep threads in memory if it cannot be opened."""
    try:
        return SQLiteStorage(db_path)
    except PersistenceError as e:
        logger.warning(f"{e}; threads will not survive this session")
        return InMemoryStorage()


def _print_threads(session: ChatSession):
    for index, thread in enumerate(session.store.threads, start=1):
        marker = "*" if thread.id == session.store.active_thread_id else " "
        print(f" {marker} {index}. {thread.name} ({len(thread.messages)} messages)")


def _thread_at(session: ChatSession, arg: str):
    try:
        return session.store.threads[int(arg) - 1]
    except (ValueError, IndexError):
        print(f"No thread number {arg!r}")
        return None


def _handle_command(session: ChatSession, line: str) -> bool:
    """Apply a slash command. Returns False when the user wants to quit."""
    command, _, arg = line.partition(" ")
    if command == "/quit":
        return False
    if command == "/image":
        print(f"[mode] {session.toggle_image().active.value}")
    elif command == "/voice":
        print(f"[mode] {session.toggle_voice().active.value}")
    elif command == "/edit":
        state = session.set_edit(not session.mode.edit_requested)
        print(f"[edit] {'on' if state.edit_requested else 'off'}")
    elif command == "/new":
        thread = session.create_thread()
        print(f"[thread] {thread.name}")
    elif command == "/threads":
        _print_threads(session)
    elif command == "/switch":
        thread = _thread_at(session, arg)
        if thread and session.select_thread(thread.id):
            print(f"[thread] {thread.name}")
            for message in thread.messages:
                print(_render(session, message))
    elif command == "/delete":
        thread = _thread_at(session, arg)
        if thread and not session.delete_thread(thread.id):
            print("The last thread cannot be deleted.")
    else:
        print(__doc__)
    return True


async def _chat_loop(session: ChatSession, context):
    print(f"\nChat with {session.character.name} (signed in as {context.user_display_name})")
    print("Type /help for commands.\n")

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        line = line.strip()
        if not line:
            continue
        if line.startswith("/"):
            if not _handle_command(session, line):
                break
            continue

        outcome = await session.submit(line)
        if outcome is None:
            continue
        for message in outcome.messages[1:]:
            print(_render(session, message))
        if session.error_message:
            logger.debug(f"Turn error shown to user: {session.error_message}")
            session.dismiss_error()


async def main():
    load_dotenv()
    config = load_config()
    setup_logging(level="WARNING")

    user_id = sys.argv[1] if len(sys.argv) > 1 else "local"
    gatekeeper = HeaderGatekeeper(config.allowed_users())
    try:
        context = bootstrap_session(
            gatekeeper, {USER_ID_HEADER: user_id}, "terminal", config.character()
        )
    except AccessDenied as e:
        print(f"Access required: {e}")
        return

    storage = open_storage(config.db_path)
    try:
        async with VeniceGateway.from_settings(config) as gateway:
            session = open_chat_session(config, gateway, context, storage=storage)
            await _chat_loop(session, context)
    finally:
        storage.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nBye.")
