"""Context window sent to the chat capability."""
from typing import Dict, Iterable, List

from companion.session.models import Message, TextMessage

DEFAULT_HISTORY_LIMIT = 20


def window(messages: Iterable[Message], limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict[str, str]]:
    """Return the most recent ``limit`` text turns as ``{role, content}`` dicts.

    Image and audio messages never reach the provider. Order is chronological.
    """
    if limit <= 0:
        return []
    text_turns = [message for message in messages if isinstance(message, TextMessage)]
    return [
        {"role": message.role.value, "content": message.content}
        for message in text_turns[-limit:]
    ]
