"""Session domain models: messages, threads, modes and the character."""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


def new_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Mode(str, Enum):
    """Output modality for the next turn."""

    TEXT = "text"
    IMAGE = "image"
    VOICE = "voice"


@dataclass(frozen=True)
class Character:
    """The AI persona a session talks to. Read-only for the session engine."""

    slug: Optional[str] = None
    display_name: Optional[str] = None
    reference_image_url: Optional[str] = None

    @property
    def name(self) -> str:
        return (self.display_name or "").strip() or "Venice AI"

    @property
    def can_edit_image(self) -> bool:
        return bool(self.reference_image_url and self.reference_image_url.strip())


# ── Messages ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TextMessage:
    role: Role
    content: str
    id: str = field(default_factory=new_id)
    type: str = field(default="text", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "role": self.role.value, "type": self.type, "content": self.content}


@dataclass(frozen=True)
class ImageMessage:
    image_data: str
    description: Optional[str] = None
    id: str = field(default_factory=new_id)
    role: Role = field(default=Role.ASSISTANT, init=False)
    type: str = field(default="image", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "role": self.role.value,
            "type": self.type,
            "imageBase64": self.image_data,
        }
        if self.description:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class AudioMessage:
    audio_data: str
    mime_type: str
    transcript: str
    id: str = field(default_factory=new_id)
    role: Role = field(default=Role.ASSISTANT, init=False)
    type: str = field(default="audio", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "type": self.type,
            "audioBase64": self.audio_data,
            "mimeType": self.mime_type,
            "text": self.transcript,
        }


Message = Union[TextMessage, ImageMessage, AudioMessage]


def message_from_dict(data: Dict[str, Any]) -> Message:
    """Rebuild a message from its persisted form.

    Raises:
        ValueError / KeyError: the record is malformed
    """
    kind = data.get("type")
    if kind == "text":
        role = Role(data["role"])
        if role not in (Role.USER, Role.ASSISTANT):
            raise ValueError(f"Unexpected text message role: {role.value}")
        return TextMessage(role=role, content=str(data["content"]), id=str(data["id"]))
    if kind == "image":
        return ImageMessage(
            image_data=str(data["imageBase64"]),
            description=data.get("description") or None,
            id=str(data["id"]),
        )
    if kind == "audio":
        return AudioMessage(
            audio_data=str(data["audioBase64"]),
            mime_type=str(data["mimeType"]),
            transcript=str(data.get("text", "")),
            id=str(data["id"]),
        )
    raise ValueError(f"Unknown message type: {kind!r}")


# ── Threads ──────────────────────────────────────────────────────────────────


@dataclass
class Thread:
    """A named, append-only conversation log."""

    name: str = "New chat"
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=now_ms)
    messages: Tuple[Message, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "messages": [message.to_dict() for message in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Thread":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "New chat"),
            created_at=int(data.get("createdAt") or 0),
            messages=tuple(message_from_dict(item) for item in data.get("messages") or []),
        )


@dataclass(frozen=True)
class ModeState:
    """The mode picked for the next turn plus the orthogonal edit flag."""

    active: Mode = Mode.TEXT
    edit_requested: bool = False
