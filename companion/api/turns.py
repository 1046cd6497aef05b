"""Transport-level turns: the two operations the HTTP layer exposes."""
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger

from companion.api.errors import ValidationError
from companion.api.venice_client import ChatOptions, VeniceGateway, validate_provider_params
from companion.session.history import DEFAULT_HISTORY_LIMIT

_CHAT_ROLES = ("system", "user", "assistant")


def _normalize_messages(messages: Any) -> List[Dict[str, str]]:
    if not isinstance(messages, list) or not messages:
        raise ValidationError("messages array is required")

    normalized = []
    for message in messages[-DEFAULT_HISTORY_LIMIT:]:
        if not isinstance(message, Mapping):
            raise ValidationError("each message must be an object")
        role = message.get("role")
        content = message.get("content")
        if role not in _CHAT_ROLES:
            raise ValidationError(f"unsupported message role: {role!r}")
        if not isinstance(content, str):
            raise ValidationError("message content must be a string")
        normalized.append({"role": role, "content": content})
    return normalized


async def chat_turn(
    gateway: VeniceGateway,
    messages: Any,
    provider_params: Optional[Mapping[str, Any]] = None,
    voice_requested: bool = False,
) -> Dict[str, Any]:
    """Complete a chat and optionally voice the reply.

    Returns ``{"reply": str}`` plus ``"audio": {"base64", "mimeType"}`` when
    voice was requested. A speech failure fails the whole turn.
    """
    turns = _normalize_messages(messages)
    params = validate_provider_params(provider_params)

    reply = await gateway.complete_chat(turns, ChatOptions(parameters=params))
    if voice_requested:
        audio = await gateway.synthesize_speech(reply)
        return {"reply": reply, "audio": audio.to_dict()}
    return {"reply": reply}


async def image_turn(
    gateway: VeniceGateway,
    prompt: Any,
    mode: str = "generate",
    image_url: Optional[str] = None,
    provider_params: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Generate or edit an image, then try to describe it.

    Returns ``{"imageBase64": str, "description": str | None}``.
    """
    if not prompt or not isinstance(prompt, str):
        raise ValidationError("prompt is required")
    if mode not in ("generate", "edit"):
        raise ValidationError("mode must be 'generate' or 'edit'")
    # Image endpoints take no provider bag; it is validated and dropped
    validate_provider_params(provider_params)

    if mode == "edit":
        if not image_url:
            raise ValidationError("imageUrl is required for edit mode")
        image = await gateway.edit_image(prompt, image_url)
    else:
        image = await gateway.generate_image(prompt)

    description: Optional[str] = None
    try:
        description = await gateway.describe_image(image)
    except Exception as exc:
        logger.warning(f"Image description failed: {exc}")

    return {"imageBase64": image, "description": description}
