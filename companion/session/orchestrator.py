"""Request orchestrator: turns one user submission into provider calls.

Flows by mode:
    Text   chat completion → assistant text
    Voice  chat completion → assistant text → speech synthesis → audio
    Image  generate/edit → image → (best-effort) description

A failed primary call (chat, generate/edit) ends the turn with an
``Error: <message>`` assistant message. Speech synthesis failures end the
turn the same way; description failures are only logged.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from companion.api.errors import GatewayError, ValidationError
from companion.api.venice_client import ChatOptions, ProviderParams
from companion.session.history import DEFAULT_HISTORY_LIMIT, window
from companion.session.models import (
    AudioMessage,
    Character,
    ImageMessage,
    Message,
    Mode,
    ModeState,
    Role,
    TextMessage,
)
from companion.session.modes import effective_edit
from companion.session.store import SessionStore

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
GENERIC_ERROR = "Something went wrong."


@dataclass
class TurnOutcome:
    """Result of one submitted turn."""

    ok: bool
    messages: List[Message] = field(default_factory=list)
    error: Optional[str] = None


def build_provider_params(character: Character) -> ProviderParams:
    """Venice parameters sent with every chat turn for this character."""
    params: ProviderParams = {
        "enable_web_search": "auto",
        "include_venice_system_prompt": True,
    }
    if character.slug:
        params["character_slug"] = character.slug
    return params


class RequestOrchestrator:
    """Drive the gateway for one turn and record the results in the store."""

    def __init__(
        self,
        gateway,
        store: SessionStore,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ):
        """Initialise the orchestrator.

        Args:
            gateway: VeniceGateway (or anything with the same coroutines)
            store: Session store the results are appended to
            history_limit: Text turns of context sent with each chat call
            system_prompt: Instruction used when the character has no slug
        """
        self.gateway = gateway
        self.store = store
        self.history_limit = history_limit
        self.system_prompt = system_prompt

    async def submit(
        self,
        user_text: str,
        mode_state: ModeState,
        thread_id: str,
        character: Character,
    ) -> TurnOutcome:
        """Run one turn against ``thread_id`` in the given mode."""
        prompt = user_text.strip()
        log = logger.bind(thread=thread_id[:8])
        if not prompt:
            raise ValidationError("message text is required")

        # Context is taken before the user turn lands in the thread
        history = window(self.store.get(thread_id).messages, self.history_limit)

        appended: List[Message] = []

        def append(*messages: Message):
            if thread_id not in self.store:
                log.warning(f"Thread disappeared mid-turn; dropping {len(messages)} message(s)")
                return
            self.store.append_messages(thread_id, messages)
            appended.extend(messages)

        append(TextMessage(role=Role.USER, content=prompt))

        try:
            if mode_state.active == Mode.IMAGE:
                edit = effective_edit(mode_state, character.can_edit_image)
                append(*await self._image_flow(prompt, edit, character))
            else:
                reply = await self._chat(history, prompt, character)
                append(TextMessage(role=Role.ASSISTANT, content=reply))
                if mode_state.active == Mode.VOICE:
                    speech = await self.gateway.synthesize_speech(reply)
                    append(
                        AudioMessage(
                            audio_data=speech.base64,
                            mime_type=speech.mime_type,
                            transcript=reply,
                        )
                    )
        except GatewayError as e:
            message = str(e) or GENERIC_ERROR
            log.error(f"Turn failed in {mode_state.active.value} mode: {message}")
            append(TextMessage(role=Role.ASSISTANT, content=f"Error: {message}"))
            return TurnOutcome(ok=False, messages=appended, error=message)
        except Exception:
            log.exception("Unexpected error while processing turn")
            append(TextMessage(role=Role.ASSISTANT, content=f"Error: {GENERIC_ERROR}"))
            return TurnOutcome(ok=False, messages=appended, error=GENERIC_ERROR)

        return TurnOutcome(ok=True, messages=appended)

    # ── Flows ────────────────────────────────────────────────────────────

    async def _chat(
        self,
        history: List[Dict[str, str]],
        prompt: str,
        character: Character,
    ) -> str:
        turns: List[Dict[str, str]] = [*history, {"role": Role.USER.value, "content": prompt}]
        if not character.slug:
            turns.insert(0, {"role": Role.SYSTEM.value, "content": self.system_prompt})

        return await self.gateway.complete_chat(
            turns,
            ChatOptions(parameters=build_provider_params(character)),
        )

    async def _image_flow(self, prompt: str, edit: bool, character: Character) -> List[Message]:
        if edit:
            image = await self.gateway.edit_image(prompt, character.reference_image_url)
        else:
            image = await self.gateway.generate_image(prompt)

        description: Optional[str] = None
        try:
            description = await self.gateway.describe_image(image)
        except Exception as exc:
            logger.warning(f"Image description failed: {exc}")

        messages: List[Message] = [ImageMessage(image_data=image, description=description or None)]
        if description:
            messages.append(TextMessage(role=Role.ASSISTANT, content=f"Here is {description}"))
        return messages
