"""Venice AI gateway: one typed contract over the chat, image and speech endpoints.

Every public coroutine issues exactly one HTTP request. Retries are the
caller's business; nothing here loops.
"""
import base64
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx
from loguru import logger

from companion.api.errors import (
    AuthError,
    EmptyCompletion,
    NoAudioProduced,
    NoImageProduced,
    ProviderError,
    ValidationError,
)

VENICE_BASE_URL = "https://api.venice.ai/api/v1"

Primitive = Union[str, int, float, bool]
ProviderParams = Dict[str, Primitive]

IMAGE_FORMATS = ("webp", "png", "jpg")
SPEECH_FORMATS = ("mp3", "wav", "ogg")

_SPEECH_MIME_TYPES = {
    "wav": "audio/wav",
    "ogg": "audio/ogg",
}

DESCRIBE_SYSTEM_PROMPT = "You are a helpful assistant that describes images in detail."
DESCRIBE_INSTRUCTION = (
    "Describe this image in vivid detail, focusing on the main subject, "
    "setting, colors, and notable features."
)


@dataclass
class ChatOptions:
    """Sampling options for a chat completion."""

    model: Optional[str] = None
    temperature: float = 1.0
    top_p: float = 0.1
    max_tokens: int = 1000
    parameters: Optional[ProviderParams] = None


@dataclass
class ImageOptions:
    """Options shared by image generation and image editing."""

    model: Optional[str] = None
    width: int = 1024
    height: int = 1024
    steps: int = 20
    cfg_scale: float = 7.5
    format: str = "webp"
    variants: int = 1
    safe_mode: bool = False


@dataclass
class SpeechOptions:
    model: Optional[str] = None
    voice: Optional[str] = None
    response_format: str = "mp3"
    speed: float = 1.0


@dataclass
class SpeechResult:
    """Synthesized audio, base64-encoded, plus its mime type."""

    base64: str
    mime_type: str

    def to_dict(self) -> Dict[str, str]:
        return {"base64": self.base64, "mimeType": self.mime_type}


def speech_mime_type(response_format: str) -> str:
    """Map a speech codec to its mime type (mp3 and unknown codecs → audio/mpeg)."""
    return _SPEECH_MIME_TYPES.get(response_format, "audio/mpeg")


def validate_provider_params(params: Optional[Mapping[str, Any]]) -> Optional[ProviderParams]:
    """Check that the provider bag is a flat mapping of str keys to primitives.

    The bag is forwarded verbatim, so only JSON-serializability is checked,
    never the key names.
    """
    if params is None:
        return None
    if not isinstance(params, Mapping):
        raise ValidationError("provider parameters must be an object")
    for key, value in params.items():
        if not isinstance(key, str):
            raise ValidationError(f"provider parameter keys must be strings, got {key!r}")
        if not isinstance(value, (str, int, float, bool)):
            raise ValidationError(
                f"provider parameter '{key}' must be a string, number or boolean"
            )
    return dict(params)


def _error_message(response: httpx.Response) -> str:
    """Best-effort human-readable message for a non-2xx response."""
    message = f"Venice request failed with status {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return message
    error = data.get("error") if isinstance(data, dict) else None
    if error:
        if isinstance(error, list):
            return ", ".join(str(item) for item in error)
        return str(error)
    return message


class VeniceGateway:
    """Async client for the Venice AI REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = VENICE_BASE_URL,
        timeout: float = 120.0,
        chat_model: str = "venice-uncensored",
        vision_model: str = "mistral-31-24b",
        image_model: str = "hidream",
        tts_model: str = "tts-kokoro",
        tts_voice: str = "af_heart",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the gateway.

        Args:
            api_key: Venice API key. A missing key fails every call with AuthError.
            base_url: API base URL
            timeout: Transport timeout in seconds
            chat_model: Default chat completion model
            vision_model: Model used by describe_image
            image_model: Default image generate/edit model
            tts_model: Default speech synthesis model
            tts_voice: Default speech voice
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chat_model = chat_model
        self.vision_model = vision_model
        self.image_model = image_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice

        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

        logger.info(f"Venice gateway initialized with base URL: {self.base_url}")

    @classmethod
    def from_settings(cls, config, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Build a gateway from application settings."""
        return cls(
            api_key=config.venice_api_key,
            base_url=config.venice_base_url,
            timeout=config.request_timeout,
            chat_model=config.chat_model,
            vision_model=config.vision_model,
            image_model=config.image_model,
            tts_model=config.tts_model,
            tts_voice=config.tts_voice,
            transport=transport,
        )

    # ── Transport ────────────────────────────────────────────────────────

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise AuthError(
                "Missing VENICE_API_KEY. Add it to your environment before using Venice endpoints."
            )
        return self.api_key

    async def _post(self, path: str, payload: Dict[str, Any]) -> Union[Dict[str, Any], bytes]:
        """POST a JSON payload and return decoded JSON or raw bytes."""
        api_key = self._require_api_key()
        logger.debug(f"POST {path}")

        try:
            response = await self.client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.RequestError as e:
            logger.error(f"Venice request to {path} failed: {e}")
            raise ProviderError(f"Venice request failed: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.error(f"Venice HTTP {response.status_code} on {path}: {message}")
            raise ProviderError(message, status_code=response.status_code)

        content_type = response.headers.get("content-type", "").lower()
        if "application/json" in content_type:
            return response.json()
        return response.content

    # ── Chat completion ──────────────────────────────────────────────────

    async def complete_chat(
        self,
        turns: List[Dict[str, Any]],
        options: Optional[ChatOptions] = None,
    ) -> str:
        """Run a non-streaming chat completion and return the reply text.

        Args:
            turns: Ordered messages with 'role' and 'content'
            options: Model, sampling and provider-parameter overrides

        Raises:
            EmptyCompletion: the provider returned no usable content
            ProviderError: non-success transport response
            AuthError: no API key configured
        """
        options = options or ChatOptions()
        parameters = validate_provider_params(options.parameters)

        payload: Dict[str, Any] = {
            "model": options.model or self.chat_model,
            "messages": turns,
            "frequency_penalty": 0,
            "presence_penalty": 0,
            "max_tokens": options.max_tokens,
            "max_completion_tokens": max(1, options.max_tokens - 2),
            "temperature": options.temperature,
            "top_p": options.top_p,
            "stream": False,
        }
        if parameters:
            payload["venice_parameters"] = parameters

        data = await self._post("/chat/completions", payload)

        content = None
        if isinstance(data, dict):
            choices = data.get("choices") or []
            if choices:
                content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise EmptyCompletion()
        return content

    # ── Vision ───────────────────────────────────────────────────────────

    async def describe_image(
        self,
        image_base64: str,
        max_tokens: int = 200,
        temperature: float = 0.3,
    ) -> str:
        """Describe a base64-encoded image with the vision model."""
        turns = [
            {"role": "system", "content": DESCRIBE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": DESCRIBE_INSTRUCTION},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/webp;base64,{image_base64}"},
                    },
                ],
            },
        ]
        return await self.complete_chat(
            turns,
            ChatOptions(
                model=self.vision_model,
                max_tokens=max_tokens,
                temperature=temperature,
            ),
        )

    # ── Images ───────────────────────────────────────────────────────────

    @staticmethod
    def _first_image(data: Union[Dict[str, Any], bytes], message: str) -> str:
        images = data.get("images") if isinstance(data, dict) else None
        if not images:
            raise NoImageProduced(message)
        return images[0]

    def _check_format(self, fmt: str):
        if fmt not in IMAGE_FORMATS:
            raise ValidationError(f"image format must be one of {', '.join(IMAGE_FORMATS)}")

    async def generate_image(self, prompt: str, options: Optional[ImageOptions] = None) -> str:
        """Generate one image from a prompt and return it base64-encoded."""
        options = options or ImageOptions()
        self._check_format(options.format)

        data = await self._post(
            "/image/generate",
            {
                "model": options.model or self.image_model,
                "prompt": prompt,
                "width": options.width,
                "height": options.height,
                "steps": options.steps,
                "cfg_scale": options.cfg_scale,
                "format": options.format,
                "variants": options.variants,
                "safe_mode": options.safe_mode,
            },
        )
        return self._first_image(data, "Venice image generation returned no images.")

    async def edit_image(
        self,
        prompt: str,
        image_url: str,
        options: Optional[ImageOptions] = None,
    ) -> str:
        """Edit a reference image (by URL) according to the prompt."""
        options = options or ImageOptions()
        self._check_format(options.format)

        data = await self._post(
            "/image/edit",
            {
                "prompt": prompt,
                "image": image_url,
                "model": options.model or self.image_model,
                "format": options.format,
            },
        )
        return self._first_image(data, "Venice image edit returned no images.")

    # ── Speech ───────────────────────────────────────────────────────────

    async def synthesize_speech(
        self,
        text: str,
        options: Optional[SpeechOptions] = None,
    ) -> SpeechResult:
        """Synthesize speech for the text. The endpoint answers with raw audio."""
        options = options or SpeechOptions()
        if options.response_format not in SPEECH_FORMATS:
            raise ValidationError(
                f"speech format must be one of {', '.join(SPEECH_FORMATS)}"
            )

        data = await self._post(
            "/audio/speech",
            {
                "input": text,
                "model": options.model or self.tts_model,
                "voice": options.voice or self.tts_voice,
                "response_format": options.response_format,
                "speed": options.speed,
                "streaming": False,
            },
        )
        if not isinstance(data, (bytes, bytearray)) or not data:
            raise NoAudioProduced()

        return SpeechResult(
            base64=base64.b64encode(data).decode("ascii"),
            mime_type=speech_mime_type(options.response_format),
        )

    async def close(self):
        """Close HTTP client and cleanup resources."""
        await self.client.aclose()
        logger.info("Venice gateway closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
