"""Venice transport routes: one chat turn, one image turn."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from companion.api.errors import ValidationError
from companion.api.turns import chat_turn, image_turn

router = APIRouter()


class VoiceRequest(BaseModel):
    enabled: bool = False


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: Any = None
    venice_parameters: Optional[Dict[str, Any]] = Field(default=None, alias="veniceParameters")
    voice: Optional[VoiceRequest] = None


class ImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Any = None
    mode: str = "generate"
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    venice_parameters: Optional[Dict[str, Any]] = Field(default=None, alias="veniceParameters")


@router.post("/api/venice/chat")
async def venice_chat(body: ChatRequest, request: Request):
    """Complete a chat turn, voicing the reply when requested."""
    gateway = request.app.state.gateway
    try:
        result = await chat_turn(
            gateway,
            body.messages,
            provider_params=body.venice_parameters,
            voice_requested=bool(body.voice and body.voice.enabled),
        )
        return JSONResponse(result)
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception as e:
        logger.error(f"Venice chat error: {e}")
        return JSONResponse({"error": str(e) or "Unexpected chat service error."}, status_code=500)


@router.post("/api/venice/image")
async def venice_image(body: ImageRequest, request: Request):
    """Generate or edit an image and describe it when possible."""
    gateway = request.app.state.gateway
    try:
        result = await image_turn(
            gateway,
            body.prompt,
            mode=body.mode,
            image_url=body.image_url,
            provider_params=body.venice_parameters,
        )
        return JSONResponse(result)
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception as e:
        logger.error(f"Venice image error: {e}")
        return JSONResponse({"error": str(e) or "Unexpected image service error."}, status_code=500)
