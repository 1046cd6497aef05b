"""Experience bootstrap: identity, access decision and character."""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from companion.access.gatekeeper import bootstrap_session
from companion.api.errors import AccessDenied, UnknownUser

router = APIRouter()


@router.get("/api/experiences/{experience_id}")
async def get_experience(experience_id: str, request: Request):
    """Return the session context for an experience, or an access error."""
    gatekeeper = request.app.state.gatekeeper
    config = request.app.state.config
    try:
        context = bootstrap_session(
            gatekeeper, request.headers, experience_id, config.character()
        )
    except UnknownUser as e:
        return JSONResponse({"error": str(e)}, status_code=401)
    except AccessDenied as e:
        return JSONResponse({"error": str(e), "hasAccess": False}, status_code=403)

    character = context.character
    return JSONResponse({
        "experienceId": context.experience_id,
        "userId": context.user_id,
        "userDisplayName": context.user_display_name,
        "hasAccess": True,
        "character": {
            "slug": character.slug,
            "name": character.name,
            "photoUrl": character.reference_image_url,
            "canEditImage": character.can_edit_image,
        },
    })
