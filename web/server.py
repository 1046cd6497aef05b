"""FastAPI application factory."""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from web.routes.experience import router as experience_router
from web.routes.venice import router as venice_router


def create_app(config, gateway, gatekeeper) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application settings (companion.config.Settings)
        gateway: VeniceGateway shared by all requests
        gatekeeper: AccessGatekeeper used for experience bootstrap
    """
    app = FastAPI(title="Venice Companion", version="1.0.0")

    # Store shared state
    app.state.config = config
    app.state.gateway = gateway
    app.state.gatekeeper = gatekeeper

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Malformed JSON bodies are client errors, same as missing fields
    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    app.include_router(venice_router)
    app.include_router(experience_router)

    @app.get("/health")
    async def health():
        return {"ok": True, "venice_configured": bool(gateway.api_key)}

    @app.on_event("startup")
    async def _startup():
        logger.info("Venice Companion web server starting up")

    @app.on_event("shutdown")
    async def _shutdown():
        logger.info("Venice Companion web server shutting down")
        await gateway.close()

    return app
