"""Error taxonomy shared by the gateway, the session engine and the web layer."""
from typing import Optional


class CompanionError(Exception):
    """Base class for every error raised by Venice Companion."""


class ValidationError(CompanionError):
    """Malformed or missing input at the transport boundary (HTTP 400)."""


class GatewayError(CompanionError):
    """Any failure of a Venice provider call."""


class ProviderError(GatewayError):
    """Non-success response (or transport failure) from the provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class EmptyResult(GatewayError):
    """Successful transport response carrying an unusable payload."""


class EmptyCompletion(EmptyResult):
    def __init__(self, message: str = "Venice returned an empty response."):
        super().__init__(message)


class NoImageProduced(EmptyResult):
    def __init__(self, message: str = "Venice image generation returned no images."):
        super().__init__(message)


class NoAudioProduced(EmptyResult):
    def __init__(self, message: str = "Venice speech synthesis returned no audio."):
        super().__init__(message)


class AuthError(GatewayError):
    """No provider credential configured."""


class AccessDenied(CompanionError):
    """The access gatekeeper refused the user for this experience."""


class UnknownUser(AccessDenied):
    """The inbound request carried no verifiable user identity."""


class PersistenceError(CompanionError):
    """Storage read/write failure. Always recovered locally."""
