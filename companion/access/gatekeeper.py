"""Access gatekeeper: identify the user and decide whether they may enter."""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping, Optional

from loguru import logger

from companion.api.errors import AccessDenied, UnknownUser
from companion.session.models import Character

USER_ID_HEADER = "x-user-id"
USER_NAME_HEADER = "x-user-name"


class AccessGatekeeper:
    """Boundary to the host platform's identity and entitlement checks."""

    def verify_user(self, headers: Mapping[str, str]) -> str:
        """Return the user id carried by the request, or raise UnknownUser."""
        raise NotImplementedError

    def check_access(self, experience_id: str, user_id: str) -> bool:
        raise NotImplementedError

    def display_name(self, user_id: str, headers: Mapping[str, str]) -> str:
        return f"@{user_id}"


class HeaderGatekeeper(AccessGatekeeper):
    """Trusts identity headers set by a fronting proxy.

    An empty allow-list admits every identified user.
    """

    def __init__(self, allowed_user_ids: Optional[Iterable[str]] = None):
        self.allowed_user_ids: FrozenSet[str] = frozenset(allowed_user_ids or ())

    def verify_user(self, headers: Mapping[str, str]) -> str:
        user_id = (headers.get(USER_ID_HEADER) or "").strip()
        if not user_id:
            raise UnknownUser("No user identity on request")
        return user_id

    def check_access(self, experience_id: str, user_id: str) -> bool:
        if not self.allowed_user_ids:
            return True
        return user_id in self.allowed_user_ids

    def display_name(self, user_id: str, headers: Mapping[str, str]) -> str:
        name = (headers.get(USER_NAME_HEADER) or "").strip()
        return name or f"@{user_id}"


@dataclass(frozen=True)
class SessionContext:
    """What a new chat session is told about its user, once, at start."""

    experience_id: str
    user_id: str
    user_display_name: str
    character: Character


def bootstrap_session(
    gatekeeper: AccessGatekeeper,
    headers: Mapping[str, str],
    experience_id: str,
    character: Character,
) -> SessionContext:
    """Identify the user and check access before any session is created.

    Raises:
        UnknownUser: the request carries no identity
        AccessDenied: the user has no access to this experience
    """
    user_id = gatekeeper.verify_user(headers)
    if not gatekeeper.check_access(experience_id, user_id):
        logger.info(f"Access denied for user {user_id} on experience {experience_id}")
        raise AccessDenied("It looks like you don't currently have access to this experience.")

    return SessionContext(
        experience_id=experience_id,
        user_id=user_id,
        user_display_name=gatekeeper.display_name(user_id, headers),
        character=character,
    )
