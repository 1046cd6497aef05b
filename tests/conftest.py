"""Pytest configuration and fixtures."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from companion.api.venice_client import SpeechResult
from companion.session.models import Character
from companion.session.storage import InMemoryStorage
from companion.session.store import SessionStore


@pytest.fixture
def gateway():
    """A gateway double with every provider coroutine mocked."""
    gw = MagicMock()
    gw.api_key = "test_key"
    gw.complete_chat = AsyncMock(return_value="hi there")
    gw.describe_image = AsyncMock(return_value="A red fox in a forest")
    gw.generate_image = AsyncMock(return_value="B")
    gw.edit_image = AsyncMock(return_value="EDITED")
    gw.synthesize_speech = AsyncMock(
        return_value=SpeechResult(base64="QVVESU8=", mime_type="audio/mpeg")
    )
    gw.close = AsyncMock()
    return gw


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def store(storage):
    """A hydrated store backed by in-memory storage."""
    s = SessionStore(storage=storage)
    s.load()
    return s


@pytest.fixture
def character():
    return Character(slug="fox-guide", display_name="Foxy")


@pytest.fixture
def photo_character():
    return Character(
        slug="fox-guide",
        display_name="Foxy",
        reference_image_url="https://example.com/foxy.png",
    )
