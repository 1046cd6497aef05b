"""Configuration management for Venice Companion."""
from pathlib import Path
from typing import FrozenSet, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from companion.session.models import Character

# Resolve .env relative to the project root (where this package lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Venice API Configuration
    venice_api_key: Optional[str] = Field(default=None, alias="VENICE_API_KEY")
    venice_base_url: str = Field(
        default="https://api.venice.ai/api/v1",
        alias="VENICE_BASE_URL",
    )
    request_timeout: float = Field(default=120.0, alias="REQUEST_TIMEOUT")

    # Default models per capability
    chat_model: str = Field(default="venice-uncensored", alias="VENICE_CHAT_MODEL")
    vision_model: str = Field(default="mistral-31-24b", alias="VENICE_VISION_MODEL")
    image_model: str = Field(default="hidream", alias="VENICE_IMAGE_MODEL")
    tts_model: str = Field(default="tts-kokoro", alias="VENICE_TTS_MODEL")
    tts_voice: str = Field(default="af_heart", alias="VENICE_TTS_VOICE")

    # Character persona
    character_slug: str = Field(default="", alias="VENICE_CHARACTER_SLUG")
    character_name: str = Field(default="", alias="VENICE_CHARACTER_NAME")
    character_photo: str = Field(default="", alias="VENICE_CHARACTER_PHOTO")

    # Session engine
    db_path: Path = Field(default=Path("./data/companion.db"), alias="DB_PATH")
    storage_key: str = Field(default="venice-chat-threads", alias="STORAGE_KEY")
    history_limit: int = Field(default=20, alias="HISTORY_LIMIT")

    # Access
    # Comma-separated; empty means every identified user is admitted
    allowed_user_ids: str = Field(default="", alias="ALLOWED_USER_IDS")

    # Application Settings
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    host: str = Field(default="127.0.0.1", alias="HOST")
    port: int = Field(default=8765, alias="PORT")

    def allowed_users(self) -> FrozenSet[str]:
        """Return the parsed access allow-list."""
        return frozenset(
            user_id.strip()
            for user_id in self.allowed_user_ids.split(",")
            if user_id.strip()
        )

    def character(self) -> Character:
        """Build the character descriptor handed to each new session."""
        return Character(
            slug=self.character_slug or None,
            display_name=self.character_name or None,
            reference_image_url=self.character_photo or None,
        )


def load_config():
    """Load and return application configuration."""
    return Settings()
