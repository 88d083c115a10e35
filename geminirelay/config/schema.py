"""Configuration schema using Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class GeminiConfig(BaseModel):
    """Gemini backend configuration."""

    api_keys: list[str] = Field(default_factory=list)
    chat_model: str = "gemini-2.5-flash-lite"
    vision_model: str = "gemini-2.5-flash"
    document_model: str = "gemini-2.5-flash"

    @field_validator("api_keys", mode="before")
    @classmethod
    def _split_keys(cls, value):
        """Accept the comma-separated form used in the environment."""
        if isinstance(value, str):
            value = value.split(",")
        if value is None:
            return []
        return [k.strip() for k in value if isinstance(k, str) and k.strip()]


class KnowledgeConfig(BaseModel):
    """Persona / knowledge injection."""

    enabled: bool = False
    file: str = ""


class StoreConfig(BaseModel):
    """Store details used by the /location and /menu helpers."""

    latitude: float = 0.0
    longitude: float = 0.0
    menu_image_path: str = ""

    @property
    def has_location(self) -> bool:
        return self.latitude != 0 and self.longitude != 0


class TelegramConfig(BaseModel):
    """Telegram channel configuration."""

    enabled: bool = True
    token: str = ""
    proxy: str | None = None
    send_timeout: float = Field(default=10.0, gt=0)


class Config(BaseModel):
    """Root configuration for gemini-relay."""

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    database_path: str = "bot_store.db"
