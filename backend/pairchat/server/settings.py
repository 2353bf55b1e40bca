"""Room service configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from pairchat.relay.frames import DEFAULT_MAX_FRAME_SIZE
from pairchat.rooms.janitor import DEFAULT_SWEEP_INTERVAL_SECONDS
from pairchat.rooms.models import DEFAULT_ROOM_TTL_SECONDS
from pairchat.rooms.pairing import DEFAULT_MAX_PAIR_ATTEMPTS
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class PairChatSettings(BaseSettings):
    model_config = {"env_prefix": "PAIRCHAT_"}

    base_url: str = "http://localhost:3000"
    # Production turns on the Secure attribute of the credential cookie.
    production: bool = False
    room_ttl_seconds: int = Field(default=DEFAULT_ROOM_TTL_SECONDS, gt=0)
    store_url: str = "memory://"
    cors_origins: list[str] = ["http://localhost:3000"]
    log_dir: str | None = "backend/logs/pairchat"
    janitor_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS  # 0 disables the in-process loop
    max_pair_attempts: int = Field(default=DEFAULT_MAX_PAIR_ATTEMPTS, ge=1)
    max_ws_message_size: int = Field(default=DEFAULT_MAX_FRAME_SIZE, gt=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v, allow_empty=True)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings)
