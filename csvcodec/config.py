"""
Service settings.

Values come from environment variables prefixed with CSVCODEC_ (or a .env
file) and are validated once at import time.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .rules import DEFAULT_FIELD_SEPARATOR, FORBIDDEN_SEPARATORS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CSVCODEC_", env_file=".env", extra="ignore")

    project_name: str = "csv-codec"
    version: str = "0.1.0"

    # Defaults applied when a request does not supply its own options
    field_separator: str = DEFAULT_FIELD_SEPARATOR
    trim_white_space: bool = True

    max_upload_bytes: int = 10 * 1024 * 1024
    log_level: str = "INFO"

    @field_validator("field_separator")
    @classmethod
    def _single_char(cls, v: str) -> str:
        if v == "\\t":
            v = "\t"
        if len(v) != 1 or v in FORBIDDEN_SEPARATORS:
            raise ValueError("field_separator must be one character other than a quote or line break")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
