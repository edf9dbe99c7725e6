"""Configuration management for strois."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Process-wide settings read from ``STROIS_*`` environment variables.

    The S3 connection fields are only defaults for the command-line
    interface; library callers always pass an explicit ``ClientConfig``.
    """

    log_level: str = "WARNING"
    log_format: Literal["json", "console"] = "json"
    otel_enabled: bool = False
    otel_service_name: str = "strois"

    endpoint_url: str = "http://localhost:9000"
    bucket: str = "strois"
    region: str = "us-east-1"
    access_key: str = "minioadmin"
    secret_key: str = "minioadmin"
    session_token: Optional[str] = None
    addressing_style: Literal["path", "virtual"] = "path"

    model_config = {
        "env_prefix": "STROIS_",
        "case_sensitive": False,
    }


settings = Settings()
