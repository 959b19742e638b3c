"""Runtime settings for the mock server and the generator CLI."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "SWAGGER_MOCK_"
DEFAULT_MOCK_ROOT = Path("mock")
MANAGEMENT_PREFIX = "/_mock"


class MockSettings(BaseModel):
    """Settings shared by the CLI commands and the HTTP runtime."""

    mock_root: Path = DEFAULT_MOCK_ROOT
    host: str = "127.0.0.1"
    port: int = Field(3001, ge=1, le=65535)
    log_level: str = "info"
    log_format: str | None = None
    max_delay_ms: int = Field(60000, ge=0)
    event_limit: int = Field(100, ge=0)

    @property
    def base_url(self) -> str:
        host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0") else self.host
        return f"http://{host}:{self.port}"


def load_settings(**overrides: Any) -> MockSettings:
    """
    Build settings with priority: explicit overrides (CLI) > environment > defaults.

    Overrides whose value is ``None`` are ignored so unset CLI options fall
    through to the environment.
    """
    values: dict[str, Any] = {}
    for name in MockSettings.model_fields:
        env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value:
            values[name] = env_value
    # SWAGGER_MOCK_ROOT reads better than SWAGGER_MOCK_MOCK_ROOT
    root_env = os.environ.get(f"{ENV_PREFIX}ROOT")
    if root_env and "mock_root" not in values:
        values["mock_root"] = root_env

    values.update({key: value for key, value in overrides.items() if value is not None})
    return MockSettings.model_validate(values)
