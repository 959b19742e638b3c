"""Log output format selection shared by every swagger-mock command."""

import os
from typing import Literal


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"

# CONSOLE_OUTPUT_FORMAT speaks the console vocabulary (auto/rich/plain/json)
_ENV_ALIASES: dict[str, LogFormat] = {
    "auto": "console",
    "rich": "console",
    "console": "console",
    "plain": "plain",
    "json": "json",
}


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """Resolve the renderer: ``--log-format`` beats ``CONSOLE_OUTPUT_FORMAT`` beats ``console``.

    Unrecognised values at either level are ignored rather than rejected.
    """
    if cli_override and cli_override.lower() in ("json", "console", "plain"):
        return cli_override.lower()  # type: ignore[return-value]

    env_value = os.environ.get(ENV_VAR_NAME, "").lower()
    return _ENV_ALIASES.get(env_value, "console")
