from pathlib import Path

import pytest

from swagger_mock.config import MockSettings, load_settings
from swagger_mock.logging_utils import configure_logging
from swagger_mock.output_config import get_log_format


def test_settings_priority(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SWAGGER_MOCK_PORT", "4000")
    monkeypatch.setenv("SWAGGER_MOCK_ROOT", "/srv/mocks")
    monkeypatch.setenv("SWAGGER_MOCK_HOST", "0.0.0.0")

    settings = load_settings(port=5000, host=None)

    assert settings.port == 5000
    assert settings.host == "0.0.0.0"
    assert settings.mock_root == Path("/srv/mocks")
    assert settings.base_url == "http://localhost:5000"


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PORT", "ROOT", "HOST", "MOCK_ROOT", "LOG_LEVEL"):
        monkeypatch.delenv(f"SWAGGER_MOCK_{name}", raising=False)

    settings = load_settings()

    assert settings == MockSettings()
    assert settings.mock_root == Path("mock")
    assert settings.port == 3001


def test_log_format_priority(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONSOLE_OUTPUT_FORMAT", "plain")

    assert get_log_format("json") == "json"
    assert get_log_format(None) == "plain"
    monkeypatch.setenv("CONSOLE_OUTPUT_FORMAT", "rich")
    assert get_log_format(None) == "console"
    monkeypatch.delenv("CONSOLE_OUTPUT_FORMAT")
    assert get_log_format("bogus") == "console"


def test_json_logging_renders_structured_lines(capsys: pytest.CaptureFixture[str]) -> None:
    logger = configure_logging("info", "json")

    logger.info("endpoint_created", path="/users")

    out = capsys.readouterr().out
    assert '"event": "endpoint_created"' in out
    assert '"path": "/users"' in out
