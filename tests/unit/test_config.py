from pathlib import Path

import pytest

from coinlist.config import (
    DEFAULT_CONFIG_TEMPLATE,
    FetchSettings,
    Settings,
    load_config,
)


def test_missing_file_creates_template_and_returns_defaults(tmp_path: Path) -> None:
    """A missing config file is created from the template and defaults are used."""
    path = tmp_path / "nested" / "config.toml"

    settings = load_config(path)

    assert settings == Settings()
    assert path.read_text(encoding="utf-8") == DEFAULT_CONFIG_TEMPLATE
    # The commented template loads back to the defaults.
    assert load_config(path) == Settings()


def test_user_values_override_defaults(tmp_path: Path) -> None:
    """Values present in the file replace the matching defaults only."""
    path = tmp_path / "config.toml"
    path.write_text(
        '[general]\nlog_level_console = "DEBUG"\n\n'
        '[fetch]\nrequest_style = "callback"\nsupersede_in_flight = true\n',
        encoding="utf-8",
    )

    settings = load_config(path)

    assert settings.general.log_level_console == "DEBUG"
    assert settings.general.log_level_file == "DEBUG"
    assert settings.fetch.request_style == "callback"
    assert settings.fetch.supersede_in_flight is True
    assert settings.fetch.clear_error_on_success is False


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    """Unknown keys and sections are logged and skipped."""
    path = tmp_path / "config.toml"
    path.write_text(
        '[fetch]\nclear_error_on_success = true\nretries = 3\n\n[theme]\nname = "dark"\n',
        encoding="utf-8",
    )

    settings = load_config(path)

    assert settings.fetch.clear_error_on_success is True


@pytest.mark.parametrize(
    "content",
    [
        "[fetch\nrequest_style = ",
        '[fetch]\nrequest_style = "smoke-signals"\n',
        'fetch = "not a table"\n',
        '[fetch]\nsupersede_in_flight = "false"\n',
        '[fetch]\nclear_error_on_success = 1\n',
    ],
    ids=[
        "malformed-toml",
        "bad-request-style",
        "section-not-table",
        "string-flag",
        "integer-flag",
    ],
)
def test_invalid_config_falls_back_to_defaults(tmp_path: Path, content: str) -> None:
    """Malformed files and invalid values fall back to the defaults."""
    path = tmp_path / "config.toml"
    path.write_text(content, encoding="utf-8")

    assert load_config(path) == Settings()


def test_fetch_settings_validate_request_style() -> None:
    """An unknown request style is rejected at construction."""
    with pytest.raises(ValueError, match="request_style"):
        FetchSettings(request_style="sync")


@pytest.mark.parametrize("name", ["clear_error_on_success", "supersede_in_flight"])
def test_fetch_settings_require_real_booleans(name: str) -> None:
    """A quoted "false" must not silently switch an option on."""
    with pytest.raises(ValueError, match=name):
        FetchSettings(**{name: "false"})  # type: ignore[arg-type]

    assert getattr(FetchSettings(**{name: True}), name) is True
