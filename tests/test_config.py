from __future__ import annotations

import pytest

from giveaway_draw.config import Settings
from giveaway_draw.project_constants import FOLLOW_CHECK_BACKUP, FOLLOW_CHECK_DELAY_S

ENV_VARS = (
    "GIVEAWAY_FOLLOW_CHECK_URL",
    "GIVEAWAY_FOLLOW_CHECK_TOKEN",
    "GIVEAWAY_FOLLOW_CHECK_DELAY",
    "GIVEAWAY_FOLLOW_CHECK_BACKUP",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)  # no stray .env
    for name in ENV_VARS:
        # setenv first so teardown also drops values loaded from .env
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults():
    settings = Settings.from_env()
    assert settings.follow_check_url is None
    assert settings.follow_check_token is None
    assert settings.follow_check_delay_s == FOLLOW_CHECK_DELAY_S
    assert settings.follow_check_backup == FOLLOW_CHECK_BACKUP


def test_from_env(monkeypatch):
    monkeypatch.setenv("GIVEAWAY_FOLLOW_CHECK_URL", "https://env.example/check")
    monkeypatch.setenv("GIVEAWAY_FOLLOW_CHECK_TOKEN", "tok")
    monkeypatch.setenv("GIVEAWAY_FOLLOW_CHECK_DELAY", "2.5")
    monkeypatch.setenv("GIVEAWAY_FOLLOW_CHECK_BACKUP", "5")
    settings = Settings.from_env()
    assert settings.follow_check_url == "https://env.example/check"
    assert settings.follow_check_token == "tok"
    assert settings.follow_check_delay_s == 2.5
    assert settings.follow_check_backup == 5


def test_override_wins(monkeypatch):
    monkeypatch.setenv("GIVEAWAY_FOLLOW_CHECK_URL", "https://env.example/check")
    settings = Settings.from_env(follow_check_url_override="https://cli.example/check")
    assert settings.require_follow_check_url() == "https://cli.example/check"


def test_dotenv_file_loaded(tmp_path):
    (tmp_path / ".env").write_text("GIVEAWAY_FOLLOW_CHECK_URL=https://dotenv.example/check\n")
    assert Settings.from_env().follow_check_url == "https://dotenv.example/check"


@pytest.mark.parametrize(
    "name, value",
    [
        ("GIVEAWAY_FOLLOW_CHECK_DELAY", "soon"),
        ("GIVEAWAY_FOLLOW_CHECK_DELAY", "-1"),
        ("GIVEAWAY_FOLLOW_CHECK_BACKUP", "1.5"),
    ],
)
def test_bad_numbers(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        Settings.from_env()


def test_missing_url_is_reported():
    with pytest.raises(RuntimeError, match="GIVEAWAY_FOLLOW_CHECK_URL"):
        Settings.from_env().require_follow_check_url()
