from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import find_dotenv, load_dotenv

from .project_constants import FOLLOW_CHECK_BACKUP, FOLLOW_CHECK_DELAY_S


def _env_number(name: str, default: float, cast: type) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise RuntimeError(f"{name} must not be negative, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    follow_check_url: str | None = None
    follow_check_token: str | None = None
    follow_check_delay_s: float = FOLLOW_CHECK_DELAY_S
    follow_check_backup: int = FOLLOW_CHECK_BACKUP

    @staticmethod
    def from_env(follow_check_url_override: str | None = None) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))

        # --follow-check-url wins over the environment.
        url = follow_check_url_override or os.getenv("GIVEAWAY_FOLLOW_CHECK_URL", "").strip()
        token = os.getenv("GIVEAWAY_FOLLOW_CHECK_TOKEN", "").strip()

        return Settings(
            follow_check_url=url or None,
            follow_check_token=token or None,
            follow_check_delay_s=float(
                _env_number("GIVEAWAY_FOLLOW_CHECK_DELAY", FOLLOW_CHECK_DELAY_S, float)
            ),
            follow_check_backup=int(
                _env_number("GIVEAWAY_FOLLOW_CHECK_BACKUP", FOLLOW_CHECK_BACKUP, int)
            ),
        )

    def require_follow_check_url(self) -> str:
        if not self.follow_check_url:
            raise RuntimeError(
                "Missing GIVEAWAY_FOLLOW_CHECK_URL (or --follow-check-url). "
                "Put it in .env or export it."
            )
        return self.follow_check_url
