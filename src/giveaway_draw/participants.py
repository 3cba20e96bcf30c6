from __future__ import annotations

import logging
import re
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .project_constants import FOLLOW_PREFIX

log = logging.getLogger(__name__)

TWITTER_DATE_FORMAT = "%a %b %d %H:%M:%S %z %Y"

# Handles are letters, digits and underscores; nothing that could split a canonical list.
HANDLE_PATTERN = re.compile(r"[A-Za-z0-9_]+")


class ParticipantError(ValueError):
    """Raised when an external record cannot become a Participant."""


def normalize_handle(handle: str) -> str:
    if handle.startswith("@"):
        handle = handle[1:]
    return handle.lower()


def follow_category(account: str) -> str:
    return FOLLOW_PREFIX + normalize_handle(account.strip())


@dataclass(frozen=True)
class Participant:
    handle: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    follower_count: Optional[int] = None
    following_count: Optional[int] = None
    post_count: Optional[int] = None
    account_created_at: Optional[datetime] = None
    verified: Optional[bool] = None
    entry_source: Optional[str] = None

    @property
    def key(self) -> str:
        return normalize_handle(self.handle)


# Accepted spellings per field, first match wins.
_ALIASES: Dict[str, Tuple[str, ...]] = {
    "handle": ("handle", "username", "screen_name", "screenName"),
    "display_name": ("display_name", "displayName", "name"),
    "avatar_url": (
        "avatar_url",
        "avatarUrl",
        "profile_image_url",
        "profile_image_url_https",
    ),
    "bio": ("bio", "description"),
    "follower_count": ("follower_count", "followerCount", "followers_count"),
    "following_count": (
        "following_count",
        "followingCount",
        "friends_count",
    ),
    "post_count": (
        "post_count",
        "postCount",
        "tweet_count",
        "tweetCount",
        "statuses_count",
    ),
    "account_created_at": (
        "account_created_at",
        "accountCreatedAt",
        "created_at",
        "createdAt",
    ),
    "verified": ("verified", "is_verified", "isVerified"),
}


def _pick(record: Mapping[str, Any], field: str) -> Any:
    for alias in _ALIASES[field]:
        if alias in record and record[alias] is not None:
            return record[alias]
    return None


def _text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ParticipantError(f"{field} must be a string, got {type(value).__name__}")
    value = value.strip()
    return value or None


def _count(value: Any, field: str) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise ParticipantError(f"{field} must be an integer, got bool")
    if isinstance(value, str):
        raw = value.strip().replace(",", "")
        if not (raw.isascii() and raw.isdigit()):
            raise ParticipantError(f"{field} must be a non-negative integer: {value!r}")
        return int(raw)
    if isinstance(value, float):
        if not value.is_integer():
            raise ParticipantError(f"{field} must be a whole number: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ParticipantError(f"{field} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ParticipantError(f"{field} must not be negative: {value}")
    return value


def _flag(value: Any, field: str) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ParticipantError(f"{field} must be a boolean, got {type(value).__name__}")
    return value


def parse_created_at(value: Any) -> Optional[datetime]:
    """
    Returns an aware datetime, or None when the string cannot be parsed.
    Naive values are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = datetime.strptime(raw, TWITTER_DATE_FORMAT)
            except ValueError:
                log.debug("Unparseable account creation date: %r", raw)
                return None
    else:
        raise ParticipantError(
            f"account_created_at must be a string or datetime, got {type(value).__name__}"
        )

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def participant_from_record(
    record: Mapping[str, Any], source: Optional[str] = None
) -> Participant:
    """
    Converts one loosely shaped external record into a validated Participant.

    Accepts snake_case, camelCase and Twitter API key spellings.
    Raises ParticipantError for anything that cannot be trusted.
    """
    if not isinstance(record, Mapping):
        raise ParticipantError(f"Participant record must be an object, got {type(record).__name__}")

    handle = _text(_pick(record, "handle"), "handle")
    if handle is not None and handle.startswith("@"):
        handle = handle[1:].strip() or None
    if not handle:
        raise ParticipantError(f"Participant record has no handle: {dict(record)!r}")
    if not HANDLE_PATTERN.fullmatch(handle):
        raise ParticipantError(f"Invalid handle {handle!r}: use letters, digits and underscores only")

    return Participant(
        handle=handle,
        display_name=_text(_pick(record, "display_name"), "display_name"),
        avatar_url=_text(_pick(record, "avatar_url"), "avatar_url"),
        bio=_text(_pick(record, "bio"), "bio"),
        follower_count=_count(_pick(record, "follower_count"), "follower_count"),
        following_count=_count(_pick(record, "following_count"), "following_count"),
        post_count=_count(_pick(record, "post_count"), "post_count"),
        account_created_at=parse_created_at(_pick(record, "account_created_at")),
        verified=_flag(_pick(record, "verified"), "verified"),
        entry_source=source,
    )


def merge_participants(records: Iterable[Participant]) -> Participant:
    """Merge records of one identity; the first non-None value of each field wins."""
    records = list(records)
    if not records:
        raise ValueError("Nothing to merge.")
    keys = {r.key for r in records}
    if len(keys) != 1:
        raise ValueError(f"Cannot merge different identities: {sorted(keys)}")

    merged: Dict[str, Any] = {}
    for f in fields(Participant):
        merged[f.name] = next(
            (getattr(r, f.name) for r in records if getattr(r, f.name) is not None),
            None,
        )
    return Participant(**merged)
