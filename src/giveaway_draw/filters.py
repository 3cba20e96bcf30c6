from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from .participants import Participant, normalize_handle
from .project_constants import DEFAULT_AVATAR_PATTERNS

DUPLICATE = "duplicate"
BLACKLISTED = "blacklisted"
LOW_FOLLOWERS = "low_followers"
LOW_FOLLOWING = "low_following"
LOW_POSTS = "low_posts"
NEW_ACCOUNT = "new_account"
NO_AVATAR = "no_avatar"
NO_BIO = "no_bio"
NOT_VERIFIED = "not_verified"
DEFAULT_PROFILE = "default_profile"

REASON_LABELS: Dict[str, str] = {
    DUPLICATE: "Duplicate entry",
    BLACKLISTED: "Blacklisted",
    LOW_FOLLOWERS: "Too few followers",
    LOW_FOLLOWING: "Too few following",
    LOW_POSTS: "Too few posts",
    NEW_ACCOUNT: "Account too new",
    NO_AVATAR: "No profile picture",
    NO_BIO: "No bio/description",
    NOT_VERIFIED: "Not verified",
    DEFAULT_PROFILE: "Default profile",
}

SECONDS_PER_DAY = 24 * 60 * 60

_TRAILING_DIGITS = re.compile(r"\d{5,}$")
_ALTERNATING = re.compile(r"^[a-z]+\d+[a-z]+\d+")

# Rough per-signal ceiling used to scale bot scores to 0-100
BOT_SIGNAL_WEIGHT = 30


@dataclass(frozen=True)
class FilterConfig:
    min_followers: int = 0
    min_following: int = 0
    min_post_count: int = 0
    min_account_age_days: int = 0
    require_avatar: bool = False
    require_bio: bool = False
    only_verified: bool = False
    exclude_default_profile: bool = False
    blacklist: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in (
            "min_followers",
            "min_following",
            "min_post_count",
            "min_account_age_days",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        normalized = frozenset(
            normalize_handle(h.strip()) for h in self.blacklist if h.strip()
        )
        object.__setattr__(self, "blacklist", normalized)


@dataclass(frozen=True)
class Rejection:
    participant: Participant
    reasons: Tuple[str, ...]


@dataclass(frozen=True)
class FilterStats:
    total: int
    passed: int
    rejected: int
    by_reason: Dict[str, int]


@dataclass(frozen=True)
class FilterResult:
    passed: Tuple[Participant, ...]
    rejected: Tuple[Rejection, ...]
    stats: FilterStats


def is_default_avatar(avatar_url: str) -> bool:
    lower = avatar_url.lower()
    return any(pattern in lower for pattern in DEFAULT_AVATAR_PATTERNS)


def has_default_profile(p: Participant) -> bool:
    if not p.avatar_url or is_default_avatar(p.avatar_url):
        return True
    return not p.bio and not p.display_name


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def account_age_days(created_at: datetime, now: datetime) -> int:
    return int((as_utc(now) - as_utc(created_at)).total_seconds() // SECONDS_PER_DAY)


def _below(value: Optional[int], minimum: int) -> bool:
    # Unknown metrics never reject.
    return minimum > 0 and value is not None and value < minimum


def rejection_reasons(
    p: Participant, config: FilterConfig, now: datetime
) -> List[str]:
    """Every predicate is evaluated; reasons accumulate."""
    reasons: List[str] = []

    if config.blacklist and p.key in config.blacklist:
        reasons.append(BLACKLISTED)
    if _below(p.follower_count, config.min_followers):
        reasons.append(LOW_FOLLOWERS)
    if _below(p.following_count, config.min_following):
        reasons.append(LOW_FOLLOWING)
    if _below(p.post_count, config.min_post_count):
        reasons.append(LOW_POSTS)
    if config.min_account_age_days > 0 and isinstance(p.account_created_at, datetime):
        if account_age_days(p.account_created_at, now) < config.min_account_age_days:
            reasons.append(NEW_ACCOUNT)
    if config.require_avatar and (not p.avatar_url or is_default_avatar(p.avatar_url)):
        reasons.append(NO_AVATAR)
    if config.require_bio and not (p.bio or "").strip():
        reasons.append(NO_BIO)
    if config.only_verified and p.verified is not True:
        reasons.append(NOT_VERIFIED)
    if config.exclude_default_profile and has_default_profile(p):
        reasons.append(DEFAULT_PROFILE)

    return reasons


def filter_participants(
    participants: Iterable[Participant],
    config: FilterConfig,
    now: Optional[datetime] = None,
) -> FilterResult:
    """
    Splits participants into passed and rejected.

    A handle seen earlier in the same pass is a duplicate, whatever the
    outcome of its first occurrence.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    passed: List[Participant] = []
    rejected: List[Rejection] = []
    by_reason: Dict[str, int] = {reason: 0 for reason in REASON_LABELS}
    seen: Set[str] = set()
    total = 0

    for p in participants:
        total += 1
        reasons: List[str] = []
        if p.key in seen:
            reasons.append(DUPLICATE)
        else:
            seen.add(p.key)
        reasons.extend(rejection_reasons(p, config, now))

        for reason in reasons:
            by_reason[reason] += 1
        if reasons:
            rejected.append(Rejection(p, tuple(reasons)))
        else:
            passed.append(p)

    stats = FilterStats(
        total=total,
        passed=len(passed),
        rejected=len(rejected),
        by_reason=by_reason,
    )
    return FilterResult(passed=tuple(passed), rejected=tuple(rejected), stats=stats)


def bot_score(p: Participant, now: Optional[datetime] = None) -> int:
    """
    Likelihood (0-100) that ``p`` is an automated or throwaway account.

    Only signals with data behind them count, and the total is scaled by how
    many signals fired, so sparse records are not pushed towards either end.
    Informational: the pass/fail decision stays with the configured filters.
    """
    now = as_utc(now or datetime.now(timezone.utc))
    score = 0
    factors = 0

    if p.follower_count is not None and p.following_count is not None:
        factors += 1
        if p.follower_count == 0 and p.following_count > 100:
            score += 30
        elif p.following_count > 0:
            ratio = p.follower_count / p.following_count
            if ratio < 0.1:
                score += 20
            elif ratio < 0.3:
                score += 10

    if p.account_created_at is not None:
        factors += 1
        age = account_age_days(p.account_created_at, now)
        if age < 7:
            score += 30
        elif age < 30:
            score += 20
        elif age < 90:
            score += 10

    if p.post_count is not None:
        factors += 1
        if p.post_count == 0:
            score += 25
        elif p.post_count < 5:
            score += 15
        elif p.post_count < 20:
            score += 5

    if not p.avatar_url or is_default_avatar(p.avatar_url):
        factors += 1
        score += 15
    if not p.bio:
        factors += 1
        score += 10
    if not p.display_name or p.display_name == p.handle:
        factors += 1
        score += 5

    if _TRAILING_DIGITS.search(p.key):
        factors += 1
        score += 15
    if _ALTERNATING.match(p.key):
        factors += 1
        score += 10

    if not factors:
        return 0
    # Round half up.
    return min(100, int(score * 100 / (factors * BOT_SIGNAL_WEIGHT) + 0.5))


def suggest_filters(participants: Sequence[Participant]) -> Dict[str, Any]:
    """
    Thresholds worth enabling for this pool, keyed by FilterConfig field.

    Only metrics that some participant actually reports get a suggestion.
    """
    if not participants:
        return {}

    suggestions: Dict[str, Any] = {}

    followers = sorted(p.follower_count for p in participants if p.follower_count is not None)
    if followers:
        # Bottom decile, capped so large accounts do not push the bar up.
        p10 = followers[int(len(followers) * 0.1)]
        if p10 > 0:
            suggestions["min_followers"] = min(p10, 10)

    if any(p.account_created_at is not None for p in participants):
        suggestions["min_account_age_days"] = 30
    if any(p.post_count is not None for p in participants):
        suggestions["min_post_count"] = 5
    if any(p.avatar_url is not None for p in participants):
        suggestions["require_avatar"] = True

    return suggestions


def filter_summary(result: FilterResult) -> str:
    stats = result.stats
    pct = (stats.passed / stats.total * 100) if stats.total else 0.0
    lines = [
        f"Total participants: {stats.total}",
        f"Eligible: {stats.passed} ({pct:.1f}%)",
        f"Filtered out: {stats.rejected}",
    ]
    counted = sorted(
        ((r, n) for r, n in stats.by_reason.items() if n > 0),
        key=lambda x: (-x[1], x[0]),
    )
    if counted:
        lines.append("")
        lines.append("Reasons for filtering:")
        for reason, n in counted:
            lines.append(f"  - {REASON_LABELS.get(reason, reason)}: {n}")
    return "\n".join(lines)


def load_blacklist(path: str | None) -> Set[str]:
    if not path:
        return set()
    out: Set[str] = set()
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            h = line.strip()
            if not h or h.startswith("#"):
                continue
            out.add(normalize_handle(h))
    return out
