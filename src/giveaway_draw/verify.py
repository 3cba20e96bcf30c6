from __future__ import annotations

import hashlib
import json
import secrets
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

import base58

from .filters import bot_score
from .participants import Participant, normalize_handle
from .project_constants import (
    AUDIT_TOOL_NAME,
    AUDIT_VERSION,
    DRAW_HASH_SEPARATOR,
    DRAW_ID_SUFFIX_BYTES,
    HASH_DELIMITER,
)

if TYPE_CHECKING:
    from .engine import Draw

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class VerificationRecord:
    participant_hash: str
    passed_hash: str
    draw_id: str
    draw_hash: str
    timestamp: datetime


def _handle_of(item: Union[Participant, str]) -> str:
    return normalize_handle(item.handle if isinstance(item, Participant) else item)


def canonical_participants(participants: Iterable[Union[Participant, str]]) -> str:
    handles = {_handle_of(p) for p in participants}
    for h in handles:
        if HASH_DELIMITER in h or DRAW_HASH_SEPARATOR in h:
            raise ValueError(f"Handle {h!r} cannot be hashed unambiguously")
    return HASH_DELIMITER.join(sorted(handles))


def participant_hash(participants: Iterable[Union[Participant, str]]) -> str:
    """SHA-256 of the sorted normalized handles; independent of collection order."""
    return hashlib.sha256(canonical_participants(participants).encode("utf-8")).hexdigest()


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def draw_hash(
    timestamp: datetime,
    participants_hash: str,
    winners: Iterable[Union[Participant, str]],
    seed: str,
    alternates: Iterable[Union[Participant, str]] = (),
    passed_hash: str = "",
) -> str:
    """
    Binds one draw's time, input set, filtered pool, winners, alternates and
    seed into a single digest. Alternates keep their drawn order.
    """
    winner_handles = canonical_participants(winners)
    ordered = [_handle_of(a) for a in alternates]
    canonical_participants(ordered)
    alternate_handles = HASH_DELIMITER.join(ordered)
    data = DRAW_HASH_SEPARATOR.join(
        [
            format_timestamp(timestamp),
            participants_hash,
            passed_hash,
            winner_handles,
            alternate_handles,
            seed,
        ]
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def generate_draw_id() -> str:
    """Human reference only: base36 milliseconds + base58 random suffix."""
    prefix = _base36(time.time_ns() // 1_000_000)
    suffix = base58.b58encode(secrets.token_bytes(DRAW_ID_SUFFIX_BYTES)).decode("ascii")
    return f"{prefix}-{suffix}"


def record(
    all_participants: Iterable[Union[Participant, str]],
    winners: Iterable[Union[Participant, str]],
    seed: str,
    timestamp: Optional[datetime] = None,
    alternates: Iterable[Union[Participant, str]] = (),
    passed: Iterable[Union[Participant, str]] = (),
) -> VerificationRecord:
    timestamp = timestamp or datetime.now(timezone.utc)
    p_hash = participant_hash(all_participants)
    pool_hash = participant_hash(passed)
    return VerificationRecord(
        participant_hash=p_hash,
        passed_hash=pool_hash,
        draw_id=generate_draw_id(),
        draw_hash=draw_hash(
            timestamp, p_hash, winners, seed, alternates=alternates, passed_hash=pool_hash
        ),
        timestamp=timestamp,
    )


def participant_to_dict(p: Participant) -> Dict[str, Any]:
    d = asdict(p)
    if p.account_created_at is not None:
        d["account_created_at"] = p.account_created_at.isoformat()
    return d


def build_audit(draw: "Draw") -> Dict[str, Any]:
    """The verification artifact: everything needed to re-check the draw."""
    config = asdict(draw.filter_config)
    config["blacklist"] = sorted(draw.filter_config.blacklist)
    stats = draw.filter_result.stats

    audit: Dict[str, Any] = {
        "metadata": {
            "tool": AUDIT_TOOL_NAME,
            "version": AUDIT_VERSION,
            "draw_id": draw.id,
            "timestamp": format_timestamp(draw.timestamp),
            "participant_hash": draw.participant_hash,
            "passed_hash": draw.passed_hash,
            "draw_hash": draw.draw_hash,
            "random_seed": draw.random_seed,
            "winner_count": draw.winner_count,
            "alternate_count": draw.alternate_count,
            "requirements": {
                "require_retweet": draw.requirements.require_retweet,
                "require_like": draw.requirements.require_like,
                "follow_accounts": list(draw.requirements.follow_accounts),
                "active_categories": draw.requirements.active_categories(),
            },
            "filter_config": config,
        },
        "filter_stats": {
            "total": stats.total,
            "passed": stats.passed,
            "rejected": stats.rejected,
            "by_reason": dict(stats.by_reason),
        },
        "winners": [participant_to_dict(p) for p in draw.winners],
        "alternates": [participant_to_dict(p) for p in draw.alternates],
        "passed": [p.key for p in draw.filter_result.passed],
        "rejected": [
            {
                "handle": r.participant.key,
                "reasons": list(r.reasons),
                "bot_score": bot_score(r.participant, draw.timestamp),
            }
            for r in draw.filter_result.rejected
        ],
        "eligible": [p.key for p in draw.eligible],
        "bot_scores": {p.key: bot_score(p, draw.timestamp) for p in draw.eligible},
        "all_participants": [participant_to_dict(p) for p in draw.all_participants],
        "follow_verification": None,
    }

    report = draw.follow_report
    if report is not None:
        audit["follow_verification"] = {
            "accounts": list(report.accounts),
            "requested": report.requested,
            "checked": report.checked,
            "verified": [p.key for p in report.verified],
            "failed": list(report.failed),
            "errors": [{"handle": h, "error": msg} for h, msg in report.errors],
            "cancelled": report.cancelled,
            "shortfall": report.shortfall,
        }
    return audit


def _handles(items: List[Any]) -> List[str]:
    return [normalize_handle(i["handle"] if isinstance(i, dict) else i) for i in items]


def verify_audit(audit_path: str) -> Dict[str, Any]:
    with open(audit_path, "r", encoding="utf-8") as f:
        audit = json.load(f)

    meta = audit["metadata"]
    all_handles = _handles(audit["all_participants"])

    recomputed = participant_hash(all_handles)
    if recomputed != meta["participant_hash"]:
        raise RuntimeError(
            f"Participant hash mismatch: audit={meta['participant_hash']} recomputed={recomputed}"
        )

    passed_list = _handles(audit["passed"])
    recomputed_pool = participant_hash(passed_list)
    if recomputed_pool != meta["passed_hash"]:
        raise RuntimeError(
            f"Passed pool hash mismatch: audit={meta['passed_hash']} recomputed={recomputed_pool}"
        )

    winners = _handles(audit["winners"])
    alternates = _handles(audit["alternates"])
    timestamp = datetime.fromisoformat(meta["timestamp"])
    recomputed_draw = draw_hash(
        timestamp,
        recomputed,
        winners,
        meta["random_seed"],
        alternates=alternates,
        passed_hash=recomputed_pool,
    )
    if recomputed_draw != meta["draw_hash"]:
        raise RuntimeError(
            f"Draw hash mismatch: audit={meta['draw_hash']} recomputed={recomputed_draw}"
        )

    everyone = set(all_handles)
    eligible = set(_handles(audit["eligible"]))
    passed = set(passed_list)
    if not eligible <= everyone:
        raise RuntimeError("Eligible participants missing from the participant list.")
    if not passed <= eligible:
        raise RuntimeError("Passed participants missing from the eligible set.")

    picked = winners + alternates
    if len(set(picked)) != len(picked):
        raise RuntimeError("Winners and alternates overlap or repeat.")
    outsiders = sorted(set(picked) - passed)
    if outsiders:
        raise RuntimeError(f"Selected participants did not pass filtering: {outsiders}")
    if len(winners) > int(meta["winner_count"]):
        raise RuntimeError(
            f"Too many winners: audit lists {len(winners)}, requested {meta['winner_count']}"
        )

    return {
        "ok": True,
        "draw_id": meta["draw_id"],
        "participant_hash": recomputed,
        "draw_hash": recomputed_draw,
        "winners": winners,
        "alternates": alternates,
        "total_participants": len(everyone),
    }
