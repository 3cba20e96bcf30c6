from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from .draw import Selection, clamp_counts, generate_seed, secure_shuffle, split_selection
from .participants import Participant, normalize_handle
from .project_constants import FOLLOW_CHECK_BACKUP, FOLLOW_CHECK_DELAY_S

log = logging.getLogger(__name__)

# (handle, account) -> follows?
FollowCheck = Callable[[str, str], bool]


class FollowCheckClient:
    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.Client(timeout=timeout_s, headers=headers, transport=transport)

    def close(self) -> None:
        self.client.close()

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.client.get(self.url, params=params)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise RuntimeError(f"Follow check returned {type(data).__name__}, expected object")
        if "error" in data:
            raise RuntimeError(f"Follow check error: {data['error']}")
        return data

    def follows(self, handle: str, account: str) -> bool:
        """Whether ``handle`` follows ``account``."""
        data = self._get(
            {"source": normalize_handle(handle), "target": normalize_handle(account)}
        )
        result = data.get("follows")
        if not isinstance(result, bool):
            raise RuntimeError(f"Follow check for @{handle}: missing 'follows' flag")
        return result


@dataclass(frozen=True)
class FollowReport:
    accounts: Tuple[str, ...]
    requested: int
    checked: int
    verified: Tuple[Participant, ...]
    failed: Tuple[str, ...]
    errors: Tuple[Tuple[str, str], ...]
    cancelled: bool

    @property
    def shortfall(self) -> int:
        return max(self.requested - len(self.verified), 0)


@dataclass
class FollowVerifier:
    check: FollowCheck
    accounts: Sequence[str]
    delay_s: float = FOLLOW_CHECK_DELAY_S
    backup_margin: int = FOLLOW_CHECK_BACKUP
    cancel: threading.Event = field(default_factory=threading.Event)


def _check_one(check: FollowCheck, handle: str, accounts: Sequence[str]) -> bool:
    return all(check(handle, account) for account in accounts)


def verify_candidates(
    candidates: Sequence[Participant],
    accounts: Sequence[str],
    needed: int,
    check: FollowCheck,
    delay_s: float = FOLLOW_CHECK_DELAY_S,
    backup_margin: int = FOLLOW_CHECK_BACKUP,
    cancel: Optional[threading.Event] = None,
) -> FollowReport:
    """
    Checks candidates one at a time, in order, until ``needed`` pass.

    At most ``needed + backup_margin`` candidates are checked. A check that
    raises is recorded as an error and the next candidate is tried. Setting
    ``cancel`` abandons the remaining checks; whatever verified so far is kept.
    """
    if needed < 0 or backup_margin < 0:
        raise ValueError("needed and backup_margin must not be negative")
    cancel = cancel or threading.Event()
    accounts = tuple(normalize_handle(a) for a in accounts)
    budget = min(len(candidates), needed + backup_margin)

    verified: List[Participant] = []
    failed: List[str] = []
    errors: List[Tuple[str, str]] = []
    checked = 0
    cancelled = False

    for candidate in candidates[:budget]:
        if len(verified) >= needed:
            break
        if checked and cancel.wait(delay_s):
            cancelled = True
            break
        if cancel.is_set():
            cancelled = True
            break

        checked += 1
        try:
            ok = _check_one(check, candidate.handle, accounts)
        except Exception as e:
            log.warning("Follow check failed for @%s: %s", candidate.key, e)
            errors.append((candidate.key, str(e)))
            continue

        log.debug("Follow check @%s: %s", candidate.key, "pass" if ok else "fail")
        if ok:
            verified.append(candidate)
        else:
            failed.append(candidate.key)

    report = FollowReport(
        accounts=accounts,
        requested=needed,
        checked=checked,
        verified=tuple(verified),
        failed=tuple(failed),
        errors=tuple(errors),
        cancelled=cancelled,
    )
    if report.shortfall:
        log.warning(
            "Follow verification short by %d (checked %d, errors %d%s)",
            report.shortfall,
            checked,
            len(errors),
            ", cancelled" if cancelled else "",
        )
    return report


def select_verified_winners(
    passed: Sequence[Participant],
    winner_count: int,
    alternate_count: int,
    verifier: FollowVerifier,
) -> Tuple[Selection, FollowReport]:
    """Shuffle once, then fill winners and alternates from candidates that verify."""
    seed = generate_seed()
    shuffled = secure_shuffle(passed)
    w, a = clamp_counts(len(shuffled), winner_count, alternate_count)
    report = verify_candidates(
        shuffled,
        verifier.accounts,
        needed=w + a,
        check=verifier.check,
        delay_s=verifier.delay_s,
        backup_margin=verifier.backup_margin,
        cancel=verifier.cancel,
    )
    return split_selection(report.verified, w, a, seed), report
