"""Runs one draw end to end and produces its immutable record."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from .draw import select_winners
from .eligibility import RequirementSet, compute_eligible
from .filters import FilterConfig, FilterResult, as_utc, filter_participants
from .follows import FollowReport, FollowVerifier, select_verified_winners
from .participants import Participant
from .registry import EntryRegistry
from .verify import record

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Draw:
    """
    Outcome of one engine run. Never edited: a re-pick is a new Draw.

    Attributes
    ----------
    all_participants : tuple
        Every participant seen in any category, before eligibility and filtering.
        This is the set ``participant_hash`` commits to.
    eligible : tuple
        Participants meeting every active requirement.
    filter_result : FilterResult
        Bot filter partition of ``eligible``.
    random_seed : str
        Audit label. The shuffle does not derive from it.
    follow_report : Optional[FollowReport]
        Present only when winners went through follow verification.
    """

    id: str
    timestamp: datetime
    requirements: RequirementSet
    filter_config: FilterConfig
    all_participants: Tuple[Participant, ...]
    eligible: Tuple[Participant, ...]
    filter_result: FilterResult
    winners: Tuple[Participant, ...]
    alternates: Tuple[Participant, ...]
    winner_count: int
    alternate_count: int
    participant_hash: str
    passed_hash: str
    draw_hash: str
    random_seed: str
    follow_report: Optional[FollowReport] = None

    @property
    def filter_stats(self) -> Dict[str, int]:
        stats = self.filter_result.stats
        return {"total": stats.total, "passed": stats.passed, "rejected": stats.rejected}

    @property
    def shortfall(self) -> int:
        return self.winner_count - len(self.winners)


def conduct_draw(
    registry: EntryRegistry,
    requirements: RequirementSet,
    filter_config: FilterConfig,
    winner_count: int,
    alternate_count: int = 0,
    follow_verifier: Optional[FollowVerifier] = None,
    now: Optional[datetime] = None,
) -> Draw:
    """Registry -> eligibility -> bot filter -> selection -> verification record."""
    if winner_count < 0 or alternate_count < 0:
        raise ValueError("winner_count and alternate_count must not be negative")

    now = as_utc(now or datetime.now(timezone.utc))

    everyone = registry.all_participants()
    eligible = compute_eligible(registry, requirements)
    result = filter_participants(eligible, filter_config, now=now)
    log.info(
        "Participants: %d, eligible: %d, passed filters: %d",
        len(everyone),
        len(eligible),
        result.stats.passed,
    )

    report: Optional[FollowReport] = None
    if follow_verifier is not None and follow_verifier.accounts:
        selection, report = select_verified_winners(
            result.passed, winner_count, alternate_count, follow_verifier
        )
    else:
        selection = select_winners(result.passed, winner_count, alternate_count)

    rec = record(
        everyone,
        selection.winners,
        selection.seed,
        timestamp=now,
        alternates=selection.alternates,
        passed=result.passed,
    )
    log.info(
        "Draw %s: %d winner(s), %d alternate(s)",
        rec.draw_id,
        len(selection.winners),
        len(selection.alternates),
    )
    log.debug("Seed: %s...", selection.seed[:16])

    return Draw(
        id=rec.draw_id,
        timestamp=rec.timestamp,
        requirements=requirements,
        filter_config=filter_config,
        all_participants=tuple(everyone),
        eligible=tuple(eligible),
        filter_result=result,
        winners=selection.winners,
        alternates=selection.alternates,
        winner_count=winner_count,
        alternate_count=alternate_count,
        participant_hash=rec.participant_hash,
        passed_hash=rec.passed_hash,
        draw_hash=rec.draw_hash,
        random_seed=selection.seed,
        follow_report=report,
    )
