from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .participants import Participant, follow_category
from .project_constants import LIKE, RETWEET
from .registry import EntryRegistry

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequirementSet:
    require_retweet: bool = False
    require_like: bool = False
    follow_accounts: Tuple[str, ...] = field(default_factory=tuple)

    def active_categories(self) -> List[str]:
        active: List[str] = []
        if self.require_retweet:
            active.append(RETWEET)
        if self.require_like:
            active.append(LIKE)
        for account in self.follow_accounts:
            category = follow_category(account)
            if category != follow_category("") and category not in active:
                active.append(category)
        return active


def compute_eligible(
    registry: EntryRegistry, requirements: RequirementSet
) -> List[Participant]:
    """
    Participants present in every required category.

    No active requirement means nobody is eligible, and so does a required
    category that has not been collected yet.
    """
    active = requirements.active_categories()
    if not active:
        log.info("No active requirement; eligible set is empty.")
        return []

    for category in active:
        if not registry.get(category):
            log.info("Required category %r is empty; eligible set is empty.", category)
            return []

    eligible = registry.handles(active[0])
    for category in active[1:]:
        eligible &= registry.handles(category)

    log.info("Eligible across %s: %d", ", ".join(active), len(eligible))
    # Metadata comes from every category holding the handle, by precedence.
    categories = registry.categories()
    return [registry.merged(handle, categories) for handle in sorted(eligible)]
