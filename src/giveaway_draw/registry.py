from __future__ import annotations

import json
from typing import Dict, List

from .participants import (
    Participant,
    ParticipantError,
    merge_participants,
    normalize_handle,
    participant_from_record,
)
from .project_constants import CATEGORY_PRECEDENCE, FOLLOW_PREFIX


def category_rank(category: str) -> int:
    """Lower rank = richer metadata source."""
    if category in CATEGORY_PRECEDENCE:
        return CATEGORY_PRECEDENCE.index(category)
    if category.startswith(FOLLOW_PREFIX):
        return len(CATEGORY_PRECEDENCE)
    return len(CATEGORY_PRECEDENCE) + 1


def by_precedence(categories: List[str]) -> List[str]:
    return sorted(categories, key=lambda c: (category_rank(c), c))


class EntryRegistry:
    """In-memory per-category store of participants keyed by normalized handle."""

    def __init__(self) -> None:
        self._entries: Dict[str, Dict[str, Participant]] = {}

    def add_category(self, name: str) -> None:
        self._entries.setdefault(name, {})

    def upsert(self, category: str, participant: Participant) -> None:
        # Most recently observed record wins within a category.
        self._entries.setdefault(category, {})[participant.key] = participant

    def get(self, category: str) -> List[Participant]:
        return list(self._entries.get(category, {}).values())

    def handles(self, category: str) -> set[str]:
        return set(self._entries.get(category, {}))

    def lookup(self, category: str, handle: str) -> Participant | None:
        return self._entries.get(category, {}).get(normalize_handle(handle))

    def categories(self) -> List[str]:
        return list(self._entries)

    def merged(self, key: str, categories: List[str]) -> Participant:
        """Merge every record for normalized ``key`` found in ``categories``, by precedence."""
        records = []
        for category in by_precedence(categories):
            p = self._entries.get(category, {}).get(key)
            if p is not None:
                records.append(p)
        if not records:
            raise KeyError(key)
        return merge_participants(records)

    def all_participants(self) -> List[Participant]:
        """Union of every category, deterministically ordered by normalized handle."""
        keys: set[str] = set()
        for entries in self._entries.values():
            keys.update(entries)
        cats = self.categories()
        return [self.merged(k, cats) for k in sorted(keys)]

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())


def load_registry_file(path: str) -> EntryRegistry:
    """
    Reads {"<category>": [<participant record>, ...], ...}.
    Every record goes through participant_from_record; a bad record fails the load.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Entries file is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise RuntimeError("Entries file must be a JSON object of category -> list.")

    registry = EntryRegistry()
    for category, records in data.items():
        if not isinstance(records, list):
            raise RuntimeError(f"Category {category!r}: expected a list of records.")
        registry.add_category(category)
        for i, record in enumerate(records):
            try:
                registry.upsert(category, participant_from_record(record, source=category))
            except ParticipantError as e:
                raise ParticipantError(f"{category}[{i}]: {e}") from e
    return registry
