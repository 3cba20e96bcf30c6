from __future__ import annotations

import pytest

from giveaway_draw.participants import Participant
from giveaway_draw.registry import EntryRegistry


@pytest.fixture
def make_registry():
    def _make(**categories):
        registry = EntryRegistry()
        for category, handles in categories.items():
            registry.add_category(category)
            for h in handles:
                p = h if isinstance(h, Participant) else Participant(handle=h)
                registry.upsert(category, p)
        return registry

    return _make
