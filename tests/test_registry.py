from __future__ import annotations

import json

import pytest

from giveaway_draw.participants import Participant, ParticipantError
from giveaway_draw.registry import EntryRegistry, by_precedence, load_registry_file


def test_add_category_is_idempotent():
    registry = EntryRegistry()
    registry.add_category("like")
    registry.upsert("like", Participant(handle="a"))
    registry.add_category("like")
    assert [p.handle for p in registry.get("like")] == ["a"]


def test_unknown_category_is_empty():
    assert EntryRegistry().get("retweet") == []


def test_upsert_last_write_wins_per_normalized_handle():
    registry = EntryRegistry()
    registry.upsert("retweet", Participant(handle="Alice", follower_count=1))
    registry.upsert("retweet", Participant(handle="@alice", follower_count=7))
    entries = registry.get("retweet")
    assert len(entries) == 1
    assert entries[0].follower_count == 7
    assert registry.lookup("retweet", "ALICE") is entries[0]
    assert registry.lookup("like", "alice") is None


def test_categories_are_independent():
    registry = EntryRegistry()
    registry.upsert("retweet", Participant(handle="a", follower_count=1))
    registry.upsert("like", Participant(handle="A", follower_count=2))
    assert registry.get("retweet")[0].follower_count == 1
    assert registry.get("like")[0].follower_count == 2
    assert len(registry) == 2


def test_precedence_order():
    cats = ["follows:zed", "manual", "like", "follows:acme", "retweet"]
    assert by_precedence(cats) == ["retweet", "like", "follows:acme", "follows:zed", "manual"]


def test_all_participants_union_sorted_and_merged():
    registry = EntryRegistry()
    registry.upsert("like", Participant(handle="bob", bio="from like", follower_count=3))
    registry.upsert("retweet", Participant(handle="Bob", follower_count=50))
    registry.upsert("like", Participant(handle="amy"))
    everyone = registry.all_participants()
    assert [p.key for p in everyone] == ["amy", "bob"]
    bob = everyone[1]
    assert bob.follower_count == 50
    assert bob.bio == "from like"


def test_load_registry_file(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(
        json.dumps(
            {
                "retweet": [{"username": "Alice", "followers_count": 5}],
                "like": [],
                "follows:acme": [{"handle": "@alice"}],
            }
        ),
        encoding="utf-8",
    )
    registry = load_registry_file(str(path))
    assert registry.categories() == ["retweet", "like", "follows:acme"]
    assert registry.get("like") == []
    alice = registry.get("retweet")[0]
    assert alice.follower_count == 5
    assert alice.entry_source == "retweet"


def test_load_registry_file_reports_bad_record(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(json.dumps({"like": [{"handle": "ok"}, {"followers": 3}]}), encoding="utf-8")
    with pytest.raises(ParticipantError, match=r"like\[1\]"):
        load_registry_file(str(path))


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"like": {"handle": "x"}}'])
def test_load_registry_file_rejects_bad_shape(tmp_path, content):
    path = tmp_path / "entries.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_registry_file(str(path))


def test_load_registry_file_keeps_context_for_odd_digits(tmp_path):
    path = tmp_path / "entries.json"
    path.write_text(
        json.dumps({"retweet": [{"handle": "ok", "followers_count": "\u00b2"}]}),
        encoding="utf-8",
    )
    with pytest.raises(ParticipantError, match=r"retweet\[0\]: follower_count"):
        load_registry_file(str(path))
