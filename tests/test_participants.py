from __future__ import annotations

from datetime import datetime, timezone

import pytest

from giveaway_draw.participants import (
    Participant,
    ParticipantError,
    follow_category,
    merge_participants,
    normalize_handle,
    parse_created_at,
    participant_from_record,
)


@pytest.mark.parametrize("raw", ["Alice", "alice", "@ALICE", "@alice"])
def test_normalize_collapses_case_and_at(raw):
    assert normalize_handle(raw) == "alice"


def test_normalize_strips_only_one_at():
    assert normalize_handle("@@bob") == "@bob"
    assert normalize_handle("") == ""


def test_follow_category():
    assert follow_category("@AcmeCorp") == "follows:acmecorp"


def test_record_with_aliases():
    p = participant_from_record(
        {
            "username": "@Alice",
            "name": "Alice A.",
            "followers_count": "1,200",
            "friends_count": 30,
            "statuses_count": 400.0,
            "created_at": "Wed Oct 10 20:19:24 +0000 2018",
            "is_verified": True,
            "profile_image_url": "https://img/alice.png",
        },
        source="retweet",
    )
    assert p.handle == "Alice"
    assert p.key == "alice"
    assert p.display_name == "Alice A."
    assert p.follower_count == 1200
    assert p.following_count == 30
    assert p.post_count == 400
    assert p.account_created_at == datetime(2018, 10, 10, 20, 19, 24, tzinfo=timezone.utc)
    assert p.verified is True
    assert p.avatar_url == "https://img/alice.png"
    assert p.entry_source == "retweet"


def test_missing_metrics_stay_unknown():
    p = participant_from_record({"handle": "bob"})
    assert p.follower_count is None
    assert p.account_created_at is None
    assert p.verified is None


@pytest.mark.parametrize(
    "record",
    [
        {},
        {"handle": "   "},
        {"handle": "@"},
        {"handle": 42},
        {"handle": "x", "followerCount": -1},
        {"handle": "x", "followerCount": "lots"},
        {"handle": "x", "followerCount": True},
        {"handle": "x", "postCount": 1.5},
        {"handle": "x", "verified": "yes"},
        {"handle": "x", "bio": ["not", "text"]},
        {"handle": "x", "createdAt": 1234567890},
        {"handle": "alice,bob"},
        {"handle": "alice bob"},
        {"handle": "al-ice"},
        {"handle": "\u00e5lice"},
        {"handle": "x", "followerCount": "\u00b2"},
    ],
)
def test_bad_records_rejected(record):
    with pytest.raises(ParticipantError):
        participant_from_record(record)


def test_non_mapping_rejected():
    with pytest.raises(ParticipantError):
        participant_from_record(["alice"])  # type: ignore[arg-type]


def test_created_at_parsing():
    assert parse_created_at("2020-01-01T00:00:00Z") == datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert parse_created_at("2020-01-01").tzinfo is timezone.utc
    assert parse_created_at("not a date") is None
    assert parse_created_at("") is None


def test_merge_prefers_first_non_none():
    rich = Participant(handle="Carol", follower_count=10)
    other = Participant(handle="carol", follower_count=99, bio="hi", entry_source="like")
    merged = merge_participants([rich, other])
    assert merged.handle == "Carol"
    assert merged.follower_count == 10
    assert merged.bio == "hi"


def test_merge_refuses_mixed_identities():
    with pytest.raises(ValueError):
        merge_participants([Participant(handle="a"), Participant(handle="b")])
