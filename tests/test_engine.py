from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from giveaway_draw.eligibility import RequirementSet
from giveaway_draw.engine import conduct_draw
from giveaway_draw.filters import FilterConfig
from giveaway_draw.follows import FollowVerifier
from giveaway_draw.participants import Participant
from giveaway_draw.verify import participant_hash

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def scenario(make_registry):
    established = datetime(2019, 5, 1, tzinfo=timezone.utc)
    return make_registry(
        retweet=[
            Participant(handle="alice", follower_count=500, account_created_at=established),
            Participant(handle="bob", follower_count=2, account_created_at=NOW - timedelta(days=1)),
            Participant(handle="charlie", follower_count=500, account_created_at=established),
        ]
    )


def test_end_to_end_scenario(scenario):
    draw = conduct_draw(
        scenario,
        RequirementSet(require_retweet=True),
        FilterConfig(min_followers=10, min_account_age_days=30),
        winner_count=1,
        alternate_count=1,
        now=NOW,
    )
    assert [p.key for p in draw.filter_result.passed] == ["alice", "charlie"]
    (rejection,) = draw.filter_result.rejected
    assert rejection.participant.key == "bob"
    assert rejection.reasons == ("low_followers", "new_account")
    assert {p.key for p in draw.winners + draw.alternates} == {"alice", "charlie"}
    assert draw.participant_hash == participant_hash(["alice", "bob", "charlie"])
    assert draw.timestamp == NOW
    assert draw.filter_stats == {"total": 3, "passed": 2, "rejected": 1}
    assert draw.shortfall == 0
    assert draw.follow_report is None


def test_draw_is_immutable(scenario):
    draw = conduct_draw(scenario, RequirementSet(require_retweet=True), FilterConfig(), 1, now=NOW)
    with pytest.raises(dataclasses.FrozenInstanceError):
        draw.winners = ()  # type: ignore[misc]
    assert isinstance(draw.all_participants, tuple)


def test_repick_is_a_new_draw(scenario):
    req = RequirementSet(require_retweet=True)
    first = conduct_draw(scenario, req, FilterConfig(), 2, now=NOW)
    second = conduct_draw(scenario, req, FilterConfig(), 2, now=NOW)
    assert first.id != second.id
    assert first.random_seed != second.random_seed
    assert first.participant_hash == second.participant_hash


def test_no_requirements_is_empty_draw_not_error(scenario):
    draw = conduct_draw(scenario, RequirementSet(), FilterConfig(), 3, now=NOW)
    assert draw.eligible == ()
    assert draw.winners == ()
    assert draw.shortfall == 3
    assert len(draw.all_participants) == 3


def test_everyone_filtered_out(scenario):
    draw = conduct_draw(
        scenario, RequirementSet(require_retweet=True), FilterConfig(min_followers=10_000), 1, now=NOW
    )
    assert draw.winners == ()
    assert draw.filter_result.stats.rejected == 3


def test_counts_clamped_to_pool(scenario):
    draw = conduct_draw(scenario, RequirementSet(require_retweet=True), FilterConfig(), 5, 5, now=NOW)
    assert len(draw.winners) == 3
    assert draw.alternates == ()


def test_negative_counts_rejected(scenario):
    with pytest.raises(ValueError):
        conduct_draw(scenario, RequirementSet(require_retweet=True), FilterConfig(), -1)


def test_follow_verifier_used(scenario):
    verifier = FollowVerifier(
        check=lambda handle, account: handle != "alice",
        accounts=("sponsor",),
        delay_s=0,
    )
    draw = conduct_draw(
        scenario, RequirementSet(require_retweet=True), FilterConfig(), 2, now=NOW, follow_verifier=verifier
    )
    assert draw.follow_report is not None
    assert "alice" not in {p.key for p in draw.winners}
    assert {p.key for p in draw.winners} == {"bob", "charlie"}


def test_naive_now_is_utc(scenario):
    draw = conduct_draw(
        scenario,
        RequirementSet(require_retweet=True),
        FilterConfig(min_account_age_days=30),
        1,
        now=datetime(2026, 6, 1),
    )
    assert [p.key for p in draw.filter_result.passed] == ["alice", "charlie"]
    assert draw.timestamp == NOW
    assert draw.timestamp.tzinfo is not None
