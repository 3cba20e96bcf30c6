from __future__ import annotations

import argparse
import json
import logging
import signal
from typing import Any, Dict

from .config import Settings
from .engine import Draw, conduct_draw
from .eligibility import RequirementSet, compute_eligible
from .filters import FilterConfig, bot_score, filter_summary, load_blacklist, suggest_filters
from .follows import FollowCheckClient, FollowVerifier
from .registry import load_registry_file
from .verify import build_audit, verify_audit


# FilterConfig field -> draw option
SUGGESTION_FLAGS = {
    "min_followers": "--min-followers",
    "min_account_age_days": "--min-account-age-days",
    "min_post_count": "--min-posts",
    "require_avatar": "--require-avatar",
}


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _filter_config(args: argparse.Namespace) -> FilterConfig:
    blacklist = load_blacklist(args.blacklist_file)
    blacklist.update(args.blacklist or [])
    return FilterConfig(
        min_followers=args.min_followers,
        min_following=args.min_following,
        min_post_count=args.min_posts,
        min_account_age_days=args.min_account_age_days,
        require_avatar=args.require_avatar,
        require_bio=args.require_bio,
        only_verified=args.only_verified,
        exclude_default_profile=args.exclude_default_profile,
        blacklist=frozenset(blacklist),
    )


def _print_draw(draw: Draw, out: str) -> None:
    print("========================================")
    print("🔒 VERIFIABLE GIVEAWAY DRAW")
    print("========================================")
    print(f"Draw ID        : {draw.id}")
    print(f"Timestamp      : {draw.timestamp.isoformat()}")
    print(f"Participants   : {len(draw.all_participants)}")
    print(f"Eligible       : {len(draw.eligible)}")
    print(f"Participant SHA-256: {draw.participant_hash}")
    print("----------------------------------------")
    print(filter_summary(draw.filter_result))
    print("----------------------------------------")
    if draw.winners:
        print(f"🏆 WINNERS ({len(draw.winners)})")
        for i, w in enumerate(draw.winners, 1):
            print(f"{i:>3}. @{w.handle}  (bot score {bot_score(w, draw.timestamp)})")
    else:
        print("⚠️  No winners: nobody met the requirements and filters.")
    if draw.alternates:
        print(f"Alternates ({len(draw.alternates)})")
        for i, a in enumerate(draw.alternates, 1):
            print(f"{i:>3}. @{a.handle}")
    if 0 < len(draw.winners) < draw.winner_count:
        print(f"⚠️  Only {len(draw.winners)} of {draw.winner_count} winners could be drawn.")
    report = draw.follow_report
    if report is not None:
        print("----------------------------------------")
        print(f"Follow checks  : {report.checked} checked, {len(report.verified)} verified")
        if report.errors:
            print(f"Check errors   : {len(report.errors)}")
        if report.cancelled:
            print("Follow verification was cancelled; partial results kept.")
    print("----------------------------------------")
    print(f"🧾 Wrote audit: {out}")


def cmd_draw(args: argparse.Namespace) -> int:
    log = logging.getLogger("draw")

    registry = load_registry_file(args.entries)
    log.info("Categories loaded : %s", ", ".join(registry.categories()) or "(none)")

    requirements = RequirementSet(
        require_retweet=args.require_retweet,
        require_like=args.require_like,
        follow_accounts=tuple(args.require_follow or ()),
    )
    filter_config = _filter_config(args)

    verifier = None
    client = None
    previous_handler = None
    if args.verify_follow:
        settings = Settings.from_env(follow_check_url_override=args.follow_check_url)
        client = FollowCheckClient(
            settings.require_follow_check_url(),
            token=settings.follow_check_token,
            timeout_s=args.timeout,
        )
        verifier = FollowVerifier(
            check=client.follows,
            accounts=tuple(args.verify_follow),
            delay_s=settings.follow_check_delay_s,
            backup_margin=settings.follow_check_backup,
        )
        # Ctrl-C stops remaining follow checks instead of killing the draw.
        previous_handler = signal.signal(
            signal.SIGINT, lambda *_: verifier.cancel.set()
        )

    try:
        draw = conduct_draw(
            registry,
            requirements,
            filter_config,
            winner_count=args.winners,
            alternate_count=args.alternates,
            follow_verifier=verifier,
        )
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)
        if client is not None:
            client.close()

    audit: Dict[str, Any] = build_audit(draw)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)

    _print_draw(draw, args.out)
    return 0


def cmd_suggest(args: argparse.Namespace) -> int:
    registry = load_registry_file(args.entries)
    requirements = RequirementSet(
        require_retweet=args.require_retweet,
        require_like=args.require_like,
        follow_accounts=tuple(args.require_follow or ()),
    )
    if requirements.active_categories():
        pool = compute_eligible(registry, requirements)
    else:
        pool = registry.all_participants()
    suggestions = suggest_filters(pool)

    print(f"Participants considered: {len(pool)}")
    if not suggestions:
        print("No filter suggestions: the entries carry no usable metrics.")
        return 0
    print("Suggested filters:")
    for name, value in suggestions.items():
        flag = SUGGESTION_FLAGS[name]
        print(f"  {flag}" if value is True else f"  {flag} {value}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("✅ AUDIT VERIFIED")
    print(f"Draw ID       : {result['draw_id']}")
    print(f"Participants  : {result['total_participants']}")
    print(f"Winners       : {', '.join('@' + w for w in result['winners']) or '(none)'}")
    print(f"Participant SHA-256: {result['participant_hash']}")
    print(f"Draw SHA-256  : {result['draw_hash']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="giveaway-draw",
        description="Verifiable social-media giveaway draw tool.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--timeout", type=float, default=60.0, help="Follow check timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    d = sub.add_parser("draw", help="Run the draw and write an audit JSON.")
    d.add_argument(
        "--entries",
        required=True,
        help="JSON file mapping category (retweet, like, follows:<account>) to participant records.",
    )
    d.add_argument("--require-retweet", action="store_true", help="Entrants must have retweeted.")
    d.add_argument("--require-like", action="store_true", help="Entrants must have liked.")
    d.add_argument(
        "--require-follow",
        action="append",
        metavar="ACCOUNT",
        help="Entrants must appear in the follows:<ACCOUNT> category. Repeatable.",
    )
    d.add_argument("--winners", type=int, default=1, help="Number of winners.")
    d.add_argument("--alternates", type=int, default=0, help="Number of alternates.")

    f = d.add_argument_group("bot filters (0 / unset disables)")
    f.add_argument("--min-followers", type=int, default=0)
    f.add_argument("--min-following", type=int, default=0)
    f.add_argument("--min-posts", type=int, default=0)
    f.add_argument("--min-account-age-days", type=int, default=0)
    f.add_argument("--require-avatar", action="store_true")
    f.add_argument("--require-bio", action="store_true")
    f.add_argument("--only-verified", action="store_true")
    f.add_argument("--exclude-default-profile", action="store_true")
    f.add_argument("--blacklist", action="append", metavar="HANDLE", help="Repeatable.")
    f.add_argument("--blacklist-file", default=None, help="One handle per line, # comments.")

    d.add_argument(
        "--verify-follow",
        action="append",
        metavar="ACCOUNT",
        help="Check winners follow ACCOUNT through the follow-check service. Repeatable.",
    )
    d.add_argument("--follow-check-url", default=None, help="Override follow-check URL (else use env).")
    d.add_argument("--out", default="audit.json", help="Audit output JSON path.")
    d.set_defaults(func=cmd_draw)

    s = sub.add_parser("suggest", help="Suggest bot filter thresholds for an entries file.")
    s.add_argument("--entries", required=True, help="Entries JSON file.")
    s.add_argument("--require-retweet", action="store_true")
    s.add_argument("--require-like", action="store_true")
    s.add_argument("--require-follow", action="append", metavar="ACCOUNT")
    s.set_defaults(func=cmd_suggest)

    v = sub.add_parser("verify", help="Verify an existing audit.json.")
    v.add_argument("--audit", required=True, help="Path to audit.json.")
    v.set_defaults(func=cmd_verify)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
