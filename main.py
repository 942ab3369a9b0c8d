from __future__ import annotations

import argparse
import random
import sys
from typing import List, Optional

from loguru import logger

from santa.core.config import load_settings
from santa.core.logging import setup_logging
from santa.db import User, get_session, init_engine
from santa.db import repo
from santa.services import draw


def log_notification(giver: User, receiver: User, wishlist: List[str]) -> None:
    logger.bind(giver_id=giver.id, receiver_id=receiver.id).info(
        "{giver} gives a gift to {receiver} (wishlist: {wishlist})",
        giver=giver.name,
        receiver=receiver.name,
        wishlist=", ".join(wishlist) or "empty",
    )


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="santa", description="Secret Santa draw with exclusion rules.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="create the database schema")

    create_group = commands.add_parser("create-group", help="create a group")
    create_group.add_argument("name")
    create_group.add_argument("--year", type=int)

    add_member = commands.add_parser("add-member", help="add a member to a group")
    add_member.add_argument("group_id", type=int)
    add_member.add_argument("name")
    add_member.add_argument("--email")

    add_exclusion = commands.add_parser("add-exclusion", help="forbid a giver from drawing a receiver")
    add_exclusion.add_argument("group_id", type=int)
    add_exclusion.add_argument("giver_id", type=int)
    add_exclusion.add_argument("receiver_id", type=int)
    add_exclusion.add_argument("--mutual", action="store_true")

    run_draw = commands.add_parser("draw", help="run the draw for a group")
    run_draw.add_argument("group_id", type=int)
    run_draw.add_argument("--year", type=int)
    run_draw.add_argument("--max-retries", type=positive_int)
    run_draw.add_argument("--seed", type=int)

    members = commands.add_parser("members", help="list the members of a group")
    members.add_argument("group_id", type=int)

    wish = commands.add_parser("wish", help="add an item to a member's wishlist")
    wish.add_argument("group_id", type=int)
    wish.add_argument("user_id", type=int)
    wish.add_argument("text")

    show = commands.add_parser("show", help="show a member's assignment")
    show.add_argument("group_id", type=int)
    show.add_argument("user_id", type=int)
    show.add_argument("--year", type=int)

    return parser


def _require_group(session, group_id: int):
    group = repo.get_group_by_id(session, group_id)
    if not group:
        raise SystemExit(f"Group {group_id} does not exist.")
    return group


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_path)
    init_engine(settings.database_url, create_schema=args.command == "init-db")

    if args.command == "init-db":
        logger.info("Database schema ready")
        return 0

    try:
        with get_session() as session:
            if args.command == "create-group":
                group = draw.create_group(session, args.name, args.year)
                logger.info("Created group {id} ({name}, {year})", id=group.id, name=group.name, year=group.year)
                return 0

            group = _require_group(session, args.group_id)

            if args.command == "add-member":
                user = draw.add_member(session, group, args.name, args.email)
                logger.info("Added {name} as user {id}", name=user.name, id=user.id)
            elif args.command == "add-exclusion":
                draw.add_exclusion(session, group, args.giver_id, args.receiver_id, args.mutual)
            elif args.command == "draw":
                result = draw.run_assignments(
                    session,
                    group,
                    year=args.year,
                    max_retries=args.max_retries if args.max_retries is not None else settings.max_retries,
                    rng=random.Random(args.seed) if args.seed is not None else None,
                    notify=log_notification,
                )
                logger.info(
                    "Draw for group {id} ({year}) done after {attempts} attempt(s)",
                    id=group.id,
                    year=result.year,
                    attempts=result.attempts,
                )
            elif args.command == "members":
                for user in draw.list_members(session, group):
                    logger.info("{id}: {name}", id=user.id, name=user.name)
            elif args.command == "wish":
                draw.add_wishlist_item(session, group, args.user_id, args.text)
                logger.info("Wishlist item added for user {id}", id=args.user_id)
            elif args.command == "show":
                mine = draw.get_my_assignment(session, group, args.user_id, args.year)
                if mine is None:
                    logger.info("No assignment yet for user {id}", id=args.user_id)
                else:
                    log_notification(repo.get_user_by_id(session, args.user_id), mine.receiver, mine.wishlist)
    except (draw.AssignmentError, draw.ExclusionError, draw.WishlistError) as exc:
        logger.error("{error}", error=str(exc))
        return 1

    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
