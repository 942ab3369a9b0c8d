from __future__ import annotations

import datetime
import random
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from loguru import logger

from santa.db import Group, User, repo
from santa.services.assignment import (
    DEFAULT_MAX_RETRIES,
    INSUFFICIENT_PARTICIPANTS,
    SEARCH_EXHAUSTED,
    Pairing,
    compute_mapping,
    validate_mapping,
)

ADMIN_MESSAGES = {
    INSUFFICIENT_PARTICIPANTS: "Not enough participants: add more participants (at least 2) before running the draw.",
    SEARCH_EXHAUSTED: "No valid assignment was found: relax the exclusion constraints or retry the draw.",
}

Notifier = Callable[[User, User, List[str]], None]


class AssignmentError(RuntimeError):
    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason = reason


class ExclusionError(RuntimeError):
    pass


class WishlistError(RuntimeError):
    pass


@dataclass(frozen=True)
class DrawResult:
    group: Group
    year: int
    pairings: Tuple[Pairing, ...]
    attempts: int


@dataclass(frozen=True)
class MyAssignment:
    receiver: User
    wishlist: List[str]


def admin_message(reason: str) -> str:
    return ADMIN_MESSAGES.get(reason, f"Draw failed: {reason}")


def create_group(session, name: str, year: Optional[int] = None) -> Group:
    return repo.create_group(session, name, year)


def add_member(session, group: Group, name: str, email: Optional[str] = None) -> User:
    user = repo.get_user_by_email(session, email) if email else None
    if user is None:
        user = repo.create_user(session, name, email)
    repo.add_user_to_group(session, user.id, group.id)
    return user


def add_exclusion(session, group: Group, user_a_id: int, user_b_id: int, mutual: bool = False) -> None:
    if user_a_id == user_b_id:
        raise ExclusionError("A participant cannot be excluded from themselves.")
    for user_id in (user_a_id, user_b_id):
        if not repo.is_user_in_group(session, user_id, group.id):
            raise ExclusionError(f"User {user_id} is not a member of this group.")
    repo.add_exclusion(session, group.id, user_a_id, user_b_id, mutual)
    logger.bind(group_id=group.id, user_a_id=user_a_id, user_b_id=user_b_id, mutual=mutual).info(
        "Exclusion added"
    )


def add_wishlist_item(session, group: Group, user_id: int, text: str) -> None:
    if not repo.is_user_in_group(session, user_id, group.id):
        raise WishlistError(f"User {user_id} is not a member of this group.")
    text = text.strip()
    if not text:
        raise WishlistError("Wishlist item cannot be empty.")
    repo.add_wishlist_item(session, group.id, user_id, text)


def list_members(session, group: Group) -> List[User]:
    return repo.list_users(session, repo.list_group_member_ids(session, group.id))


def list_wishlist_items(session, group: Group, user_id: int) -> List[str]:
    return [item.text for item in repo.list_wishlist_items(session, group.id, user_id)]


def run_assignments(
    session,
    group: Group,
    year: Optional[int] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    rng: Optional[random.Random] = None,
    notify: Optional[Notifier] = None,
) -> DrawResult:
    """Draw and store the assignments of ``group`` for ``year``.

    Prior assignments for the same group and year are replaced only when the
    draw succeeds; on failure nothing is written and ``AssignmentError`` carries
    both an administrator-facing message and the engine's ``reason``.
    """
    year = year if year is not None else group.year
    member_ids = repo.list_group_member_ids(session, group.id)
    rules = repo.list_exclusion_rules(session, group.id)

    result = compute_mapping(member_ids, rules, max_retries=max_retries, rng=rng)
    if not result.ok:
        logger.bind(group_id=group.id, year=year, attempts=result.attempts).warning(
            "Draw failed: {reason}", reason=result.reason
        )
        raise AssignmentError(admin_message(result.reason), reason=result.reason)

    if not validate_mapping(member_ids, result.mapping, rules):
        raise AssignmentError("Draw produced an invalid assignment.")

    cleared = repo.clear_assignments(session, group.id, year)
    repo.create_assignments(
        session,
        group.id,
        year,
        result.mapping,
        notified_at=datetime.datetime.now(datetime.timezone.utc) if notify else None,
    )
    logger.bind(group_id=group.id, year=year, attempts=result.attempts, replaced=cleared).info(
        "Assignments generated"
    )

    if notify:
        users = {user.id: user for user in repo.list_users(session, member_ids)}
        for giver_id, receiver_id in result.mapping:
            notify(users[giver_id], users[receiver_id], list_wishlist_items(session, group, receiver_id))

    return DrawResult(group=group, year=year, pairings=result.mapping, attempts=result.attempts)


def get_my_assignment(session, group: Group, user_id: int, year: Optional[int] = None) -> Optional[MyAssignment]:
    year = year if year is not None else group.year
    assignment = repo.get_assignment_for_giver(session, group.id, year, user_id)
    if not assignment:
        return None
    receiver = repo.get_user_by_id(session, assignment.receiver_user_id)
    return MyAssignment(receiver=receiver, wishlist=list_wishlist_items(session, group, receiver.id))
