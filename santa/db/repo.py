from __future__ import annotations

import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, func, select

from santa.db.models import (
    Assignment,
    Exclusion,
    Group,
    User,
    WishlistItem,
    group_members,
)
from santa.services.assignment import ExclusionRule, Pairing


def get_user_by_id(session, user_id: int) -> Optional[User]:
    return session.scalar(select(User).where(User.id == user_id))


def get_user_by_email(session, email: str) -> Optional[User]:
    return session.scalar(select(User).where(User.email == email))


def create_user(session, name: str, email: Optional[str] = None) -> User:
    user = User(name=name, email=email)
    session.add(user)
    session.flush()
    return user


def get_group_by_id(session, group_id: int) -> Optional[Group]:
    return session.scalar(select(Group).where(Group.id == group_id))


def create_group(session, name: str, year: Optional[int] = None) -> Group:
    group = Group(name=name)
    if year is not None:
        group.year = year
    session.add(group)
    session.flush()
    return group


def is_user_in_group(session, user_id: int, group_id: int) -> bool:
    return session.scalar(
        select(func.count())
        .select_from(group_members)
        .where(and_(group_members.c.user_id == user_id, group_members.c.group_id == group_id))
    ) > 0


def add_user_to_group(session, user_id: int, group_id: int) -> bool:
    if is_user_in_group(session, user_id, group_id):
        return False
    session.execute(group_members.insert().values(user_id=user_id, group_id=group_id))
    return True


def list_group_member_ids(session, group_id: int) -> List[int]:
    return list(
        session.scalars(
            select(group_members.c.user_id)
            .where(group_members.c.group_id == group_id)
            .distinct()
            .order_by(group_members.c.user_id)
        ).all()
    )


def list_users(session, user_ids: Iterable[int]) -> List[User]:
    ids = list(user_ids)
    if not ids:
        return []
    return list(session.scalars(select(User).where(User.id.in_(ids)).order_by(User.id)).all())


def add_exclusion(session, group_id: int, user_a_id: int, user_b_id: int, mutual: bool) -> Exclusion:
    exclusion = Exclusion(group_id=group_id, user_a_id=user_a_id, user_b_id=user_b_id, mutual=mutual)
    session.add(exclusion)
    session.flush()
    return exclusion


def list_exclusion_rules(session, group_id: int) -> List[ExclusionRule]:
    rows = session.execute(
        select(Exclusion.user_a_id, Exclusion.user_b_id, Exclusion.mutual)
        .where(Exclusion.group_id == group_id)
        .order_by(Exclusion.id)
    ).all()
    return [ExclusionRule(row.user_a_id, row.user_b_id, bool(row.mutual)) for row in rows]


def clear_assignments(session, group_id: int, year: int) -> int:
    result = session.execute(
        delete(Assignment).where(and_(Assignment.group_id == group_id, Assignment.year == year))
    )
    return result.rowcount or 0


def create_assignments(
    session,
    group_id: int,
    year: int,
    pairings: Iterable[Pairing],
    notified_at: Optional[datetime.datetime] = None,
) -> List[Assignment]:
    rows = [
        Assignment(
            group_id=group_id,
            year=year,
            giver_user_id=giver_id,
            receiver_user_id=receiver_id,
            notified_at=notified_at,
        )
        for giver_id, receiver_id in pairings
    ]
    session.add_all(rows)
    session.flush()
    return rows


def list_assignments(session, group_id: int, year: int) -> List[Assignment]:
    return list(
        session.scalars(
            select(Assignment)
            .where(and_(Assignment.group_id == group_id, Assignment.year == year))
            .order_by(Assignment.id)
        ).all()
    )


def get_assignment_for_giver(session, group_id: int, year: int, giver_user_id: int) -> Optional[Assignment]:
    return session.scalar(
        select(Assignment).where(
            and_(
                Assignment.group_id == group_id,
                Assignment.year == year,
                Assignment.giver_user_id == giver_user_id,
            )
        )
    )


def list_wishlist_items(session, group_id: int, user_id: int) -> List[WishlistItem]:
    return list(
        session.scalars(
            select(WishlistItem)
            .where(and_(WishlistItem.group_id == group_id, WishlistItem.user_id == user_id))
            .order_by(WishlistItem.id)
        ).all()
    )


def add_wishlist_item(session, group_id: int, user_id: int, text: str) -> WishlistItem:
    item = WishlistItem(group_id=group_id, user_id=user_id, text=text)
    session.add(item)
    session.flush()
    return item
