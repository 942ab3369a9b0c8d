from santa.db.models import (
    Assignment,
    Base,
    Exclusion,
    Group,
    User,
    WishlistItem,
    group_members,
)
from santa.db.session import SessionLocal, get_session, init_engine

__all__ = [
    "Assignment",
    "Base",
    "Exclusion",
    "Group",
    "User",
    "WishlistItem",
    "group_members",
    "SessionLocal",
    "get_session",
    "init_engine",
]
