# Models package init
"""
Snipply Backend — ORM Models
=============================

Importing this package registers every table on `Base.metadata`
(Alembic autogenerate and `create_tables` rely on it).
"""

from snipply.models.follow import Follow
from snipply.models.notification import NOTIFICATION_NEW_SNIPPET, Notification
from snipply.models.snippet import Snippet, SnippetLike, SnippetView
from snipply.models.user import RANK_ADMIN, RANK_DEFAULT, USER_RANKS, User

__all__ = [
    "Follow",
    "Notification",
    "NOTIFICATION_NEW_SNIPPET",
    "RANK_ADMIN",
    "RANK_DEFAULT",
    "Snippet",
    "SnippetLike",
    "SnippetView",
    "USER_RANKS",
    "User",
]
