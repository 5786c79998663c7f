from .change_feed import ChangeFeed
from .message_repository import MessageRepository
from .thesis_repository import ThesisRepository, ThesisSnapshot, prune_versions
from .user_repository import (
    ensure_users_table,
    find_user_by_email,
    find_user_by_id,
    list_users,
    seed_demo_profiles,
)

__all__ = [
    "ChangeFeed",
    "MessageRepository",
    "ThesisRepository",
    "ThesisSnapshot",
    "prune_versions",
    "ensure_users_table",
    "find_user_by_email",
    "find_user_by_id",
    "list_users",
    "seed_demo_profiles",
]
