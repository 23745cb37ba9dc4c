"""One-shot seeding of the Users collection from the allow-list.

Runs when a session is first authorized. The existence check makes it
idempotent: once any user record exists nothing is ever written again.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.bizops.schemas import Collection, User, utc_now_iso
from src.bizops.store.base import RealtimeStore, record_path

logger = structlog.get_logger(__name__)


def default_users(allowed_emails: Sequence[str]) -> list[User]:
    """One user per allow-listed address: ``user_1``, ``user_2``, ...

    The display name is the local part of the address.
    """
    created_at = utc_now_iso()
    return [
        User(
            id=f"user_{index}",
            email=email,
            name=email.split("@")[0],
            created_at=created_at,
        )
        for index, email in enumerate(allowed_emails, start=1)
    ]


async def seed_users(store: RealtimeStore, allowed_emails: Sequence[str]) -> int:
    """Create default users when the collection is empty.

    Returns:
        Number of user records written (0 when users already exist).
    """
    existing = await store.read_once(Collection.USERS.value)
    if existing:
        logger.debug("seeding.skipped", reason="users_exist")
        return 0

    users = default_users(allowed_emails)
    for user in users:
        await store.write_at_path(record_path(Collection.USERS.value, user.id), user.to_store())

    logger.info("seeding.users_created", count=len(users))
    return len(users)
