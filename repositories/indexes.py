"""
Index bootstrap, run once from the app lifespan.

- users: unique email, unique phone_number, multikey on active_refresh_tokens
  (refresh rotation looks users up by token digest)
- verification-codes: partial unique (user_id, type) over pending records and
  a TTL index that sweeps codes once expires_at passes
"""

from __future__ import annotations

from pymongo import ASCENDING
from pymongo.asynchronous.database import AsyncDatabase

from repositories.user_repository import USERS_COLLECTION
from repositories.verification_repository import VERIFICATION_COLLECTION
from shared.logging import get_logger

log = get_logger(__name__)


async def ensure_indexes(db: AsyncDatabase) -> None:
    users = db[USERS_COLLECTION]
    await users.create_index([("email", ASCENDING)], unique=True)
    await users.create_index([("phone_number", ASCENDING)], unique=True)
    await users.create_index([("active_refresh_tokens", ASCENDING)])

    codes = db[VERIFICATION_COLLECTION]
    await codes.create_index(
        [("user_id", ASCENDING), ("type", ASCENDING)],
        unique=True,
        partialFilterExpression={"verified": False},
        name="one_pending_code_per_type",
    )
    await codes.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

    log.info("indexes_ensured", collections=[USERS_COLLECTION, VERIFICATION_COLLECTION])
