"""
User repository: the only code that touches the `users` collection.

Every mutation is a single field-operator update ($set/$inc/$unset/$push/
$pull) so concurrent requests never overwrite each other's changes with a
stale read-modify-write of the whole document.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.base import to_object_id
from schemas.models.user import UserDoc

USERS_COLLECTION = "users"

_VERIFIED_FIELDS = {"email": "email_verified", "phone": "phone_verified"}


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_by_id(self, user_id) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return UserDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._col.find_one({"email": email}))

    async def find_by_phone(self, phone_number: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(
            await self._col.find_one({"phone_number": phone_number})
        )

    async def find_conflicting(self, email: str, phone_number: str) -> Optional[UserDoc]:
        """Return any user already holding *email* or *phone_number*."""
        return UserDoc.from_mongo(
            await self._col.find_one(
                {"$or": [{"email": email}, {"phone_number": phone_number}]}
            )
        )

    async def create(self, user: UserDoc) -> ObjectId:
        """Insert *user*. Raises ``pymongo.errors.DuplicateKeyError`` when the
        email or phone number is already taken."""
        result = await self._col.insert_one(user.to_mongo())
        return result.inserted_id

    # ── Lockout counters ────────────────────────────────────────────────────

    async def restart_failed_logins(self, user_id: ObjectId, now: datetime) -> bool:
        """Set the counter to 1 and drop the lock, only if the lock has elapsed."""
        result = await self._col.update_one(
            {"_id": user_id, "locked_until": {"$lte": now}},
            {
                "$set": {"failed_login_count": 1, "updated_at": now},
                "$unset": {"locked_until": ""},
            },
        )
        return result.modified_count == 1

    async def increment_failed_logins(self, user_id: ObjectId, now: datetime) -> Optional[int]:
        """Atomically add one failed attempt; returns the post-increment count."""
        doc = await self._col.find_one_and_update(
            {"_id": user_id},
            {"$inc": {"failed_login_count": 1}, "$set": {"updated_at": now}},
            projection={"failed_login_count": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        return int(doc.get("failed_login_count", 0))

    async def lock_until(self, user_id: ObjectId, until: datetime, now: datetime) -> bool:
        """Set ``locked_until`` unless a lock is already in force."""
        result = await self._col.update_one(
            {
                "_id": user_id,
                "$or": [{"locked_until": None}, {"locked_until": {"$lte": now}}],
            },
            {"$set": {"locked_until": until, "updated_at": now}},
        )
        return result.modified_count == 1

    async def clear_failed_logins(self, user_id: ObjectId, now: datetime) -> None:
        await self._col.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "failed_login_count": 0,
                    "last_login_at": now,
                    "updated_at": now,
                },
                "$unset": {"locked_until": ""},
            },
        )

    # ── Verification flags and password ─────────────────────────────────────

    async def mark_contact_verified(self, user_id: ObjectId, verification_type: str, now: datetime) -> bool:
        field = _VERIFIED_FIELDS.get(verification_type)
        if field is None:
            return False
        result = await self._col.update_one(
            {"_id": user_id}, {"$set": {field: True, "updated_at": now}}
        )
        return result.matched_count == 1

    async def set_password(self, user_id: ObjectId, password_hash: str, now: datetime) -> bool:
        """Replace the password hash and revoke every refresh token in one write.

        The lockout state is cleared too: a reset proves control of the account.
        """
        result = await self._col.update_one(
            {"_id": user_id},
            {
                "$set": {
                    "password_hash": password_hash,
                    "password_changed_at": now,
                    "active_refresh_tokens": [],
                    "failed_login_count": 0,
                    "updated_at": now,
                },
                "$unset": {"locked_until": ""},
            },
        )
        return result.matched_count == 1

    # ── Refresh-token set ───────────────────────────────────────────────────

    async def push_refresh_token(self, user_id: ObjectId, digest: str, max_tokens: int) -> bool:
        """Append *digest*, keeping only the newest *max_tokens* entries."""
        result = await self._col.update_one(
            {"_id": user_id},
            {
                "$push": {
                    "active_refresh_tokens": {"$each": [digest], "$slice": -max_tokens}
                }
            },
        )
        return result.matched_count == 1

    async def pull_refresh_token(self, user_id: ObjectId, digest: str) -> bool:
        result = await self._col.update_one(
            {"_id": user_id}, {"$pull": {"active_refresh_tokens": digest}}
        )
        return result.modified_count == 1

    async def take_refresh_token(self, digest: str) -> Optional[UserDoc]:
        """Remove *digest* from whichever user holds it and return that user.

        Two concurrent calls with the same token cannot both succeed: only one
        update matches while the digest is still present.
        """
        doc = await self._col.find_one_and_update(
            {"active_refresh_tokens": digest},
            {"$pull": {"active_refresh_tokens": digest}},
            return_document=ReturnDocument.AFTER,
        )
        return UserDoc.from_mongo(doc)

    async def clear_refresh_tokens(self, user_id: ObjectId) -> bool:
        result = await self._col.update_one(
            {"_id": user_id}, {"$set": {"active_refresh_tokens": []}}
        )
        return result.matched_count == 1
