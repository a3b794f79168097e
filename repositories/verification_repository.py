"""
Verification code repository: the only code that touches `verification-codes`.

The conditional primitives (increment_attempts, mark_verified,
delete_if_matches) carry the expected ``attempts`` value in their filter, so a
caller acting on a stale read simply gets ``None``/``False`` back and must
re-read. That is what keeps the attempt cap and the expiry cap enforceable
when two requests race on the same code.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError

from schemas.models.verification import VerificationCodeDoc

VERIFICATION_COLLECTION = "verification-codes"


class VerificationRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_pending(self, user_id: ObjectId, verification_type: str) -> Optional[VerificationCodeDoc]:
        return VerificationCodeDoc.from_mongo(
            await self._col.find_one(
                {"user_id": user_id, "type": verification_type, "verified": False}
            )
        )

    async def list_pending(self, user_id: ObjectId) -> list[VerificationCodeDoc]:
        cursor = self._col.find({"user_id": user_id, "verified": False}).sort("type", 1)
        return [VerificationCodeDoc.from_mongo(doc) for doc in await cursor.to_list(length=None)]

    async def replace_pending(self, doc: VerificationCodeDoc) -> ObjectId:
        """Delete every record for (user_id, type), then insert *doc*.

        The partial unique index on pending (user_id, type) rejects the insert
        if a concurrent issue slipped in between; that racer's record is
        superseded as well and the insert retried once.
        """
        selector = {"user_id": doc.user_id, "type": doc.type}
        await self._col.delete_many(selector)
        try:
            result = await self._col.insert_one(doc.to_mongo())
        except DuplicateKeyError:
            await self._col.delete_many(selector)
            result = await self._col.insert_one(doc.to_mongo())
        return result.inserted_id

    async def increment_attempts(
        self, code_id: ObjectId, expected_attempts: int, now: datetime
    ) -> Optional[VerificationCodeDoc]:
        """+1 attempt, only if still pending, unexpired and unchanged since read."""
        doc = await self._col.find_one_and_update(
            {
                "_id": code_id,
                "attempts": expected_attempts,
                "verified": False,
                "expires_at": {"$gt": now},
            },
            {"$inc": {"attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return VerificationCodeDoc.from_mongo(doc)

    async def mark_verified(
        self, code_id: ObjectId, expected_attempts: int, now: datetime
    ) -> Optional[VerificationCodeDoc]:
        doc = await self._col.find_one_and_update(
            {
                "_id": code_id,
                "attempts": expected_attempts,
                "verified": False,
                "expires_at": {"$gt": now},
            },
            {"$set": {"verified": True, "verified_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return VerificationCodeDoc.from_mongo(doc)

    async def delete(self, code_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": code_id})
        return result.deleted_count == 1

    async def delete_if_matches(self, code_id: ObjectId, expected_attempts: Optional[int] = None) -> bool:
        """Delete the record only while it is still pending (and, when given,
        still at *expected_attempts*)."""
        selector: dict = {"_id": code_id, "verified": False}
        if expected_attempts is not None:
            selector["attempts"] = expected_attempts
        result = await self._col.delete_one(selector)
        return result.deleted_count == 1

    async def delete_pending_for_user(self, user_id: ObjectId) -> int:
        result = await self._col.delete_many({"user_id": user_id, "verified": False})
        return result.deleted_count
