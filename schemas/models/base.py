"""
Shared pieces of the document models.

Repositories never hand raw dicts to services: every document read from
MongoDB goes through ``from_mongo`` and every insert through ``to_mongo``.
Ids arrive from the outside as strings (JWT ``sub``, path parameters), so
``to_object_id`` is the one place that decides whether such a string names a
document at all.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler
from pydantic_core import core_schema


def to_object_id(value: Any) -> Optional[ObjectId]:
    """ObjectId for *value*, or ``None`` when it cannot be one."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class PyObjectId(ObjectId):
    """ObjectId field type: accepts ObjectId or its hex string, dumps as str."""

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        oid = to_object_id(v)
        if oid is None:
            raise ValueError(f"Invalid ObjectId: {v!r}")
        return oid


class MongoBaseModel(BaseModel):
    """Document with an optional ``_id`` exposed as ``id``; enums stored by value."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_default=True,
        extra="ignore",
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Insert-ready dict keyed by ``_id``; a missing id is left to MongoDB."""
        doc = self.model_dump(by_alias=True)
        if doc.get("_id") is None:
            doc.pop("_id", None)
        return doc

    @classmethod
    def from_mongo(cls, doc: Optional[dict]):
        if doc is None:
            return None
        return cls.model_validate(doc)
