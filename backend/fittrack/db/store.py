# fittrack/db/store.py
# Persistence contract for the users/workouts collections + the motor implementation.
#
# Filters use the Mongo query subset both backends understand:
#   {field: value}                          equality
#   {field: {"$gte": a, "$lte": b}}          range ($gt/$lt/$ne/$in too)
#   {field: re.compile("...", re.I)}         regex / substring
#   {"$or": [filter, ...]}
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

USERS = "users"
WORKOUTS = "workouts"

ASC = 1
DESC = -1

SortSpec = List[Tuple[str, int]]


@dataclass
class Query:
    """Filtered, sorted, paginated find. limit=0 means no limit."""

    filter: Dict[str, Any] = field(default_factory=dict)
    sort: SortSpec = field(default_factory=list)
    skip: int = 0
    limit: int = 0


# reducer ops: "count" (field ignored), "sum", "avg", "count_if" (field truthy)
Reducer = Tuple[str, Optional[str]]


@dataclass
class Group:
    """
    $match -> $group -> $sort -> $limit.
    Output rows look like {"_id": <key value or None>, <reducer name>: value, ...}.
    key=None groups the whole match set into one row (no row when nothing matched).
    """

    key: Optional[str]
    reducers: Dict[str, Reducer]
    match: Dict[str, Any] = field(default_factory=dict)
    sort: SortSpec = field(default_factory=list)
    limit: int = 0


class EntityStore(ABC):
    @abstractmethod
    async def find(self, collection: str, query: Query) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    async def find_by_id(self, collection: str, id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.find_one(collection, {"_id": id})

    @abstractmethod
    async def count(self, collection: str, filter: Dict[str, Any]) -> int: ...

    @abstractmethod
    async def create(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    async def update(self, collection: str, id: ObjectId, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def delete(self, collection: str, id: ObjectId) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def aggregate(self, collection: str, group: Group) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def ping(self) -> None: ...


def _reducer_expr(op: str, field_name: Optional[str]) -> Dict[str, Any]:
    if op == "count":
        return {"$sum": 1}
    if op == "sum":
        return {"$sum": f"${field_name}"}
    if op == "avg":
        return {"$avg": f"${field_name}"}
    if op == "count_if":
        return {"$sum": {"$cond": [f"${field_name}", 1, 0]}}
    raise ValueError(f"unknown reducer: {op}")


def group_pipeline(group: Group) -> List[Dict[str, Any]]:
    pipeline: List[Dict[str, Any]] = []
    if group.match:
        pipeline.append({"$match": group.match})
    stage: Dict[str, Any] = {"_id": f"${group.key}" if group.key else None}
    for name, (op, field_name) in group.reducers.items():
        stage[name] = _reducer_expr(op, field_name)
    pipeline.append({"$group": stage})
    if group.sort:
        pipeline.append({"$sort": dict(group.sort)})
    if group.limit:
        pipeline.append({"$limit": group.limit})
    return pipeline


class MongoStore(EntityStore):
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db

    async def find(self, collection: str, query: Query) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(query.filter)
        if query.sort:
            cursor = cursor.sort(query.sort)
        if query.skip:
            cursor = cursor.skip(query.skip)
        if query.limit:
            cursor = cursor.limit(query.limit)
        return await cursor.to_list(length=None)

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.db[collection].find_one(filter)

    async def count(self, collection: str, filter: Dict[str, Any]) -> int:
        return await self.db[collection].count_documents(filter)

    async def create(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        result = await self.db[collection].insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def update(self, collection: str, id: ObjectId, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.db[collection].find_one_and_update(
            {"_id": id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, collection: str, id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self.db[collection].find_one_and_delete({"_id": id})

    async def aggregate(self, collection: str, group: Group) -> List[Dict[str, Any]]:
        cursor = self.db[collection].aggregate(group_pipeline(group))
        return await cursor.to_list(length=None)

    async def ping(self) -> None:
        await self.db.command("ping")
