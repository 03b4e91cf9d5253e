# fittrack/db/memory.py
# In-process EntityStore for local runs (STORE_BACKEND=memory) and tests.
# Every call awaits once before touching data, so concurrent requests interleave
# at the same points they would against Mongo.
from __future__ import annotations

import asyncio
import copy
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from fittrack.db.store import EntityStore, Group, Query, SortSpec


def _compare(op: str, value: Any, arg: Any) -> bool:
    if op == "$in":
        return value in arg
    if op == "$ne":
        return value != arg
    if value is None or arg is None:
        return False
    try:
        if op == "$gte":
            return value >= arg
        if op == "$gt":
            return value > arg
        if op == "$lte":
            return value <= arg
        if op == "$lt":
            return value < arg
    except TypeError:
        return False
    raise ValueError(f"unsupported operator: {op}")


def matches(doc: Dict[str, Any], flt: Dict[str, Any]) -> bool:
    for key, cond in flt.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
            continue

        value = doc.get(key)
        if isinstance(cond, re.Pattern):
            if not isinstance(value, str) or not cond.search(value):
                return False
        elif isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not all(_compare(op, value, arg) for op, arg in cond.items()):
                return False
        elif value != cond:
            return False
    return True


def sort_docs(docs: List[Dict[str, Any]], sort: SortSpec) -> List[Dict[str, Any]]:
    # Mongo order: missing/null sorts first ascending
    out = list(docs)
    for field_name, direction in reversed(sort):
        out.sort(
            key=lambda d: (d.get(field_name) is not None, d.get(field_name) if d.get(field_name) is not None else 0),
            reverse=direction < 0,
        )
    return out


def _reduce(op: str, field_name: Optional[str], docs: List[Dict[str, Any]]) -> Any:
    if op == "count":
        return len(docs)
    if op == "count_if":
        return sum(1 for d in docs if d.get(field_name))
    values = [d.get(field_name) for d in docs if isinstance(d.get(field_name), (int, float)) and not isinstance(d.get(field_name), bool)]
    if op == "sum":
        return sum(values)
    if op == "avg":
        return sum(values) / len(values) if values else None
    raise ValueError(f"unknown reducer: {op}")


class MemoryStore(EntityStore):
    def __init__(self, unique: Optional[Dict[str, Iterable[str]]] = None) -> None:
        self._data: Dict[str, Dict[ObjectId, Dict[str, Any]]] = {}
        self._unique = {name: tuple(fields) for name, fields in (unique or {}).items()}

    def _col(self, collection: str) -> Dict[ObjectId, Dict[str, Any]]:
        return self._data.setdefault(collection, {})

    def _check_unique(self, collection: str, doc: Dict[str, Any], own_id: Optional[ObjectId] = None) -> None:
        for field_name in self._unique.get(collection, ()):
            value = doc.get(field_name)
            if value is None:
                continue  # sparse
            for other_id, other in self._col(collection).items():
                if other_id != own_id and other.get(field_name) == value:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {collection} dup key: {{ {field_name}: {value!r} }}",
                        code=11000,
                        details={"keyValue": {field_name: value}},
                    )

    async def find(self, collection: str, query: Query) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        docs = [d for d in self._col(collection).values() if matches(d, query.filter)]
        docs = sort_docs(docs, query.sort)
        docs = docs[query.skip:]
        if query.limit:
            docs = docs[: query.limit]
        return copy.deepcopy(docs)

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        for doc in self._col(collection).values():
            if matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def count(self, collection: str, filter: Dict[str, Any]) -> int:
        await asyncio.sleep(0)
        return sum(1 for d in self._col(collection).values() if matches(d, filter))

    async def create(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self._check_unique(collection, doc)
        self._col(collection)[doc["_id"]] = doc
        return copy.deepcopy(doc)

    async def update(self, collection: str, id: ObjectId, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        current = self._col(collection).get(id)
        if current is None:
            return None
        merged = {**current, **copy.deepcopy(fields)}
        self._check_unique(collection, merged, own_id=id)
        self._col(collection)[id] = merged
        return copy.deepcopy(merged)

    async def delete(self, collection: str, id: ObjectId) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        return self._col(collection).pop(id, None)

    async def aggregate(self, collection: str, group: Group) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        buckets: Dict[Any, List[Dict[str, Any]]] = {}
        for doc in self._col(collection).values():
            if matches(doc, group.match):
                key = doc.get(group.key) if group.key else None
                buckets.setdefault(key, []).append(doc)

        rows: List[Dict[str, Any]] = []
        for key, docs in buckets.items():
            row: Dict[str, Any] = {"_id": key}
            for name, (op, field_name) in group.reducers.items():
                row[name] = _reduce(op, field_name, docs)
            rows.append(row)

        rows = sort_docs(rows, group.sort)
        if group.limit:
            rows = rows[: group.limit]
        return rows

    async def ping(self) -> None:
        return None

