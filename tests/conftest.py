"""Shared fixtures: an in-memory stand-in for the Motor database and a scripted sandbox."""

import asyncio
import copy
import itertools
from types import SimpleNamespace

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.models.execution import ExecutionResult

_ids = itertools.count(1)


def _matches(doc, query):
    for key, cond in query.items():
        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, operand in cond.items():
                if op == "$in" and value not in operand:
                    return False
                if op == "$nin" and value in operand:
                    return False
                if op == "$lt" and not (value is not None and value < operand):
                    return False
                if op == "$gt" and not (value is not None and value > operand):
                    return False
        elif value != cond:
            return False
    return True


def _project(doc, projection):
    doc = copy.deepcopy(doc)
    if not projection:
        return doc
    included = [k for k, v in projection.items() if v and k != "_id"]
    if included:
        doc = {k: doc[k] for k in included if k in doc}
    elif projection.get("_id") == 0:
        doc.pop("_id", None)
    return doc


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    async def to_list(self, length=None):
        return self._docs[:length] if length else self._docs


class FakeCollection:
    """Implements the subset of AsyncIOMotorCollection the services use."""

    def __init__(self, name):
        self.name = name
        self.docs = []
        self.unique_keys = []
        self.snapshots = []  # copy of each document after every update
        self.fail_on = {}  # method name -> exception to raise

    def _maybe_fail(self, method):
        if method in self.fail_on:
            raise self.fail_on[method]

    async def create_index(self, keys, unique=False, **kwargs):
        if unique:
            self.unique_keys.append(tuple(k for k, _ in keys))
        return "_".join(k for k, _ in keys)

    async def insert_one(self, doc):
        self._maybe_fail("insert_one")
        for fields in self.unique_keys:
            if any(all(d.get(f) == doc.get(f) for f in fields) for d in self.docs):
                raise DuplicateKeyError(f"duplicate key on {fields}")
        doc["_id"] = next(_ids)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query, projection=None):
        self._maybe_fail("find_one")
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def find(self, query, projection=None):
        return FakeCursor([_project(d, projection) for d in self.docs if _matches(d, query)])

    def _apply(self, doc, update):
        for key, value in update.get("$set", {}).items():
            doc[key] = copy.deepcopy(value)
        for key, value in update.get("$max", {}).items():
            if doc.get(key) is None or value > doc[key]:
                doc[key] = value
        self.snapshots.append(copy.deepcopy(doc))

    async def update_one(self, query, update):
        self._maybe_fail("update_one")
        for doc in self.docs:
            if _matches(doc, query):
                self._apply(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, query, update, projection=None,
                                  return_document=ReturnDocument.BEFORE):
        self._maybe_fail("find_one_and_update")
        for doc in self.docs:
            if _matches(doc, query):
                before = _project(doc, projection)
                self._apply(doc, update)
                return _project(doc, projection) if return_document == ReturnDocument.AFTER else before
        return None

    async def delete_many(self, query):
        self._maybe_fail("delete_many")
        keep = [d for d in self.docs if not _matches(d, query)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


class ScriptedSandbox:
    """
    Stand-in for ExecutionClient. `behaviour(code, language, stdin)` returns an
    ExecutionResult; tracks calls and the peak number of concurrent calls.
    """

    def __init__(self, behaviour=None, delay=0.0):
        self.behaviour = behaviour or (lambda code, language, stdin: ExecutionResult(success=True, output=stdin))
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def execute(self, code, language, stdin="", run_timeout_ms=None):
        self.calls.append((code, language, stdin))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self.behaviour(code, language, stdin)
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_db():
    database = FakeDatabase()
    from app.database import ensure_indexes
    asyncio.run(ensure_indexes(database))
    return database


@pytest.fixture
def sandbox():
    return ScriptedSandbox()
