"""In-memory store standing in for the database.

Every entity collection is a list of plain dict records. Relations are
numeric ids resolved by linear search, so the helpers here stay simple.
"""
from flask import current_app

from .errors import NotFound
from .models import COLLECTIONS

_EXTENSION_KEY = "loandesk_store"


class MemoryStore:
    def __init__(self):
        for name in COLLECTIONS:
            setattr(self, name, [])

    def collection(self, name):
        if name not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {name}")
        return getattr(self, name)

    def next_id(self, name):
        rows = self.collection(name)
        return max((row["id"] for row in rows), default=0) + 1

    def insert(self, name, record):
        record = dict(record)
        record["id"] = self.next_id(name)
        self.collection(name).append(record)
        return record

    def get(self, name, record_id):
        for row in self.collection(name):
            if row["id"] == record_id:
                return row
        return None

    def require(self, name, record_id, label=None):
        row = self.get(name, record_id)
        if row is None:
            raise NotFound(f"{label or name} {record_id} not found")
        return row

    def where(self, name, **filters):
        return [
            row for row in self.collection(name)
            if all(row.get(k) == v for k, v in filters.items())
        ]

    def remove(self, name, predicate):
        rows = self.collection(name)
        kept = [row for row in rows if not predicate(row)]
        removed = len(rows) - len(kept)
        rows[:] = kept
        return removed

    def clear(self):
        for name in COLLECTIONS:
            self.collection(name).clear()

    def counts(self):
        return {name: len(self.collection(name)) for name in COLLECTIONS}


def init_store(app, store=None):
    store = store or MemoryStore()
    app.extensions[_EXTENSION_KEY] = store
    return store


def get_store():
    return current_app.extensions[_EXTENSION_KEY]
