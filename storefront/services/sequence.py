"""
Human-facing sequential identifiers (productId, orderId).

The next id is one more than the highest id of that kind in the store. Reading
the maximum and adding one is not atomic, so the maximum is folded into a
per-kind counter document (`$max`) and the counter is then advanced with an
atomic `$inc`. Concurrent callers always get distinct ids; a failed insert
after allocation leaves a gap instead of a duplicate.
"""
from typing import Dict, Tuple
from pymongo import DESCENDING, ReturnDocument

from storefront.db.client import DocumentStore

PRODUCT = "product"
ORDER = "order"


class SequenceGenerator:
    def __init__(self, store: DocumentStore):
        self.store = store
        # kind -> (id field, store collections holding ids of that kind)
        self._sources: Dict[str, Tuple[str, tuple]] = {
            PRODUCT: ("productId", ("products",)),
            # delivered orders keep their number, so they count too
            ORDER: ("orderId", ("orders", "delivered")),
        }

    def current_max(self, kind: str) -> int:
        field, collections = self._source(kind)
        highest = 0
        with self.store.guard(f"read highest {field}"):
            for name in collections:
                top = getattr(self.store, name).find_one({}, projection={field: 1}, sort=[(field, DESCENDING)])
                if top and int(top.get(field) or 0) > highest:
                    highest = int(top[field])
        return highest

    def next_id(self, kind: str) -> int:
        field, _ = self._source(kind)
        highest = self.current_max(kind)
        with self.store.guard(f"generate {field}"):
            self.store.counters.update_one({"_id": kind}, {"$max": {"seq": highest}}, upsert=True)
            counter = self.store.counters.find_one_and_update(
                {"_id": kind},
                {"$inc": {"seq": 1}},
                return_document=ReturnDocument.AFTER,
            )
        return int(counter["seq"])

    def _source(self, kind: str) -> Tuple[str, tuple]:
        try:
            return self._sources[kind]
        except KeyError:
            raise ValueError(f"Unknown sequence kind: {kind!r}") from None
