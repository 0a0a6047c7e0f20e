from __future__ import annotations
from collections import OrderedDict
import hashlib, json, threading
from typing import Any, Optional

class LRUCache:
    def __init__(self, capacity: int = 256):
        self.capacity = capacity
        self.store = OrderedDict()
        self.lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self.lock:
            if key in self.store:
                self.store.move_to_end(key)
                self.hits += 1
                return self.store[key]
            self.misses += 1
            return None

    def set(self, key: str, value: Any):
        if self.capacity <= 0:
            return
        with self.lock:
            self.store[key] = value
            self.store.move_to_end(key)
            if len(self.store) > self.capacity:
                self.store.popitem(last=False)

    def clear(self):
        with self.lock:
            self.store.clear()
            self.hits = self.misses = 0

    def __len__(self) -> int:
        return len(self.store)

    def stats(self) -> dict:
        return {"size": len(self.store), "capacity": self.capacity, "hits": self.hits, "misses": self.misses}


def content_key(kind: str, *parts: Any) -> str:
    """sha256 over canonical JSON of (kind, parts); floats keep full repr so keys are exact."""
    blob = json.dumps([kind, *parts], sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()
