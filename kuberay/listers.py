"""Read-only views over an in-memory cache of Ray resources."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from typing import Any, Union

__all__ = [
    "GROUP",
    "NotFoundError",
    "Indexer",
    "Lister",
    "NamespaceLister",
    "ray_cluster_lister",
    "ray_job_lister",
    "ray_service_lister",
]

GROUP = "ray.io"

Selector = Union[None, Mapping[str, str], Callable[[Mapping[str, str]], bool]]


class NotFoundError(LookupError):
    """Raised when a named object is not in the cache."""

    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource}.{GROUP} "{name}" not found')
        self.resource = resource
        self.name = name


def _key(obj: Any) -> str:
    meta = obj.metadata
    return f"{meta.namespace}/{meta.name}" if meta.namespace else meta.name


def _matches(selector: Selector, labels: Mapping[str, str]) -> bool:
    if selector is None:
        return True
    if callable(selector):
        return bool(selector(labels))
    return all(labels.get(k) == v for k, v in selector.items())


class Indexer:
    """Thread-safe store of objects keyed by "namespace/name"."""

    def __init__(self) -> None:
        self._items: dict[str, Any] = {}
        self._lock = threading.Lock()

    def add(self, obj: Any) -> None:
        """Insert the object, replacing any with the same key."""
        with self._lock:
            self._items[_key(obj)] = obj

    def delete(self, obj: Any) -> None:
        with self._lock:
            self._items.pop(_key(obj), None)

    def get_by_key(self, key: str) -> Any | None:
        with self._lock:
            return self._items.get(key)

    def list(self) -> list[Any]:
        with self._lock:
            return list(self._items.values())


class Lister:
    """Lists objects of one resource across all namespaces."""

    def __init__(self, indexer: Indexer, resource: str) -> None:
        self.indexer = indexer
        self.resource = resource

    def list(self, selector: Selector = None) -> list[Any]:
        """Return all objects whose labels match the selector."""
        return [o for o in self.indexer.list() if _matches(selector, o.metadata.labels)]

    def namespaced(self, namespace: str) -> NamespaceLister:
        return NamespaceLister(self.indexer, self.resource, namespace)


class NamespaceLister:
    """Lists and gets objects of one resource within a namespace."""

    def __init__(self, indexer: Indexer, resource: str, namespace: str) -> None:
        self.indexer = indexer
        self.resource = resource
        self.namespace = namespace

    def list(self, selector: Selector = None) -> list[Any]:
        """Return the namespace's objects whose labels match the selector."""
        return [
            o
            for o in self.indexer.list()
            if (not self.namespace or o.metadata.namespace == self.namespace)
            and _matches(selector, o.metadata.labels)
        ]

    def get(self, name: str) -> Any:
        """Return the named object; raise NotFoundError if it is not cached."""
        obj = self.indexer.get_by_key(f"{self.namespace}/{name}")
        if obj is None:
            raise NotFoundError(self.resource, name)
        return obj


def ray_cluster_lister(indexer: Indexer) -> Lister:
    return Lister(indexer, "raycluster")


def ray_job_lister(indexer: Indexer) -> Lister:
    return Lister(indexer, "rayjob")


def ray_service_lister(indexer: Indexer) -> Lister:
    return Lister(indexer, "rayservice")