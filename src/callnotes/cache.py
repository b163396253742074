from __future__ import annotations

import logging
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class TopicCache(Generic[T]):
    """Read-through cache of decoded collections, keyed by topic.

    A stale (invalidated) topic is simply absent; the next read runs the
    loader again. Concurrent reads of a stale topic may each load.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}

    def get_or_load(self, topic: str, loader: Callable[[], T]) -> T:
        value = self._values.get(topic, _MISSING)
        if value is _MISSING:
            logger.debug("Cache miss for %s", topic)
            value = loader()
            self._values[topic] = value
        return value

    def peek(self, topic: str, default: Any = None) -> Any:
        return self._values.get(topic, default)

    def put(self, topic: str, value: T) -> None:
        self._values[topic] = value

    def invalidate(self, topic: str) -> None:
        self._values.pop(topic, None)

    def invalidate_all(self) -> None:
        self._values.clear()

    def __contains__(self, topic: object) -> bool:
        return topic in self._values
