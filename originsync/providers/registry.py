from __future__ import annotations

import logging
from typing import Any, Callable

from originsync.providers.base import Adapter

AdapterFactory = Callable[..., Adapter]


class AdapterRegistry:
    """Maps a configured provider key to the adapter class that serves it."""

    def __init__(self, kind: str, logger: logging.Logger | None = None) -> None:
        self.kind = kind
        self._logger = logger or logging.getLogger(__name__)
        self._factories: dict[str, AdapterFactory] = {}

    def register(self, key: str, factory: AdapterFactory) -> None:
        self._factories[key.lower()] = factory

    def keys(self) -> list[str]:
        return sorted(self._factories)

    def create(self, key: str, **kwargs: Any) -> Adapter | None:
        factory = self._factories.get((key or "").lower())
        if factory is None:
            self._logger.warning(
                "Unknown %s provider %r, skipping. Known providers: %s",
                self.kind,
                key,
                ", ".join(self.keys()) or "none",
            )
            return None
        return factory(**kwargs)
