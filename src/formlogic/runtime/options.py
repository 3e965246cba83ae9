"""
Dynamic options resolver.

Static option lists are returned unchanged. Dynamic options are fetched from
an injected OptionSource and cached under a key derived from the values of the
declared dependency fields, so a dependency change simply produces a new key;
no invalidation pass is needed.

Concurrent resolutions of the same key share one fetch. When two fetches for
a key overlap, the one that started last wins the cache slot.
"""

import asyncio
import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from formlogic.schemas.configuration import FieldDefinition, OptionItem
from formlogic.schemas.results import OptionsResult

logger = logging.getLogger(__name__)


class OptionSource(Protocol):
    """External collaborator that loads option lists."""

    async def fetch(
        self,
        source_type: str,
        source_config: Dict[str, Any],
        dependency_values: Dict[str, Any],
    ) -> List[OptionItem]:
        ...


@dataclass(frozen=True)
class _CacheEntry:
    options: Tuple[OptionItem, ...]
    started_at: float
    expires_at: float


class OptionsCache:
    """Bounded TTL cache of option lists.

    Reads never block on a fetch; writes for a key are serialized by a lock.
    The clock is injectable so TTL behavior can be tested without sleeping.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1024):
        self._clock = clock
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._inflight: Dict[str, "asyncio.Future[List[OptionItem]]"] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> Optional[List[OptionItem]]:
        """Cached options if still fresh."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return list(entry.options)

    def peek(self, key: str) -> Optional[List[OptionItem]]:
        """Cached options, stale or not."""
        with self._lock:
            entry = self._entries.get(key)
        return list(entry.options) if entry is not None else None

    def put(
        self,
        key: str,
        options: List[OptionItem],
        duration: float,
        started_at: Optional[float] = None,
    ) -> bool:
        """Store options for `duration` seconds.

        Args:
            key: Cache key
            options: Options to store
            duration: Time to live in seconds
            started_at: When the fetch producing `options` began; a result
                older than the stored entry is not adopted

        Returns:
            True if the entry was stored
        """
        now = self._clock()
        started_at = now if started_at is None else started_at
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None and started_at < existing.started_at:
                logger.debug(f"Discarding superseded options for key '{key}'")
                return False
            self._entries[key] = _CacheEntry(tuple(options), started_at, now + duration)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        return True

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or every entry when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[List[OptionItem]]],
        duration: float,
    ) -> Tuple[List[OptionItem], bool]:
        """Return fresh cached options or run (or join) a fetch for `key`.

        Returns:
            (options, from_cache)
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"Options cache hit: {key}")
            return cached, True

        with self._lock:
            task = self._inflight.get(key)
            if task is None:
                logger.debug(f"Options cache miss: {key}")
                task = asyncio.ensure_future(self._fetch_and_store(key, fetch, duration))
                self._inflight[key] = task
            else:
                logger.debug(f"Joining in-flight fetch: {key}")
        return list(await asyncio.shield(task)), False

    async def _fetch_and_store(
        self,
        key: str,
        fetch: Callable[[], Awaitable[List[OptionItem]]],
        duration: float,
    ) -> List[OptionItem]:
        started_at = self._clock()
        try:
            options = await fetch()
            self.put(key, options, duration, started_at)
            return options
        finally:
            with self._lock:
                if self._inflight.get(key) is asyncio.current_task():
                    del self._inflight[key]


class OptionsResolver:
    """Resolves a field's options through the cache and the option source."""

    def __init__(
        self,
        source: Optional[OptionSource] = None,
        cache: Optional[OptionsCache] = None,
        user_id: Optional[str] = None,
        default_duration: int = 300,
    ):
        self.source = source
        self.cache = cache if cache is not None else OptionsCache()
        self.user_id = user_id
        self.default_duration = default_duration

    def cache_key(self, field: FieldDefinition, form_data: Mapping[str, Any]) -> str:
        """Cache key: a pure function of field, dependency values and user."""
        dynamic = field.options.dynamic_options
        cache_config = dynamic.cache_config
        deps = {dep: form_data.get(dep) for dep in dynamic.dependencies}

        key = None
        if cache_config and cache_config.key_template:
            try:
                key = cache_config.key_template.format(
                    field_id=field.id, user_id=self.user_id or "", **deps
                )
            except (KeyError, IndexError, ValueError) as e:
                logger.warning(f"Bad key_template for '{field.id}', using default key: {e}")
        if key is None:
            key = f"{field.id}:{json.dumps(deps, sort_keys=True, default=str)}"
        if cache_config and cache_config.per_user:
            key = f"{key}|user={self.user_id or ''}"
        return key

    async def resolve(self, field: FieldDefinition, form_data: Mapping[str, Any]) -> OptionsResult:
        """Resolve options for a field.

        Source failures never propagate: they degrade to an empty list with a
        warning.
        """
        if field.options is None:
            return OptionsResult()
        if not field.options.is_dynamic:
            return OptionsResult(options=list(field.options.static_options or []))

        if self.source is None:
            message = f"No option source configured for '{field.id}'"
            logger.warning(message)
            return OptionsResult(warnings=[message])

        dynamic = field.options.dynamic_options
        key = self.cache_key(field, form_data)
        duration = (
            dynamic.cache_config.duration if dynamic.cache_config else self.default_duration
        )
        deps = {dep: form_data.get(dep) for dep in dynamic.dependencies}

        async def fetch() -> List[OptionItem]:
            raw = await self.source.fetch(dynamic.source_type, dict(dynamic.source_config), deps)
            return [
                item if isinstance(item, OptionItem) else OptionItem.model_validate(item)
                for item in raw
            ]

        try:
            options, from_cache = await self.cache.get_or_fetch(key, fetch, duration)
        except Exception as e:
            logger.warning(f"Option source '{dynamic.source_type}' failed for '{field.id}': {e}")
            return OptionsResult(warnings=[f"Options for '{field.id}' are unavailable: {e}"])
        return OptionsResult(options=options, from_cache=from_cache)

    def peek(self, field: FieldDefinition, form_data: Mapping[str, Any]) -> OptionsResult:
        """Options available right now, possibly stale or empty, without waiting."""
        if field.options is None:
            return OptionsResult()
        if not field.options.is_dynamic:
            return OptionsResult(options=list(field.options.static_options or []))
        cached = self.cache.peek(self.cache_key(field, form_data))
        return OptionsResult(options=cached or [], from_cache=cached is not None)


async def resolve_options(
    field: FieldDefinition,
    form_data: Mapping[str, Any],
    cache: OptionsCache,
    source: Optional[OptionSource] = None,
    user_id: Optional[str] = None,
) -> OptionsResult:
    """Resolve a field's options with a throwaway resolver over a shared cache."""
    return await OptionsResolver(source, cache, user_id).resolve(field, form_data)
