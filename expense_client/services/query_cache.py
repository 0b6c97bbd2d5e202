"""
Query cache for API reads.

This module handles:
1. Serving reads from cache while they are fresh
2. Sharing one fetch among concurrent reads of the same key
3. Keeping the previous value servable while a key refetches
4. Invalidating whole resource families after successful writes

Keys are (resource, fingerprint of params), so every distinct set of
filter/pagination params is its own entry.
"""
import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from expense_client.integrations.api_client import ApiClient, response_body
from expense_client.models.cache import CacheEntry, CacheKey, CacheStatus, QueryState
from expense_client.services.resources import (
    get_resource,
    invalidated_by,
    read_request,
    write_request,
)
from expense_client.utils.logger import get_logger
from expense_client.utils.errors import AppError

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_params(params: Any) -> dict:
    """Params as a plain dict with unset values dropped."""
    if params is None:
        return {}
    if isinstance(params, BaseModel):
        return params.model_dump(exclude_none=True)
    return {k: v for k, v in dict(params).items() if v is not None}


def make_key(resource: str, params: Any = None) -> CacheKey:
    """Cache key derived from the resource name and the exact params."""
    fingerprint = json.dumps(normalize_params(params), sort_keys=True, default=str)
    return (resource, fingerprint)


class QueryCache:
    """
    Result cache sitting in front of the request pipeline.
    
    Usage:
        cache = QueryCache(api)
        page = await cache.read("expenses", {"page": 2, "category": "food"})
        state = cache.view("expenses", {"page": 2}, placeholder_params={"page": 1})
        await cache.write("expenses", "create", payload)
    """
    
    def __init__(
        self,
        api: ApiClient,
        stale_seconds: float = 30.0,
        page_size: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.page_size = page_size
        self.stale_after = timedelta(seconds=stale_seconds)
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._inflight: dict[CacheKey, asyncio.Task] = {}
    
    async def read(self, resource: str, params: Any = None) -> Any:
        """
        Read a resource, from cache when fresh, else through the pipeline.
        
        Concurrent reads of one key share a single fetch.
        
        Raises:
            AppError: Whatever the pipeline raised for the fetch
        """
        params = normalize_params(params)
        get_resource(resource)
        key = make_key(resource, params)
        
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
        elif self._refresh_status(entry) == CacheStatus.FRESH:
            logger.debug(f"Cache hit: {resource} {key[1]}")
            return entry.value
        
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._fetch(entry, entry.generation, resource, params)
            )
            self._inflight[key] = task
        return await asyncio.shield(task)
    
    async def _fetch(
        self,
        entry: CacheEntry,
        generation: int,
        resource: str,
        params: dict,
    ) -> Any:
        key = entry.key
        me = asyncio.current_task()
        try:
            response = await self.api.send(read_request(resource, params, self.page_size))
            value = get_resource(resource).parse(response_body(response))
        except AppError as e:
            if entry.generation == generation:
                entry.error = e
            raise
        finally:
            if self._inflight.get(key) is me:
                del self._inflight[key]
        
        # Invalidated while in flight: the value may predate a write
        if entry.generation == generation:
            entry.value = value
            entry.fetched_at = self._clock()
            entry.status = CacheStatus.FRESH
            entry.error = None
        return value
    
    def _refresh_status(self, entry: CacheEntry) -> CacheStatus:
        if entry.status == CacheStatus.FRESH and self._clock() - entry.fetched_at >= self.stale_after:
            entry.status = CacheStatus.STALE
        return entry.status
    
    def peek(self, resource: str, params: Any = None) -> Any:
        """Last good value for a key, fresh or stale, without fetching."""
        entry = self._entries.get(make_key(resource, params))
        if entry is None or self._refresh_status(entry) == CacheStatus.ABSENT:
            return None
        return entry.value
    
    def entry(self, resource: str, params: Any = None) -> Optional[CacheEntry]:
        return self._entries.get(make_key(resource, params))
    
    def is_fetching(self, resource: str, params: Any = None) -> bool:
        return make_key(resource, params) in self._inflight
    
    def view(
        self,
        resource: str,
        params: Any = None,
        placeholder_params: Any = None,
    ) -> QueryState:
        """
        Loading/data/error state for the UI.
        
        With placeholder_params, a key that has no data yet shows the
        data cached under placeholder_params instead (the previous page
        of a listing) so the table doesn't blank while the next page loads.
        """
        key = make_key(resource, params)
        entry = self._entries.get(key)
        fetching = key in self._inflight
        
        if entry is not None:
            status = self._refresh_status(entry)
            if status != CacheStatus.ABSENT:
                return QueryState(
                    status="success",
                    data=entry.value,
                    is_fetching=fetching,
                    is_stale=status == CacheStatus.STALE,
                )
            if entry.error is not None and not fetching:
                return QueryState(status="error", error=entry.error)
        
        if placeholder_params is not None:
            previous = self.peek(resource, placeholder_params)
            if previous is not None:
                return QueryState(
                    status="success",
                    data=previous,
                    is_fetching=fetching,
                    is_placeholder=True,
                )
        
        return QueryState(status="loading", is_fetching=fetching)
    
    async def write(
        self,
        resource: str,
        operation: str,
        payload: Any = None,
        resource_id: Optional[str] = None,
    ) -> Any:
        """
        Send a write through the pipeline, then invalidate affected families.
        
        Nothing is invalidated unless the server acknowledged the write.
        
        Returns:
            Decoded response body (None for empty responses)
        """
        request = write_request(resource, operation, payload, resource_id)
        response = await self.api.send(request)
        self.invalidate(*invalidated_by(resource, operation))
        return response_body(response)
    
    def invalidate(self, *resources: str) -> int:
        """
        Mark every entry of the given resources absent, whatever its params.
        
        Entries are refetched lazily on the next read. Fetches already in
        flight for those keys won't write their results back.
        
        Returns:
            Number of entries invalidated
        """
        count = 0
        for key, entry in self._entries.items():
            if key[0] not in resources:
                continue
            entry.status = CacheStatus.ABSENT
            entry.value = None
            entry.fetched_at = None
            entry.error = None
            entry.generation += 1
            self._inflight.pop(key, None)
            count += 1
        
        logger.info(f"Invalidated {count} cached entries for: {', '.join(resources)}")
        return count
    
    def clear(self) -> None:
        """Drop everything (logout)."""
        for entry in self._entries.values():
            entry.generation += 1
        self._entries.clear()
        self._inflight.clear()
        logger.info("Query cache cleared")
