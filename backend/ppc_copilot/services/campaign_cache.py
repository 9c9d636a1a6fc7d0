"""
Campaign Cache — single-slot, date-range keyed, in-memory cache of merged
campaign data (listing + metrics).

Reads never wait on a report once any fetch for the active range succeeded:
fresh entries are served as-is, stale entries are served immediately while
one background refresh runs. A cold start with phase=listing serves a
provisional listing-only entry and converges to full metrics in the background.

One instance lives on app.state for the lifetime of the process.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol
from ppc_copilot.models import CacheRead, DerivedCampaign, Phase
from ppc_copilot.services.campaign_service import FetchResult
from ppc_copilot.services.metrics_service import date_key

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class CacheEntry:
    campaigns: tuple[DerivedCampaign, ...]
    fetched_at: float
    source: str
    metrics_available: bool
    date_key: str
    # False for a provisional listing-only entry
    complete: bool = True


class CampaignFetcher(Protocol):
    async def fetch_listing(self, date_from: Optional[str], date_to: Optional[str]) -> FetchResult: ...

    async def fetch_full(self, date_from: Optional[str], date_to: Optional[str]) -> FetchResult: ...


class CampaignCache:

    def __init__(
        self,
        fetcher: CampaignFetcher,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        # One in-flight refresh per date key
        self._refresh_tasks: dict[str, asyncio.Task] = {}

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    @property
    def refreshing(self) -> bool:
        return any(not t.done() for t in self._refresh_tasks.values())

    def _in_flight(self, key: str) -> Optional[asyncio.Task]:
        task = self._refresh_tasks.get(key)
        return task if task is not None and not task.done() else None

    def age(self, entry: CacheEntry) -> float:
        return self._clock() - entry.fetched_at

    def current_state(self) -> str:
        """'empty', 'fresh' or 'stale' for whatever range is cached."""
        entry = self._entry
        if entry is None:
            return "empty"
        return "fresh" if self.age(entry) < self.ttl_seconds else "stale"

    def state(self, date_from: Optional[str], date_to: Optional[str]) -> str:
        """'empty', 'fresh' or 'stale' for the given date range."""
        entry = self._entry
        if entry is None or entry.date_key != date_key(date_from, date_to):
            return "empty"
        return self.current_state()

    def invalidate(self) -> None:
        self._entry = None

    # ── Reads ─────────────────────────────────────────────────────────

    async def get(self, date_from: Optional[str], date_to: Optional[str], phase: Phase = "all") -> CacheRead:
        """
        Serve campaigns for a date range.
        A failed or cancelled foreground fetch installs nothing and propagates.
        """
        key = date_key(date_from, date_to)
        entry = self._entry

        if entry is not None and entry.date_key == key:
            if phase == "metrics" and not entry.complete:
                return await self._converge(date_from, date_to, key)

            age = self.age(entry)
            if not entry.complete and self._in_flight(key) is None:
                # Provisional entry whose convergence never ran or failed
                self._trigger_refresh(date_from, date_to, key)
                return self._read(entry, cached=True, refreshing=True)

            if age < self.ttl_seconds:
                logger.info(f"[Cache] HIT — {len(entry.campaigns)} campaigns, age {round(age)}s")
                return self._read(entry, cached=True)

            if self._trigger_refresh(date_from, date_to, key):
                logger.info("[Cache] STALE — returning cached + starting background refresh")
            return self._read(entry, cached=True, refreshing=True)

        if phase == "listing":
            result = await self.fetcher.fetch_listing(date_from, date_to)
            entry = self._install(key, result, complete=False)
            self._trigger_refresh(date_from, date_to, key)
            return self._read(entry, cached=False, phase="listing")

        result = await self.fetcher.fetch_full(date_from, date_to)
        entry = self._install(key, result)
        return self._read(entry, cached=False, phase=phase)

    async def _converge(self, date_from: Optional[str], date_to: Optional[str], key: str) -> CacheRead:
        """Replace a provisional entry with full data, joining an in-flight refresh if any."""
        task = self._in_flight(key)
        if task is not None:
            # Shield so an aborted request does not cancel the shared refresh
            await asyncio.shield(task)
            entry = self._entry
            if entry is not None and entry.date_key == key and entry.complete:
                return self._read(entry, cached=False, phase="metrics")

        result = await self.fetcher.fetch_full(date_from, date_to)
        entry = self._install(key, result)
        return self._read(entry, cached=False, phase="metrics")

    def _read(
        self,
        entry: CacheEntry,
        cached: bool,
        phase: str = "cached",
        refreshing: Optional[bool] = None,
    ) -> CacheRead:
        return CacheRead(
            source=entry.source,
            phase=phase,
            cached=cached,
            cache_age=round(self.age(entry)) if cached else None,
            metrics_available=entry.metrics_available,
            refreshing=refreshing,
            data=list(entry.campaigns),
        )

    def _install(self, key: str, result: FetchResult, complete: bool = True) -> CacheEntry:
        entry = CacheEntry(
            campaigns=tuple(result.campaigns),
            fetched_at=self._clock(),
            source="live",
            metrics_available=result.metrics_available,
            date_key=key,
            complete=complete,
        )
        self._entry = entry
        return entry

    # ── Background refresh (single-flight) ────────────────────────────

    def _trigger_refresh(self, date_from: Optional[str], date_to: Optional[str], key: str) -> bool:
        """Start a background full fetch for key unless one is already running for it."""
        if self._in_flight(key) is not None:
            return False
        task = asyncio.create_task(self._background_refresh(date_from, date_to, key))
        self._refresh_tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        return True

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._refresh_tasks.get(key) is task:
            del self._refresh_tasks[key]

    async def _background_refresh(self, date_from: Optional[str], date_to: Optional[str], key: str) -> None:
        try:
            result = await self.fetcher.fetch_full(date_from, date_to)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Keep the stale entry; the next stale read retries
            logger.warning(f"[Cache] Background refresh failed: {e}", exc_info=True)
            return

        current = self._entry
        if current is not None and current.date_key != key:
            logger.info(f"[Cache] Discarding background refresh for {key} — active range is now {current.date_key}")
            return
        self._install(key, result)
        logger.info(
            f"[Cache] Background refresh complete — {len(result.campaigns)} campaigns, "
            f"metrics={result.metrics_available}"
        )

    async def wait_for_refresh(self) -> None:
        """Block until every in-flight background refresh finishes."""
        for task in list(self._refresh_tasks.values()):
            await asyncio.shield(task)

    async def aclose(self) -> None:
        """Cancel in-flight refreshes on shutdown. Entries are only ever replaced whole."""
        for task in list(self._refresh_tasks.values()):
            if task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
