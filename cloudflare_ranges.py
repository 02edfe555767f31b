"""
Cloudflare IPv4 range cache.

Keeps Cloudflare's published edge ranges (https://www.cloudflare.com/ips-v4)
in memory and refreshes them every CACHE_TTL_SECONDS.

Policy:
- Fresh and non-empty: served from memory, no network access
- Expired or empty: one refresh attempt under the update lock
- Refresh failed: previous ranges are served unchanged (possibly empty),
  and no new attempt is made for RETRY_AFTER_FAILURE_SECONDS

Refresh is single-flight: requests that queued behind a running refresh
reuse its result once they get the lock, whether it succeeded or failed.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from ip_ranges import parse_ipv4_networks

logger = logging.getLogger(__name__)

CLOUDFLARE_IPS_V4_URL = "https://www.cloudflare.com/ips-v4"

CACHE_TTL_SECONDS = 6 * 3600
FETCH_TIMEOUT_SECONDS = 5.0
RETRY_AFTER_FAILURE_SECONDS = 30.0


class RangeFetchError(Exception):
    """The range list could not be fetched or parsed."""


class CloudflareRangeCache:
    """
    TTL cache of CIDR blocks with serve-stale-on-error.

    The ranges list is swapped whole on refresh, so readers holding the
    previous list never observe a partial update.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        url: str = CLOUDFLARE_IPS_V4_URL,
        ttl: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        retry_after: Optional[float] = None,
    ):
        self._client = client
        self._url = url
        self._ttl = ttl
        self._clock = clock
        self._retry_after = RETRY_AFTER_FAILURE_SECONDS if retry_after is None else retry_after
        self._ranges: List[str] = []
        self._fetched_at: Optional[float] = None
        self._failed_at: Optional[float] = None
        self._last_error: Optional[str] = None
        self._fetch_count = 0
        self._refresh_generation = 0
        self._lock = asyncio.Lock()

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    async def get_ranges(self) -> List[str]:
        """Return the cached ranges, refreshing first if they are stale."""
        if self._is_fresh() or self._in_retry_backoff():
            return self._ranges

        generation = self._refresh_generation
        async with self._lock:
            # A refresh attempt finished while we waited: reuse its outcome,
            # fresh data or the stale ranges it fell back to
            if self._refresh_generation != generation or self._is_fresh() or self._in_retry_backoff():
                return self._ranges

            try:
                ranges = await self._fetch()
            except RangeFetchError as e:
                self._refresh_generation += 1
                self._failed_at = self._clock()
                self._last_error = str(e)
                logger.warning(
                    f"Cloudflare range refresh failed ({e}), serving {len(self._ranges)} cached ranges"
                )
                return self._ranges

            self._refresh_generation += 1
            self._ranges = ranges
            self._fetched_at = self._clock()
            self._failed_at = None
            self._last_error = None
            logger.info(f"Cloudflare ranges refreshed: {len(ranges)} blocks")
            return self._ranges

    def invalidate(self) -> None:
        """Force the next get_ranges() call to refresh (cached data is kept)."""
        self._fetched_at = None
        self._failed_at = None

    def snapshot(self) -> Dict[str, Any]:
        """Cache status for health reporting. No network access."""
        age = None
        if self._fetched_at is not None:
            age = round(self._clock() - self._fetched_at, 1)
        return {
            "count": len(self._ranges),
            "age_seconds": age,
            "fresh": self._is_fresh(),
            "last_error": self._last_error,
        }

    @property
    def fetch_count(self) -> int:
        """Number of fetch attempts made so far."""
        return self._fetch_count

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def _is_fresh(self) -> bool:
        if not self._ranges or self._fetched_at is None:
            return False
        return (self._clock() - self._fetched_at) < self._ttl

    def _in_retry_backoff(self) -> bool:
        if self._failed_at is None:
            return False
        return (self._clock() - self._failed_at) < self._retry_after

    async def _fetch(self) -> List[str]:
        self._fetch_count += 1
        logger.debug(f"Fetching Cloudflare ranges from {self._url}")
        try:
            if self._client is not None:
                resp = await self._client.get(self._url, timeout=FETCH_TIMEOUT_SECONDS)
            else:
                async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS) as client:
                    resp = await client.get(self._url)
        except httpx.HTTPError as e:
            raise RangeFetchError(f"{type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            raise RangeFetchError(f"HTTP {resp.status_code}")

        try:
            ranges = parse_ipv4_networks(resp.text.splitlines())
        except ValueError as e:
            raise RangeFetchError(f"malformed range list: {e}") from e

        if not ranges:
            raise RangeFetchError("empty range list")
        return ranges
