"""
Place-name geocoding.

Resolves free-text region/province names to approximate coordinates via
Nominatim (geopy). The public Nominatim service allows roughly one
request per second, so:

1. Callers geocode each *distinct* name once (BatchGeocoder)
2. Answers are cached in SQLite across runs (GeocodeCache)
3. Calls are throttled by a min-delay shared by all worker threads
4. Transient provider errors are retried with exponential backoff
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol

from geopy.exc import (
    GeocoderRateLimited,
    GeocoderServiceError,
    GeocoderTimedOut,
    GeocoderUnavailable,
)
from geopy.geocoders import Nominatim

from ..config import Config
from .geocode_cache import GeocodeCache, GeocodeResult

logger = logging.getLogger(__name__)

# Worth retrying: the same query may succeed a moment later
TRANSIENT_ERRORS = (GeocoderTimedOut, GeocoderUnavailable, GeocoderRateLimited)


class LookupFailure(Exception):
    """A lookup that could not be answered (provider error, timeout)."""

    def __init__(self, query: str, reason: str, transient: bool = True):
        super().__init__(f"Lookup failed for {query!r}: {reason}")
        self.query = query
        self.reason = reason
        self.transient = transient


class Geocoder(Protocol):
    """Anything that can turn a place name into a coordinate."""

    provider_name: str

    def geocode(self, query: str) -> Optional[GeocodeResult]:
        """
        Geocode one place name.

        Returns:
            GeocodeResult, or None when the provider has no match

        Raises:
            LookupFailure: provider error after retries
        """
        ...


class NominatimGeocoder:
    """
    Geocoder backed by geopy's Nominatim client.

    Thread-safe: the min-delay throttle is shared across threads, so a
    worker pool never exceeds the provider's request rate.
    """

    provider_name = "nominatim"

    def __init__(
        self,
        client=None,
        user_agent: Optional[str] = None,
        domain: Optional[str] = None,
        timeout: Optional[float] = None,
        min_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize geocoder.

        Args:
            client: geopy geocoder (creates Nominatim if None)
            user_agent: User-Agent for Nominatim
            domain: Nominatim host override
            timeout: Per-request timeout in seconds
            min_delay: Minimum seconds between requests
            max_retries: Attempts for transient errors
            backoff_seconds: Base delay for exponential backoff
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock (injectable for tests)
        """
        self.timeout = timeout if timeout is not None else Config.geocoder_timeout()
        if client is None:
            kwargs = {
                "user_agent": user_agent or Config.geocoder_user_agent(),
                "timeout": self.timeout,
            }
            domain = domain or Config.geocoder_domain()
            if domain:
                kwargs["domain"] = domain
            client = Nominatim(**kwargs)
        self.client = client
        self.min_delay = min_delay if min_delay is not None else Config.geocoder_min_delay()
        self.max_retries = max(1, max_retries if max_retries is not None else Config.lookup_max_retries())
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else Config.lookup_backoff_seconds()
        )
        self._sleep = sleep
        self._clock = clock
        self._throttle_lock = threading.Lock()
        self._last_request: Optional[float] = None
        self.request_count = 0

    def _throttle(self) -> None:
        """Block until min_delay has passed since the previous request."""
        with self._throttle_lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self.min_delay:
                    self._sleep(self.min_delay - elapsed)
            self._last_request = self._clock()
            self.request_count += 1

    def geocode(self, query: str) -> Optional[GeocodeResult]:
        """Geocode with bounded retry for transient provider errors."""
        for attempt in range(self.max_retries):
            self._throttle()
            try:
                location = self.client.geocode(query, exactly_one=True, timeout=self.timeout)
            except TRANSIENT_ERRORS as e:
                if attempt + 1 >= self.max_retries:
                    raise LookupFailure(query, f"{type(e).__name__}: {e}", transient=True) from e
                delay = self.backoff_seconds * (2 ** attempt)
                # Honour the provider's Retry-After when it asks for longer
                retry_after = getattr(e, "retry_after", None)
                if retry_after:
                    delay = max(delay, float(retry_after))
                logger.info(
                    f"Geocoder {type(e).__name__} for {query!r}, "
                    f"retry {attempt + 1}/{self.max_retries - 1} in {delay:.1f}s"
                )
                self._sleep(delay)
                continue
            except GeocoderServiceError as e:
                # Query/auth errors will not improve on retry
                raise LookupFailure(query, f"{type(e).__name__}: {e}", transient=False) from e

            if location is None:
                return None
            return GeocodeResult(
                query=query,
                latitude=float(location.latitude),
                longitude=float(location.longitude),
                display_name=getattr(location, "address", None),
            )

        return None


@dataclass
class GeocodeBatch:
    """Outcome of geocoding a set of names."""
    results: dict[str, Optional[GeocodeResult]] = field(default_factory=dict)  # normalized key -> result
    failures: dict[str, str] = field(default_factory=dict)  # name -> reason
    cache_hits: int = 0
    provider_calls: int = 0

    def get(self, name: Optional[str]) -> Optional[GeocodeResult]:
        if not name or not name.strip():
            return None
        return self.results.get(GeocodeCache.normalize_key(name))


class BatchGeocoder:
    """
    Geocodes a collection of names with deduplication and caching.

    Every distinct name is looked up at most once per batch, where names
    differing only in case or spacing count as one. Results are keyed by
    normalized name, so completion order of worker threads never affects
    the outcome. A failed lookup is recorded as a missing value for its
    name only.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        cache: Optional[GeocodeCache] = None,
        max_workers: Optional[int] = None,
        parallel: bool = True,
    ):
        self.geocoder = geocoder
        self.cache = cache
        self.max_workers = max_workers or Config.geocode_workers()
        self.parallel = parallel and self.max_workers > 1

    @staticmethod
    def distinct_names(names: Iterable[Optional[str]]) -> list[str]:
        """
        Unique non-empty names, stripped, in sorted order.

        Names that differ only in case or inner whitespace share a cache
        key, so only the first of them (in sorted order) is kept.
        """
        by_key: dict[str, str] = {}
        for name in sorted({name.strip() for name in names if name and name.strip()}):
            by_key.setdefault(GeocodeCache.normalize_key(name), name)
        return sorted(by_key.values())

    def geocode_all(self, names: Iterable[Optional[str]]) -> GeocodeBatch:
        """
        Geocode all distinct names.

        Args:
            names: Place names, duplicates and blanks allowed

        Returns:
            GeocodeBatch keyed by normalized name (see GeocodeBatch.get)
        """
        batch = GeocodeBatch()
        pending: list[str] = []

        for name in self.distinct_names(names):
            cached = self.cache.get(name) if self.cache else None
            if cached is not None:
                batch.results[GeocodeCache.normalize_key(name)] = cached.result
                batch.cache_hits += 1
            else:
                pending.append(name)

        if pending:
            logger.info(
                f"Geocoding {len(pending)} names "
                f"({batch.cache_hits} served from cache, workers={self.max_workers if self.parallel else 1})"
            )

        if self.parallel and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {executor.submit(self._lookup, name): name for name in pending}
                for future in as_completed(futures):
                    self._collect(batch, futures[future], future)
        else:
            for name in pending:
                self._collect_value(batch, name, *self._lookup(name))

        return batch

    def _lookup(self, name: str) -> tuple[Optional[GeocodeResult], Optional[LookupFailure]]:
        """Run one provider lookup, capturing any failure as a value."""
        try:
            return self.geocoder.geocode(name), None
        except LookupFailure as e:
            return None, e
        except Exception as e:
            # Unexpected error in one lookup must not abort the batch
            logger.error(f"Geocoding {name!r} raised {type(e).__name__}: {e}", exc_info=True)
            return None, LookupFailure(name, f"{type(e).__name__}: {e}", transient=True)

    def _collect(self, batch: GeocodeBatch, name: str, future) -> None:
        result, failure = future.result()
        self._collect_value(batch, name, result, failure)

    def _collect_value(
        self,
        batch: GeocodeBatch,
        name: str,
        result: Optional[GeocodeResult],
        failure: Optional[LookupFailure],
    ) -> None:
        batch.provider_calls += 1
        batch.results[GeocodeCache.normalize_key(name)] = result
        if failure is not None:
            batch.failures[name] = failure.reason
            # Failures stay uncached so a re-run asks the provider again
            logger.warning(str(failure))
            return
        if self.cache:
            self.cache.set(name, result, self.geocoder.provider_name)
