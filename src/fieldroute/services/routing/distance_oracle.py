"""HTTP client for resolving travel times through a distance-matrix provider."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Sequence

import httpx

from ...errors import UpstreamError
from .models import DistanceCache, DistanceEdge, Location

# Providers cap origin x destination elements per call, so origins are sent
# in fixed-size batches against the full destination list.
DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_PARALLEL_REQUESTS = 4
DEFAULT_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

logger = logging.getLogger(__name__)


class DistanceOracle:
    """Batched pairwise travel-time lookup that fills a run-scoped cache.

    The API key and limits are injected; nothing is read from process state.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_MATRIX_URL,
        timeout: float = 20.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_parallel_requests: int = DEFAULT_MAX_PARALLEL_REQUESTS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.batch_size = batch_size
        self.max_parallel_requests = max(1, max_parallel_requests)
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Create a per-call HTTP client; batches may run on worker threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _matrix_single_request(
        self, origins: Sequence[Location], destinations: Sequence[Location]
    ) -> list[DistanceEdge]:
        """Make one provider call and return the edges it could resolve."""
        params = {
            "origins": "|".join(origin.address for origin in origins),
            "destinations": "|".join(destination.address for destination in destinations),
            "key": self.api_key or "",
        }
        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(self.base_url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    break
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise UpstreamError(f"Distance provider unreachable: {exc}") from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"Distance request failed, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except httpx.HTTPStatusError as exc:
                    code = exc.response.status_code
                    retryable = code == 429 or code >= 500
                    attempt += 1
                    if not retryable or attempt > self.max_retries:
                        raise UpstreamError(f"Distance provider returned HTTP {code}") from exc
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.HTTPError as exc:
                    raise UpstreamError(f"Distance request failed: {exc}") from exc
                except ValueError as exc:
                    raise UpstreamError("Distance provider returned a non-JSON body") from exc
        finally:
            client.close()

        if not isinstance(data, dict):
            raise UpstreamError(f"Distance provider returned {type(data).__name__}, expected an object")

        status = data.get("status")
        if status != "OK":
            detail = data.get("error_message")
            message = f"Distance provider status {status!r}"
            raise UpstreamError(f"{message}: {detail}" if detail else message)

        edges: list[DistanceEdge] = []
        rows = data.get("rows") or []
        if not isinstance(rows, list):
            raise UpstreamError("Distance provider rows are not a list")
        for row_index, row in enumerate(rows):
            if row_index >= len(origins):
                break
            if not isinstance(row, dict):
                continue
            for col_index, element in enumerate(row.get("elements") or []):
                if col_index >= len(destinations):
                    break
                if not isinstance(element, dict) or element.get("status") != "OK":
                    continue
                seconds = (element.get("duration") or {}).get("value")
                if seconds is None:
                    continue
                edges.append(
                    DistanceEdge(
                        from_id=origins[row_index].id,
                        to_id=destinations[col_index].id,
                        minutes=int(round(seconds / 60)),
                    )
                )
        return edges

    def _process_batch(
        self, batch_start: int, origins: Sequence[Location], destinations: Sequence[Location]
    ) -> list[DistanceEdge] | None:
        try:
            return self._matrix_single_request(origins, destinations)
        except UpstreamError as exc:
            logger.warning(
                f"Distance batch [{batch_start}:{batch_start + len(origins)}] failed, edges left unknown: {exc}"
            )
            return None

    def resolve(
        self,
        origins: Sequence[Location],
        destinations: Sequence[Location] | None = None,
        cache: DistanceCache | None = None,
    ) -> DistanceCache:
        """Resolve origin->destination travel minutes into ``cache``.

        Pairs already cached are not requested again. Pairs the provider could
        not resolve, or that belong to a failed batch, stay absent.
        """
        cache = cache if cache is not None else DistanceCache()
        destinations = list(destinations if destinations is not None else origins)
        if not origins or not destinations:
            return cache
        if not self.api_key:
            logger.warning("Distance provider API key is not configured; all travel times are unknown.")
            return cache

        pending = [
            origin
            for origin in origins
            if any(not cache.has(origin.id, dest.id) for dest in destinations if dest.id != origin.id)
        ]
        if not pending:
            return cache

        batches = [
            (start, pending[start : start + self.batch_size])
            for start in range(0, len(pending), self.batch_size)
        ]
        started = time.time()
        failed_batches = 0

        with ThreadPoolExecutor(max_workers=min(self.max_parallel_requests, len(batches))) as executor:
            futures = {
                executor.submit(self._process_batch, start, batch, destinations): start
                for start, batch in batches
            }
            for future in as_completed(futures):
                edges = future.result()
                if edges is None:
                    failed_batches += 1
                    continue
                cache.extend(edges)

        elapsed = time.time() - started
        if failed_batches:
            logger.warning(
                f"Partial distance resolution: {failed_batches}/{len(batches)} batches failed in {elapsed:.2f}s"
            )
        else:
            logger.info(f"Resolved distances for {len(pending)} origins in {len(batches)} batches ({elapsed:.2f}s)")
        return cache

    def check_health(self) -> bool:
        """Resolve a trivial pair to confirm the provider accepts our key."""
        if not self.api_key:
            return False
        sample = [Location(id="a", address="Sydney NSW"), Location(id="b", address="Parramatta NSW")]
        try:
            self._matrix_single_request(sample[:1], sample[1:])
        except UpstreamError:
            return False
        return True


def build_distance_oracle() -> DistanceOracle:
    """Construct the oracle from application settings."""
    from ...config import settings

    return DistanceOracle(
        settings.google_maps_api_key,
        base_url=settings.distance_matrix_url,
        timeout=settings.distance_timeout_seconds,
        max_retries=settings.distance_max_retries,
        backoff_seconds=settings.distance_backoff_seconds,
        batch_size=settings.distance_batch_size,
        max_parallel_requests=settings.distance_max_parallel_requests,
    )
