"""
Tile fetcher: concurrent retrieval of point-cloud payloads.

A fixed pool of worker threads partitions the tile list by stride. Each
worker tries the source variants of a tile in order, stops at the first one
that returns bytes, and streams the payload into a shared queue. The fetch
phase ends when every worker has posted its exit marker and the consumer has
drained the queue.
"""

import logging
import os
import queue
import random
import threading
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..constants import (
    FETCH_TIMEOUT_S,
    PACING_MAX_S,
    RETRY_ATTEMPTS,
    RETRY_WAIT_MAX,
    RETRY_WAIT_MIN,
    ErrorMessages,
)
from .region import TileCoordinate

logger = logging.getLogger(__name__)


class WorkerCrashedError(RuntimeError):
    """A fetch worker died from an error that is not a per-request failure."""


@dataclass(frozen=True)
class RawTilePayload:
    """Bytes retrieved for one tile from one source variant."""

    coordinate: TileCoordinate
    variant: int
    data: bytes


@dataclass
class FetchStats:
    """Counters for one fetch phase."""

    requested: int = 0
    fetched: int = 0
    failed_attempts: int = 0

    @property
    def missing(self) -> int:
        return self.requested - self.fetched


class TileSource(Protocol):
    """Resolves a tile for a variant: bytes, None when absent, or raises."""

    def resolve(self, coordinate: TileCoordinate, variant: int) -> bytes | None: ...


# ---------------------------------------------------------------------------
# HTTP source
# ---------------------------------------------------------------------------

_retry_network = retry(
    stop=stop_after_attempt(RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)


@_retry_network
def _http_get(session: requests.Session, url: str, timeout: float) -> requests.Response:
    return session.get(url, timeout=timeout)


class HttpTileSource:
    """Tile source backed by a URL template with ``{block}``, ``{x}`` and ``{y}`` fields."""

    def __init__(
        self,
        url_template: str,
        session: requests.Session | None = None,
        timeout: float = FETCH_TIMEOUT_S,
    ) -> None:
        self.url_template = url_template
        self._session = session
        self._local = threading.local()
        self.timeout = min(timeout, FETCH_TIMEOUT_S)

    @property
    def session(self) -> requests.Session:
        """The shared session if one was given, otherwise one session per thread."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def url_for(self, coordinate: TileCoordinate, variant: int) -> str:
        return self.url_template.format(block=variant, x=coordinate.x, y=coordinate.y)

    def resolve(self, coordinate: TileCoordinate, variant: int) -> bytes | None:
        url = self.url_for(coordinate, variant)
        response = _http_get(self.session, url, self.timeout)

        if not response.ok:
            logger.info(f"HTTP {response.status_code}, skipping {url}")
            return None

        content = response.content
        if not content:
            logger.info(f"Empty body, skipping {url}")
            return None

        return content


# ---------------------------------------------------------------------------
# Concurrent fetcher
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _WorkerExit:
    worker_id: int
    failed_attempts: int
    error: BaseException | None = field(default=None)


def unique_variants(variants: Sequence[int]) -> list[int]:
    """Drop repeated variants, keeping first-occurrence order."""
    return list(dict.fromkeys(variants))


class TileFetcher:
    """Fetches tiles with a pool of stride-partitioned worker threads."""

    def __init__(
        self,
        source: TileSource,
        variants: Sequence[int],
        workers: int | None = None,
        pacing_max_s: float = PACING_MAX_S,
    ) -> None:
        self.source = source
        self.variants = tuple(unique_variants(variants))
        self.workers = workers or os.cpu_count() or 1
        self.pacing_max_s = pacing_max_s
        self.stats = FetchStats()

    def fetch(self, coordinates: Sequence[TileCoordinate]) -> Iterator[RawTilePayload]:
        """Yield payloads as workers produce them.

        Returns once every worker has exited. Raises WorkerCrashedError after
        draining if any worker died from an unexpected error.
        """
        shared = tuple(coordinates)
        self.stats = FetchStats(requested=len(shared))
        results: queue.Queue = queue.Queue()
        worker_count = max(1, min(self.workers, len(shared)))

        threads = [
            threading.Thread(
                target=self._worker,
                args=(worker_id, worker_count, shared, results),
                name=f"lidar-fetch-{worker_id}",
                daemon=True,
            )
            for worker_id in range(worker_count)
        ]
        for thread in threads:
            thread.start()

        crashed: list[_WorkerExit] = []
        running = worker_count
        while running:
            item = results.get()
            if isinstance(item, _WorkerExit):
                running -= 1
                self.stats.failed_attempts += item.failed_attempts
                if item.error is not None:
                    crashed.append(item)
                continue
            self.stats.fetched += 1
            yield item

        for thread in threads:
            thread.join()

        if crashed:
            first = crashed[0]
            raise WorkerCrashedError(
                ErrorMessages.WORKER_CRASHED.format(first.worker_id, first.error)
            ) from first.error

    def _worker(
        self,
        worker_id: int,
        stride: int,
        coordinates: tuple[TileCoordinate, ...],
        results: queue.Queue,
    ) -> None:
        failed_attempts = 0
        error: BaseException | None = None
        try:
            for index in range(worker_id, len(coordinates), stride):
                coordinate = coordinates[index]
                payload, failures = self._fetch_one(coordinate)
                failed_attempts += failures
                if payload is None:
                    logger.info(f"Tile {coordinate} not found in any block")
                    continue

                results.put(payload)
                if self.pacing_max_s > 0:
                    time.sleep(random.uniform(0, self.pacing_max_s))
        except Exception as e:
            logger.error(f"Fetch worker {worker_id} crashed: {e}")
            error = e
        finally:
            results.put(_WorkerExit(worker_id, failed_attempts, error))

    def _fetch_one(self, coordinate: TileCoordinate) -> tuple[RawTilePayload | None, int]:
        """Try each variant in order; the first one returning bytes wins."""
        failures = 0
        for variant in self.variants:
            logger.debug(f"Tile {coordinate} | block {variant}")
            try:
                data = self.source.resolve(coordinate, variant)
            except Exception as e:
                failures += 1
                logger.warning(f"Fetching tile {coordinate} from block {variant} failed: {e}")
                continue

            if data is None:
                continue

            return RawTilePayload(coordinate, variant, data), failures

        return None, failures
