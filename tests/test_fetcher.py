"""Tests for chuk_mcp_lidar.core.fetcher: HTTP source and concurrent fetcher."""

import threading
from unittest.mock import MagicMock, patch

import pytest
import requests
from tenacity import wait_none

from chuk_mcp_lidar.core.fetcher import (
    FetchStats,
    HttpTileSource,
    RawTilePayload,
    TileFetcher,
    WorkerCrashedError,
    _http_get,
    unique_variants,
)
from chuk_mcp_lidar.core.region import TileCoordinate

from conftest import FakeTileSource

TEMPLATE = "https://example.com/b_{block}/TMR_{x}_{y}.laz"


def _response(status=200, content=b"LASF"):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 400
    response.content = content
    return response


@pytest.fixture
def fast_retry():
    with patch.object(_http_get.retry, "wait", wait_none()):
        yield


# ===================================================================
# HttpTileSource
# ===================================================================


class TestHttpTileSource:
    def test_url_for(self):
        source = HttpTileSource(TEMPLATE, session=MagicMock())
        url = source.url_for(TileCoordinate(462, 101), 35)
        assert url == "https://example.com/b_35/TMR_462_101.laz"

    def test_ok_returns_bytes(self):
        session = MagicMock()
        session.get.return_value = _response(content=b"payload")
        source = HttpTileSource(TEMPLATE, session=session)

        assert source.resolve(TileCoordinate(1, 2), 3) == b"payload"
        session.get.assert_called_once_with("https://example.com/b_3/TMR_1_2.laz", timeout=300.0)

    def test_not_found_returns_none(self):
        session = MagicMock()
        session.get.return_value = _response(status=404)
        source = HttpTileSource(TEMPLATE, session=session)

        assert source.resolve(TileCoordinate(1, 2), 3) is None

    def test_empty_body_returns_none(self):
        session = MagicMock()
        session.get.return_value = _response(content=b"")
        source = HttpTileSource(TEMPLATE, session=session)

        assert source.resolve(TileCoordinate(1, 2), 3) is None

    def test_timeout_capped(self):
        source = HttpTileSource(TEMPLATE, session=MagicMock(), timeout=10_000)
        assert source.timeout == 300.0

    def test_session_per_thread(self):
        with patch(
            "chuk_mcp_lidar.core.fetcher.requests.Session", side_effect=lambda: MagicMock()
        ):
            source = HttpTileSource(TEMPLATE)
            main_session = source.session
            seen = []
            thread = threading.Thread(target=lambda: seen.append(source.session))
            thread.start()
            thread.join()

        assert source.session is main_session
        assert seen[0] is not main_session

    def test_given_session_shared(self):
        session = MagicMock()
        source = HttpTileSource(TEMPLATE, session=session)
        seen = []
        thread = threading.Thread(target=lambda: seen.append(source.session))
        thread.start()
        thread.join()

        assert seen == [session]

    def test_retry_on_connection_error(self, fast_retry):
        """resolve retries on ConnectionError via tenacity."""
        session = MagicMock()
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            requests.Timeout("slow"),
            _response(content=b"third time"),
        ]
        source = HttpTileSource(TEMPLATE, session=session)

        assert source.resolve(TileCoordinate(1, 2), 3) == b"third time"
        assert session.get.call_count == 3

    def test_retry_exhausted_raises(self, fast_retry):
        """After 3 failed attempts the ConnectionError is reraised."""
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        source = HttpTileSource(TEMPLATE, session=session)

        with pytest.raises(requests.ConnectionError):
            source.resolve(TileCoordinate(1, 2), 3)
        assert session.get.call_count == 3

    def test_other_request_errors_not_retried(self, fast_retry):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.InvalidURL("bad")
        source = HttpTileSource(TEMPLATE, session=session)

        with pytest.raises(requests.RequestException):
            source.resolve(TileCoordinate(1, 2), 3)
        assert session.get.call_count == 1


# ===================================================================
# TileFetcher
# ===================================================================


def _coords(*pairs):
    return [TileCoordinate(x, y) for x, y in pairs]


class TestUniqueVariants:
    def test_keeps_first_occurrence(self):
        assert unique_variants([36, 35, 36, 37, 35]) == [36, 35, 37]


class TestTileFetcher:
    def test_first_successful_variant_wins(self):
        source = FakeTileSource({(1, 5, 5): None, (2, 5, 5): b"two", (3, 5, 5): b"three"})
        fetcher = TileFetcher(source, [1, 2, 3], workers=1, pacing_max_s=0)

        payloads = list(fetcher.fetch(_coords((5, 5))))

        assert payloads == [RawTilePayload(TileCoordinate(5, 5), 2, b"two")]
        assert (TileCoordinate(5, 5), 3) not in source.calls

    def test_variants_tried_in_order(self):
        source = FakeTileSource({(9, 1, 1): b"x"})
        fetcher = TileFetcher(source, [7, 8, 9], workers=1, pacing_max_s=0)

        list(fetcher.fetch(_coords((1, 1))))

        assert [variant for _, variant in source.calls] == [7, 8, 9]

    def test_duplicate_variants_tried_once(self):
        source = FakeTileSource()
        fetcher = TileFetcher(source, [4, 4, 5], workers=1, pacing_max_s=0)

        list(fetcher.fetch(_coords((1, 1))))

        assert [variant for _, variant in source.calls] == [4, 5]

    def test_request_error_absorbed(self):
        source = FakeTileSource(
            {(1, 0, 0): requests.ConnectionError("refused"), (2, 0, 0): b"data"}
        )
        fetcher = TileFetcher(source, [1, 2], workers=1, pacing_max_s=0)

        payloads = list(fetcher.fetch(_coords((0, 0))))

        assert payloads[0].variant == 2
        assert fetcher.stats.failed_attempts == 1

    def test_os_error_absorbed(self):
        source = FakeTileSource({(1, 0, 0): OSError("disk"), (2, 0, 0): b"data"})
        fetcher = TileFetcher(source, [1, 2], workers=1, pacing_max_s=0)

        assert len(list(fetcher.fetch(_coords((0, 0))))) == 1

    def test_missing_tile_skipped(self):
        source = FakeTileSource({(1, 0, 0): b"a"})
        fetcher = TileFetcher(source, [1, 2], workers=2, pacing_max_s=0)

        payloads = list(fetcher.fetch(_coords((0, 0), (0, 1))))

        assert [p.coordinate for p in payloads] == _coords((0, 0))
        assert fetcher.stats == FetchStats(requested=2, fetched=1, failed_attempts=0)
        assert fetcher.stats.missing == 1

    def test_every_tile_fetched_once(self):
        coords = [TileCoordinate(x, y) for x in range(5) for y in range(4)]
        source = FakeTileSource({(1, c.x, c.y): f"{c}".encode() for c in coords})
        fetcher = TileFetcher(source, [1], workers=3, pacing_max_s=0)

        payloads = list(fetcher.fetch(coords))

        assert sorted(p.coordinate for p in payloads) == sorted(coords)
        assert len(source.calls) == len(coords)

    def test_more_workers_than_tiles(self):
        source = FakeTileSource({(1, 0, 0): b"a"})
        fetcher = TileFetcher(source, [1], workers=16, pacing_max_s=0)

        assert len(list(fetcher.fetch(_coords((0, 0))))) == 1

    def test_empty_tile_list(self):
        fetcher = TileFetcher(FakeTileSource(), [1], workers=4, pacing_max_s=0)
        assert list(fetcher.fetch([])) == []
        assert fetcher.stats.requested == 0

    def test_pacing_sleep_after_success(self, no_pacing):
        source = FakeTileSource({(1, 0, 0): b"a"})
        fetcher = TileFetcher(source, [1], workers=1, pacing_max_s=4.0)

        list(fetcher.fetch(_coords((0, 0), (0, 1))))

        assert no_pacing.call_count == 1
        delay = no_pacing.call_args[0][0]
        assert 0.0 <= delay <= 4.0

    def test_resolver_error_falls_through_to_next_variant(self):
        source = FakeTileSource(
            {
                (1, 0, 0): RuntimeError("backend says no"),
                (2, 0, 0): b"data",
                (1, 1, 0): b"other",
            }
        )
        fetcher = TileFetcher(source, [1, 2], workers=1, pacing_max_s=0)

        payloads = list(fetcher.fetch(_coords((0, 0), (1, 0))))

        assert [(p.coordinate, p.variant) for p in payloads] == [
            (TileCoordinate(0, 0), 2),
            (TileCoordinate(1, 0), 1),
        ]
        assert fetcher.stats.failed_attempts == 1

    def test_resolver_error_on_every_variant_skips_tile(self):
        source = FakeTileSource(
            {(1, 0, 0): KeyError("a"), (2, 0, 0): ValueError("b"), (1, 1, 0): b"ok"}
        )
        fetcher = TileFetcher(source, [1, 2], workers=1, pacing_max_s=0)

        payloads = list(fetcher.fetch(_coords((0, 0), (1, 0))))

        assert [p.coordinate for p in payloads] == _coords((1, 0))
        assert fetcher.stats.failed_attempts == 2
        assert fetcher.stats.missing == 1

    def test_worker_crash_raises_after_drain(self):
        source = FakeTileSource({(1, 0, 0): b"a", (1, 1, 0): b"b"})
        fetcher = TileFetcher(source, [1], workers=1, pacing_max_s=1.0)

        received = []
        with patch(
            "chuk_mcp_lidar.core.fetcher.random.uniform", side_effect=RuntimeError("rng broken")
        ):
            with pytest.raises(WorkerCrashedError, match="rng broken"):
                for payload in fetcher.fetch(_coords((0, 0), (1, 0))):
                    received.append(payload)

        assert [p.coordinate for p in received] == _coords((0, 0))
