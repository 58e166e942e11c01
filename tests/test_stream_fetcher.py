import asyncio
import base64
import re

import pytest
from aioresponses import aioresponses

from features.errors import ExhaustedStrategies
from features.stream_fetcher import (
    DirectStrategy,
    FetchStrategy,
    JsonRelayStrategy,
    MultiStrategyFetcher,
    RawRelayStrategy,
    build_strategies,
    decode_envelope_contents,
)
from features.stream_validator import ContentKind
from features.time_cache import TimedCache

URL = "https://h.example/live/a/index.m3u8"
PLAYLIST = "#EXTM3U\n#EXTINF:6.0,\nseg001.ts\n"
SEGMENT = b"\x47" + b"\x10" * 1000

JSON_RELAY = re.compile(r"^https://relay-json\.test/get.*")
RAW_RELAY = re.compile(r"^https://relay-raw\.test/raw.*")


@pytest.fixture
def fetcher():
    strategies = [
        DirectStrategy(),
        JsonRelayStrategy("https://relay-json.test/get?url={url}"),
        RawRelayStrategy("https://relay-raw.test/raw?url={url}"),
    ]
    return MultiStrategyFetcher(strategies, cache=TimedCache(300), text_timeout=5, binary_timeout=5)


def test_direct_success_populates_cache(fetcher):
    with aioresponses() as m:
        m.get(URL, status=200, body=PLAYLIST)
        content = asyncio.run(fetcher.fetch(URL, ContentKind.TEXT_PLAYLIST))

    assert content == PLAYLIST
    assert fetcher.cache.get(URL) == PLAYLIST


def test_cached_text_served_without_network(fetcher):
    fetcher.cache.set(URL, PLAYLIST)
    with aioresponses():
        # any real request would fail with a connection error
        assert asyncio.run(fetcher.fetch(URL)) == PLAYLIST


def test_use_cache_false_goes_upstream(fetcher):
    fetcher.cache.set(URL, "#EXTM3U\n#stale")
    with aioresponses() as m:
        m.get(URL, status=200, body=PLAYLIST)
        assert asyncio.run(fetcher.fetch(URL, use_cache=False)) == PLAYLIST
    assert fetcher.cache.get(URL) == PLAYLIST


def test_falls_back_to_json_relay(fetcher):
    with aioresponses() as m:
        m.get(URL, status=403)
        m.get(JSON_RELAY, status=200, payload={"contents": PLAYLIST})
        assert asyncio.run(fetcher.fetch(URL)) == PLAYLIST


def test_json_relay_base64_segment(fetcher):
    encoded = "data:video/mp2t;base64," + base64.b64encode(SEGMENT).decode()
    with aioresponses() as m:
        m.get(URL, status=500)
        m.get(JSON_RELAY, status=200, payload={"contents": encoded})
        assert asyncio.run(fetcher.fetch(URL, ContentKind.BINARY_SEGMENT)) == SEGMENT


def test_disguised_error_page_skips_to_next_strategy(fetcher):
    with aioresponses() as m:
        m.get(URL, status=200, body="<!DOCTYPE html><html>blocked</html>")
        m.get(JSON_RELAY, status=200, payload={"contents": "Rate limit exceeded"})
        m.get(RAW_RELAY, status=200, body=PLAYLIST)
        assert asyncio.run(fetcher.fetch(URL)) == PLAYLIST


def test_all_strategies_non_200_is_exhausted_and_uncached(fetcher):
    with aioresponses() as m:
        m.get(URL, status=502)
        m.get(JSON_RELAY, status=503)
        m.get(RAW_RELAY, status=404)
        with pytest.raises(ExhaustedStrategies):
            asyncio.run(fetcher.fetch(URL))

    assert fetcher.cache.get(URL) is None


def test_segments_are_not_cached(fetcher):
    seg_url = "https://h.example/live/a/seg001.ts"
    with aioresponses() as m:
        m.get(seg_url, status=200, body=SEGMENT)
        assert asyncio.run(fetcher.fetch(seg_url, ContentKind.BINARY_SEGMENT)) == SEGMENT

    assert len(fetcher.cache) == 0


def test_relay_url_quotes_target():
    relay = RawRelayStrategy("https://relay-raw.test/raw?url={url}")
    assert relay.request_url("https://h.example/a b.m3u8?x=1") == \
        "https://relay-raw.test/raw?url=https%3A%2F%2Fh.example%2Fa%20b.m3u8%3Fx%3D1"


def test_decode_envelope_contents():
    assert decode_envelope_contents("") == b""
    assert decode_envelope_contents("#EXTM3U") == b"#EXTM3U"
    assert decode_envelope_contents("data:application/octet-stream;base64,AAEC") == b"\x00\x01\x02"


def test_build_strategies_order():
    strategies = build_strategies(
        relays=[("json", "https://j.test/get?url={url}"), ("raw", "https://r.test/?{url}")],
        backend_origin="https://backend.test",
    )

    assert isinstance(strategies[0], DirectStrategy)
    assert isinstance(strategies[1], JsonRelayStrategy)
    assert type(strategies[2]) is RawRelayStrategy
    assert strategies[3].request_url("https://h.example/a").startswith("https://backend.test/api/proxy?url=")


class StallingStrategy(FetchStrategy):
    name = "stalling"

    async def fetch(self, session, url):
        await asyncio.sleep(5)
        return PLAYLIST.encode()


class InstantStrategy(FetchStrategy):
    name = "instant"

    async def fetch(self, session, url):
        return PLAYLIST.encode()


def test_slow_strategy_times_out_and_next_one_answers():
    fetcher = MultiStrategyFetcher([StallingStrategy(), InstantStrategy()], cache=TimedCache(300),
                                   text_timeout=0.2)
    assert asyncio.run(fetcher.fetch(URL)) == PLAYLIST


def test_every_strategy_timing_out_is_exhausted():
    fetcher = MultiStrategyFetcher([StallingStrategy(), StallingStrategy()], cache=TimedCache(300),
                                   text_timeout=0.1)

    with pytest.raises(ExhaustedStrategies):
        asyncio.run(fetcher.fetch(URL))
    assert len(fetcher.cache) == 0
