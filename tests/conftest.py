import pytest

from features.errors import ExhaustedStrategies


class FakeFetcher:
    """Stands in for MultiStrategyFetcher; answers from a url -> content map."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def fetch(self, url, kind=None, use_cache=True):
        self.calls.append((url, kind, use_cache))
        if url not in self.responses:
            raise ExhaustedStrategies(url)
        return self.responses[url]


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


class FakeClock:

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


SAMPLE_CATALOG = """#EXTM3U
#EXTINF:-1 tvg-id="trtspor.tr" tvg-name="TRT Spor" tvg-logo="http://logo/trt.png" group-title="Sport",TRT Spor
http://x/trtspor.m3u8
#EXTINF:-1 tvg-name="beIN Sports 2 HD" group-title="Sports",beIN Sports 2 HD
http://x/bein2.m3u8
#EXTINF:-1 tvg-name="Show TV" group-title="Entertainment",Show TV
http://x/showtv/playlist.m3u8
#EXTINF:-1 group-title="News",CNN Türk FHD
http://x/live/cnnturk.m3u8
#EXTINF:-1 tvg-name="beIN Sports 1 HD" group-title="Football",beIN Sports 1 HD
http://x/bein1.m3u8
"""


@pytest.fixture
def sample_catalog():
    return SAMPLE_CATALOG
