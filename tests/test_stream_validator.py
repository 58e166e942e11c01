import asyncio

from features.stream_validator import ContentKind, is_valid_content, probe_stream

PLAYLIST = "#EXTM3U\n#EXT-X-TARGETDURATION:6\n#EXTINF:6.0,\nseg001.ts\n"
MASTER = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=800000\nlow/index.m3u8\n"


def test_accepts_playlist():
    assert is_valid_content(PLAYLIST, ContentKind.TEXT_PLAYLIST, "https://h.example/a.m3u8")


def test_rejects_html_regardless_of_length():
    page = "<!DOCTYPE html><html><body>#EXTM3U</body></html>" + "x" * 5000
    assert not is_valid_content(page, ContentKind.TEXT_PLAYLIST)
    assert not is_valid_content(page.encode(), ContentKind.BINARY_SEGMENT)
    assert not is_valid_content("<!doctype html>", ContentKind.TEXT_PLAYLIST)


def test_rejects_tiny_body():
    assert not is_valid_content("#EXTM", ContentKind.TEXT_PLAYLIST)
    assert not is_valid_content(b"\x00\x01\x02\x03\x04", ContentKind.BINARY_SEGMENT)
    assert not is_valid_content("", ContentKind.TEXT_PLAYLIST)
    assert not is_valid_content(None, ContentKind.TEXT_PLAYLIST)


def test_rejects_playlist_without_header():
    body = "#EXT-X-TARGETDURATION:6\n#EXTINF:6.0,\nseg001.ts\n"
    assert not is_valid_content(body, ContentKind.TEXT_PLAYLIST)


def test_header_not_required_for_binary():
    segment = bytes([0x47]) + bytes(range(256)) * 4
    assert is_valid_content(segment, ContentKind.BINARY_SEGMENT)


def test_rejects_denial_phrases():
    assert not is_valid_content("#EXTM3U\nRate limit exceeded, slow down", ContentKind.TEXT_PLAYLIST)
    assert not is_valid_content("#EXTM3U 403 Forbidden", ContentKind.TEXT_PLAYLIST)
    assert not is_valid_content(b"Access Denied for this client", ContentKind.BINARY_SEGMENT)


def test_never_raises_on_odd_input():
    assert is_valid_content(12345, ContentKind.TEXT_PLAYLIST) is False


def test_probe_media_playlist_checks_first_segment(fake_fetcher):
    fetcher = fake_fetcher({
        "https://h.example/live/a.m3u8": PLAYLIST,
        "https://h.example/live/seg001.ts": b"\x47" * 188,
    })

    assert asyncio.run(probe_stream(fetcher, "https://h.example/live/a.m3u8"))
    assert fetcher.calls[1][0] == "https://h.example/live/seg001.ts"


def test_probe_fails_when_segment_missing(fake_fetcher):
    fetcher = fake_fetcher({"https://h.example/live/a.m3u8": PLAYLIST})
    assert not asyncio.run(probe_stream(fetcher, "https://h.example/live/a.m3u8"))


def test_probe_master_playlist(fake_fetcher):
    fetcher = fake_fetcher({"https://h.example/master.m3u8": MASTER})
    assert asyncio.run(probe_stream(fetcher, "https://h.example/master.m3u8"))


def test_probe_unreachable_stream(fake_fetcher):
    assert not asyncio.run(probe_stream(fake_fetcher(), "https://h.example/gone.m3u8"))


def test_probe_empty_playlist(fake_fetcher):
    fetcher = fake_fetcher({"https://h.example/empty.m3u8": "#EXTM3U\n#EXT-X-VERSION:3\n"})
    assert not asyncio.run(probe_stream(fetcher, "https://h.example/empty.m3u8"))
