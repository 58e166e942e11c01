"""
The interception layer: wires registry, fetcher and rewriter together so
a player only ever sees `{proxy_base}/...` urls.
"""

import logging
import re
from urllib.parse import unquote, urlparse, urlunparse

from features import config
from features.playlist_rewriter import PlaylistRewriter, proxy_path
from features.resource_registry import ResourceKind, ResourceRegistry
from features.stream_fetcher import MultiStrategyFetcher
from features.stream_validator import ContentKind

LEGACY_PREFIX = "proxy://"


def clean_stream_url(url):
    """Undo the old `proxy://<quoted url>` wrapping if present."""
    url = url.strip()
    if url.startswith(LEGACY_PREFIX):
        url = unquote(url[len(LEGACY_PREFIX):])
    return url


def to_m3u8_url(url):
    """
    Xtream-codes servers answer /user/pass/<id> and /live/user/pass/<id>
    with a raw stream; the .m3u8 form under /live/ gives the HLS playlist.
    """
    parsed = urlparse(url)
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) == 3 and re.fullmatch(r"\d+", parts[2]):
        path = f"/live/{parts[0]}/{parts[1]}/{parts[2]}.m3u8"
    elif len(parts) >= 4 and parts[0] == "live" and re.fullmatch(r"\d+", parts[3]):
        path = f"/live/{parts[1]}/{parts[2]}/{parts[3]}.m3u8"
    else:
        return url
    return urlunparse(parsed._replace(path=path))


def is_direct_transport_stream(url):
    return urlparse(url).path.lower().endswith(".ts")


class StreamInterceptor:

    def __init__(self, registry=None, fetcher=None, proxy_base=config.PROXY_BASE):
        self.registry = registry if registry is not None else ResourceRegistry()
        self.fetcher = fetcher if fetcher is not None else MultiStrategyFetcher()
        self.proxy_base = proxy_base.rstrip("/")
        self.rewriter = PlaylistRewriter(self.registry, self.proxy_base)

    def register(self, url):
        """Register a channel's stream url; returns the id and its manifest path."""
        # xtream .m3u8 form applies to player urls only, variant urls stay as written
        real_url = to_m3u8_url(clean_stream_url(url))
        stream_id = self.registry.register(real_url, ResourceKind.MANIFEST)
        manifest_path = proxy_path(self.proxy_base, ResourceKind.MANIFEST, stream_id)
        logging.info(f"Stream registered as {manifest_path}")
        return {"streamId": stream_id, "proxyUrl": manifest_path}

    async def resolve_manifest(self, handle_id):
        """
        Rewritten playlist text for a manifest handle.
        Raises UnknownResource or ExhaustedStrategies.
        """
        real_url = self.registry.resolve(handle_id)
        if is_direct_transport_stream(real_url):
            return self.rewriter.direct_stream_playlist(real_url)
        # live playlists change every few seconds, always go upstream
        content = await self.fetcher.fetch(real_url, ContentKind.TEXT_PLAYLIST, use_cache=False)
        return self.rewriter.rewrite(content, real_url)

    async def resolve_segment(self, handle_id):
        return await self.fetcher.fetch(self.registry.resolve(handle_id), ContentKind.BINARY_SEGMENT)

    async def resolve_key(self, handle_id):
        return await self.fetcher.fetch(self.registry.resolve(handle_id), ContentKind.BINARY_SEGMENT)
