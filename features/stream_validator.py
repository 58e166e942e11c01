import logging
from enum import Enum

import m3u8

from features.errors import ExhaustedStrategies

PLAYLIST_HEADER = "#EXTM3U"
MIN_CONTENT_LENGTH = 10
# only the head of a binary body is inspected for disguised error pages
BINARY_SNIFF_BYTES = 2048

HTML_MARKERS = ("<!doctype html", "<html")
DENIAL_PHRASES = (
    "access denied",
    "403 forbidden",
    "rate limit exceeded",
    "too many requests",
)


class ContentKind(Enum):
    TEXT_PLAYLIST = "text"
    BINARY_SEGMENT = "binary"


def _looks_like_failure(text):
    lowered = text.lower()
    if any(marker in lowered for marker in HTML_MARKERS):
        return "html page"
    if any(phrase in lowered for phrase in DENIAL_PHRASES):
        return "denial notice"
    return None


def is_valid_content(content, kind, source_url=""):
    """
    Decide whether fetched content is the real thing or a disguised failure
    (error page served with a 200, rate limit notice, empty body).
    Never raises; anything unexpected counts as invalid.
    """
    try:
        if content is None or len(content) < MIN_CONTENT_LENGTH:
            logging.warning(f"Rejected near-empty body from {source_url}")
            return False

        if isinstance(content, bytes):
            text = content[:BINARY_SNIFF_BYTES].decode("latin-1") if kind is ContentKind.BINARY_SEGMENT \
                else content.decode("utf-8", errors="replace")
        else:
            text = content if kind is ContentKind.TEXT_PLAYLIST else content[:BINARY_SNIFF_BYTES]

        reason = _looks_like_failure(text)
        if reason:
            logging.warning(f"Rejected {reason} from {source_url}")
            return False

        if kind is ContentKind.TEXT_PLAYLIST and PLAYLIST_HEADER not in text:
            logging.warning(f"Rejected body without playlist header from {source_url}")
            return False

        return True
    except Exception as e:
        logging.error(f"Validator error for {source_url}: {e}")
        return False


async def probe_stream(fetcher, url):
    """
    Check whether a channel stream is actually playing.
    Returns True when the manifest parses and its first segment (or a
    variant, for master playlists) is there, False otherwise.
    """
    try:
        text = await fetcher.fetch(url, ContentKind.TEXT_PLAYLIST, use_cache=False)
    except ExhaustedStrategies:
        logging.warning(f"Stream not accessible: {url}")
        return False

    try:
        playlist = m3u8.loads(text, uri=url)
    except Exception as e:
        logging.error(f"Failed to parse playlist: {url}, Error: {e}")
        return False

    if playlist.is_variant:
        if not playlist.playlists:
            logging.warning(f"No variants found in master playlist: {url}")
            return False
        return True

    if not playlist.segments:
        logging.warning(f"No segments found in playlist: {url}")
        return False

    segment_url = playlist.segments[0].absolute_uri
    try:
        await fetcher.fetch(segment_url, ContentKind.BINARY_SEGMENT)
    except ExhaustedStrategies:
        logging.warning(f"First segment not accessible: {segment_url}")
        return False
    return True
