import logging
import re
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from features.errors import MalformedCatalog
from features.models import Channel, ChannelCatalog, Quality, Status
from features.sortgenre import (
    DEFAULT_CATEGORY,
    SORT_POLICIES,
    SPORTS_CATEGORY,
    channel_number,
    is_sport_channel,
    normalize_category,
    synthetic_viewers,
)

# utf-8 text that was decoded as cp1252/latin-1 once too often
ENCODING_FIXES = {
    "Ã§": "ç", "Ã‡": "Ç", "Ã\x87": "Ç",
    "ÄŸ": "ğ", "Ä\x9f": "ğ", "Äž": "Ğ", "Ä\x9e": "Ğ",
    "Ä±": "ı", "Ä°": "İ",
    "Ã¶": "ö", "Ã–": "Ö", "Ã\x96": "Ö",
    "Ã¼": "ü", "Ãœ": "Ü", "Ã\x9c": "Ü",
    "ÅŸ": "ş", "Å\x9f": "ş", "Åž": "Ş", "Å\x9e": "Ş",
    "â€™": "'", "â€˜": "'", "â€œ": '"', "â€\x9d": '"',
    "â€“": "-", "â€”": "-", "â€¦": "...", "â€": '"',
}
_ENCODING_RE = re.compile("|".join(re.escape(k) for k in sorted(ENCODING_FIXES, key=len, reverse=True)))

STREAM_EXTENSIONS = (".m3u8", ".m3u", ".ts")
STREAM_KEYWORDS = ("playlist", "live", "stream", "hls")
# xtream-codes servers for this source family listen on 8080
PORT_MARKER = ":8080"


@dataclass(frozen=True)
class CatalogProfile:
    name: str
    sport_only: bool
    sort_policy: str
    max_channels: Optional[int]
    accept_port_marker: bool
    cache_ttl: float
    language: str = "tr"


PROFILES = {
    "sports": CatalogProfile("sports", sport_only=True, sort_policy="number", max_channels=50,
                             accept_port_marker=True, cache_ttl=60 * 60),
    "general": CatalogProfile("general", sport_only=False, sort_policy="category", max_channels=None,
                              accept_port_marker=False, cache_ttl=60),
}


@dataclass
class _Entry:
    name: str
    logo: str
    group: str
    tvg_id: str
    language: str


FALLBACK_CHANNELS = (
    Channel(1, "beIN Sports 1 HD", SPORTS_CATEGORY, "", "https://tv-trtspor.medya.trt.com.tr/master.m3u8",
            viewers=25000, description="beIN Sports 1 canlı spor yayını", sort_key=1, group=SPORTS_CATEGORY),
    Channel(2, "beIN Sports 2 HD", SPORTS_CATEGORY, "", "https://trkvz-live.daioncdn.net/aspor/aspor.m3u8",
            viewers=20000, description="beIN Sports 2 canlı spor yayını", sort_key=2, group=SPORTS_CATEGORY),
    Channel(3, "TRT Spor HD", SPORTS_CATEGORY, "", "https://tv-trtspor.medya.trt.com.tr/master.m3u8",
            viewers=18000, description="TRT Spor canlı yayını", sort_key="TRT", group=SPORTS_CATEGORY),
    Channel(4, "A Spor HD", SPORTS_CATEGORY, "", "https://trkvz-live.daioncdn.net/aspor/aspor.m3u8",
            viewers=15000, description="A Spor canlı yayını", sort_key="A", group=SPORTS_CATEGORY),
    Channel(5, "Smart Spor HD", SPORTS_CATEGORY, "", "https://tv-trtspor.medya.trt.com.tr/master.m3u8",
            viewers=12000, description="Smart Spor canlı yayını", sort_key="SM", group=SPORTS_CATEGORY),
)
FALLBACK_MESSAGE = "Kanal listesi alınamadı, varsayılan kanallar kullanılıyor"


def repair_encoding(text):
    return _ENCODING_RE.sub(lambda m: ENCODING_FIXES[m.group(0)], text)


def extract_attribute(line, tag):
    match = re.search(rf'(?<![\w-]){re.escape(tag)}="([^"]*)"', line)
    return match.group(1).strip() if match else ""


def extract_display_name(line):
    """Free text after the last comma of an #EXTINF line."""
    if "," not in line:
        return ""
    return line.rsplit(",", 1)[1].strip()


def extract_name(line):
    return extract_attribute(line, "tvg-name") or extract_display_name(line)


def extract_logo(line):
    return extract_attribute(line, "tvg-logo")


def extract_group(line):
    return extract_attribute(line, "group-title")


def extract_tvg_id(line):
    return extract_attribute(line, "tvg-id")


def extract_language(line, default):
    return extract_attribute(line, "tvg-language") or default


def is_stream_url(url, accept_port_marker=False):
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    path = parsed.path.lower()
    lowered = url.lower()
    if any(ext in path for ext in STREAM_EXTENSIONS):
        return True
    if any(keyword in lowered for keyword in STREAM_KEYWORDS):
        return True
    return accept_port_marker and PORT_MARKER in parsed.netloc


def detect_quality(name):
    lowered = name.lower()
    if "4k" in lowered or "uhd" in lowered or "2160" in lowered:
        return Quality.UHD_4K
    if "fhd" in lowered or "1080" in lowered:
        return Quality.FHD
    if "hd" in lowered or "720" in lowered:
        return Quality.HD
    return Quality.SD


def _read_entry(line, profile):
    return _Entry(
        name=extract_name(line),
        logo=extract_logo(line),
        group=extract_group(line),
        tvg_id=extract_tvg_id(line),
        language=extract_language(line, profile.language),
    )


def parse_m3u_playlist(content, profile):
    """
    Parse an extended M3U channel list into Channel records, filtered,
    numbered, sorted and capped according to the profile.
    """
    pairs = []
    pending = None
    for raw in repair_encoding(content).splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#EXTINF:"):
            # an #EXTINF still pending here never got a url, drop it
            pending = _read_entry(line, profile)
        elif line.startswith("#EXTGRP:"):
            if pending and not pending.group:
                pending.group = line.split(":", 1)[1].strip()
        elif line.startswith("#"):
            continue
        elif pending:
            if pending.name and is_stream_url(line, profile.accept_port_marker):
                pairs.append((pending, line))
            pending = None

    logging.info(f"Parsed {len(pairs)} channel entries from M3U")

    if profile.sport_only:
        pairs = [(entry, url) for entry, url in pairs if is_sport_channel(entry.name, entry.group)]

    channels = []
    for number, (entry, url) in enumerate(pairs, start=1):
        category = SPORTS_CATEGORY if profile.sport_only else normalize_category(entry.group)
        channels.append(Channel(
            id=number,
            name=entry.name,
            category=category,
            logo_url=entry.logo,
            stream_url=url,
            quality=detect_quality(entry.name),
            language=entry.language,
            status=Status.LIVE,
            viewers=synthetic_viewers(entry.name, category),
            description=f"{entry.name} canlı yayını",
            sort_key=channel_number(entry.name),
            tvg_id=entry.tvg_id,
            group=entry.group or DEFAULT_CATEGORY,
        ))

    channels = SORT_POLICIES[profile.sort_policy](channels)
    if profile.max_channels is not None:
        channels = channels[:profile.max_channels]
    return channels


def fallback_catalog(message=FALLBACK_MESSAGE, now=time.time):
    return ChannelCatalog(list(FALLBACK_CHANNELS), now(), succeeded=False, message=message, source="fallback")


def parse_catalog(content, profile, now=time.time):
    """Never raises and never returns an empty catalog; failures yield the fallback channels."""
    try:
        channels = parse_m3u_playlist(content, profile)
        if not channels:
            raise MalformedCatalog("no usable channel in catalog document")
    except MalformedCatalog as e:
        logging.warning(f"{e}, using fallback channels")
        return fallback_catalog(now=now)
    except Exception as e:
        logging.error(f"Error parsing catalog: {e}")
        return fallback_catalog(now=now)
    return ChannelCatalog(channels, now())
