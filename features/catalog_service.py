import asyncio
import logging
import time

import requests

from features import config
from features.channel_checker import PROFILES, detect_quality, fallback_catalog, parse_catalog
from features.errors import ExhaustedStrategies
from features.models import Channel, ChannelCatalog, Quality, Status
from features.sortgenre import SPORTS_CATEGORY, channel_number, sorted_categories, synthetic_viewers
from features.stream_validator import ContentKind
from features.time_cache import TimedCache

CATALOG_CACHE_KEY = "channels_parsed"


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def convert_backend_channel(index, item, language):
    name = item.get("name") or "Unknown Channel"
    category = item.get("group") or item.get("category") or SPORTS_CATEGORY
    try:
        quality = Quality(item.get("quality") or "")
    except ValueError:
        quality = detect_quality(name)
    return Channel(
        id=_as_int(item.get("id"), index),
        name=name,
        category=category,
        logo_url=item.get("logo") or "",
        stream_url=item.get("url") or "",
        quality=quality,
        language=language,
        status=Status.OFFLINE if item.get("status") == "offline" else Status.LIVE,
        viewers=_as_int(item.get("viewers"), 0) or synthetic_viewers(name, category),
        description=item.get("description") or f"{name} canlı yayını",
        sort_key=item.get("number") if item.get("number") is not None else channel_number(name),
        tvg_id=item.get("tvg_id") or "",
        group=item.get("group") or category,
    )


def fetch_backend_channels(origin, language="tr", timeout=15):
    """
    Ask a legacy backend for its already-parsed channel list.
    Returns [] when the backend is unreachable or has nothing to offer.
    """
    try:
        response = requests.get(f"{origin}/api/channels", headers={"Accept": "application/json"}, timeout=timeout)
        response.raise_for_status()
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        logging.error(f"Error fetching backend channels: {e}")
        return []

    if not isinstance(result, dict):
        logging.error(f"Unexpected backend payload: {type(result).__name__}")
        return []
    if not result.get("success"):
        logging.warning(f"Backend returned error: {result.get('message')}")
    items = result.get("channels")
    if not isinstance(items, list):
        return []

    channels = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict) or not item.get("url"):
            continue
        try:
            channels.append(convert_backend_channel(index, item, language))
        except (AttributeError, TypeError, ValueError) as e:
            logging.warning(f"Skipping backend channel {item.get('name')}: {e}")
    logging.info(f"Loaded {len(channels)} channels from backend {origin}")
    return channels


class CatalogService:
    """
    Produces the channel catalog: legacy backend first (when configured),
    then the upstream M3U through the multi-strategy fetcher, and the
    fixed fallback channels when both fail. Successful catalogs are cached
    for the profile's TTL.
    """

    def __init__(self, fetcher, source_url=config.CATALOG_URL, profile=None, backend_origin=config.BACKEND_ORIGIN,
                 retries=config.CATALOG_RETRIES, retry_delay=config.CATALOG_RETRY_DELAY, cache=None):
        self.fetcher = fetcher
        self.source_url = source_url
        self.profile = profile or PROFILES[config.CATALOG_PROFILE]
        self.backend_origin = backend_origin
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.cache = cache if cache is not None else TimedCache(self.profile.cache_ttl)

    async def get_catalog(self):
        cached = self.cache.get(CATALOG_CACHE_KEY)
        if cached is not None:
            logging.info("Using cached channels")
            return cached
        return await self.refresh()

    async def refresh(self):
        """Rebuild the catalog ignoring the cache."""
        catalog = await self._load_from_backend()
        if catalog is None:
            catalog = await self._load_from_upstream()
        if catalog.succeeded:
            self.cache.set(CATALOG_CACHE_KEY, catalog)
            logging.info(f"Catalog ready: {len(catalog.channels)} channels from {catalog.source}")
        return catalog

    async def _load_from_backend(self):
        if not self.backend_origin:
            return None
        # requests blocks, keep it off the event loop
        channels = await asyncio.to_thread(fetch_backend_channels, self.backend_origin, self.profile.language)
        if not channels:
            return None
        return ChannelCatalog(channels, time.time(), source="backend")

    async def _fetch_document(self):
        delay = self.retry_delay
        for attempt in range(1, self.retries + 1):
            try:
                return await self.fetcher.fetch(self.source_url, ContentKind.TEXT_PLAYLIST)
            except ExhaustedStrategies as e:
                logging.warning(f"Catalog attempt {attempt}/{self.retries} failed: {e}")
                if attempt < self.retries:
                    await asyncio.sleep(delay)
                    delay *= 2
        return None

    async def _load_from_upstream(self):
        logging.info(f"Fetching fresh M3U data from {self.source_url}")
        document = await self._fetch_document()
        if document is None:
            logging.warning("Catalog source unreachable, using fallback channels")
            return fallback_catalog()
        return parse_catalog(document, self.profile)

    def clear_cache(self):
        self.cache.clear()

    async def channels(self, category=None):
        catalog = await self.get_catalog()
        if not category:
            return catalog.channels
        wanted = category.lower()
        return [ch for ch in catalog.channels if ch.category.lower() == wanted]

    async def search(self, query):
        lowered = query.lower()
        catalog = await self.get_catalog()
        return [
            ch for ch in catalog.channels
            if lowered in ch.name.lower() or lowered in ch.description.lower() or lowered in ch.category.lower()
        ]

    async def find(self, channel_id):
        catalog = await self.get_catalog()
        for channel in catalog.channels:
            if channel.id == channel_id:
                return channel
        return None

    async def categories(self):
        catalog = await self.get_catalog()
        return sorted_categories(catalog.channels)

    async def stats(self):
        catalog = await self.get_catalog()
        return {
            "total_channels": len(catalog.channels),
            "categories": sorted_categories(catalog.channels),
            "server_time": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "live_count": sum(1 for ch in catalog.channels if ch.status is Status.LIVE),
        }
