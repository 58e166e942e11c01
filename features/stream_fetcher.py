"""
Multi-strategy fetching of playlists and segments.

A fetch walks an ordered list of strategies (direct request first, then
the cross-origin relays) and returns the first body the content
validator accepts. Attempts run strictly one after another, each under
its own time limit. Only the aggregate failure is surfaced.
"""

import asyncio
import base64
import logging
from urllib.parse import quote

import aiohttp

from features import config
from features.errors import ExhaustedStrategies, TransportFailure, ValidationFailure
from features.stream_validator import ContentKind, is_valid_content
from features.time_cache import TimedCache


def decode_envelope_contents(value):
    """Turn the `contents` field of a JSON relay envelope into bytes.

    Binary payloads arrive as `data:<mime>;base64,<payload>` urls, text
    payloads as the plain string.
    """
    if not value:
        return b""
    if value.startswith("data:"):
        idx = value.find("base64,")
        if idx != -1:
            return base64.b64decode(value[idx + len("base64,"):])
    return value.encode("utf-8")


class FetchStrategy:
    """One way of getting the bytes behind a url."""

    name = "strategy"

    def request_url(self, url):
        return url

    def headers(self):
        return {"Accept": "*/*"}

    async def fetch(self, session, url):
        target = self.request_url(url)
        try:
            async with session.get(target, headers=self.headers()) as response:
                if not 200 <= response.status < 300:
                    raise TransportFailure(f"{self.name} returned status {response.status}")
                return await self.read_body(response)
        except aiohttp.ClientError as e:
            raise TransportFailure(f"{self.name} failed: {e}") from e

    async def read_body(self, response):
        return await response.read()


class DirectStrategy(FetchStrategy):
    name = "direct"

    def __init__(self, user_agent=config.USER_AGENT):
        self.user_agent = user_agent

    def headers(self):
        return {"Accept": "*/*", "User-Agent": self.user_agent}


class RawRelayStrategy(FetchStrategy):
    """Relay that answers with the upstream bytes as-is."""

    def __init__(self, template):
        self.template = template
        self.name = f"relay {template.split('?')[0]}"

    def request_url(self, url):
        return self.template.format(url=quote(url, safe=""))


class JsonRelayStrategy(RawRelayStrategy):
    """Relay that wraps the upstream body in a JSON envelope."""

    def __init__(self, template, field="contents"):
        super().__init__(template)
        self.field = field

    async def read_body(self, response):
        try:
            data = await response.json(content_type=None)
        except ValueError as e:
            raise TransportFailure(f"{self.name} sent an unreadable envelope: {e}") from e
        if not isinstance(data, dict):
            raise TransportFailure(f"{self.name} sent an unexpected envelope")
        try:
            return decode_envelope_contents(data.get(self.field) or "")
        except ValueError as e:
            raise TransportFailure(f"{self.name} sent bad base64: {e}") from e


def build_strategies(relays=None, user_agent=config.USER_AGENT, backend_origin=config.BACKEND_ORIGIN):
    """Direct fetch first, then every configured relay in order."""
    strategies = [DirectStrategy(user_agent)]
    for shape, template in (config.RELAY_ENDPOINTS if relays is None else relays):
        if shape == "json":
            strategies.append(JsonRelayStrategy(template))
        else:
            strategies.append(RawRelayStrategy(template))
    if backend_origin:
        strategies.append(RawRelayStrategy(backend_origin + "/api/proxy?url={url}"))
    return strategies


class MultiStrategyFetcher:

    def __init__(self, strategies=None, cache=None, text_timeout=config.TEXT_TIMEOUT,
                 binary_timeout=config.BINARY_TIMEOUT):
        self.strategies = strategies if strategies is not None else build_strategies()
        self.cache = cache if cache is not None else TimedCache(config.DOCUMENT_CACHE_TTL)
        self.timeouts = {
            ContentKind.TEXT_PLAYLIST: text_timeout,
            ContentKind.BINARY_SEGMENT: binary_timeout,
        }

    async def fetch(self, url, kind=ContentKind.TEXT_PLAYLIST, use_cache=True):
        """
        Fetch `url`, returning str for playlists and bytes for segments.
        Raises ExhaustedStrategies when no strategy produced valid content.
        Successful playlist fetches are written to the document cache; pass
        use_cache=False to skip reading it (live playlists).
        """
        if kind is ContentKind.TEXT_PLAYLIST and use_cache:
            cached = self.cache.get(url)
            if cached is not None:
                logging.info(f"Cache hit for {url}")
                return cached

        timeout = self.timeouts[kind]
        async with aiohttp.ClientSession() as session:
            for strategy in self.strategies:
                try:
                    body = await asyncio.wait_for(strategy.fetch(session, url), timeout)
                    content = body.decode("utf-8", errors="replace") if kind is ContentKind.TEXT_PLAYLIST else body
                    if not is_valid_content(content, kind, url):
                        raise ValidationFailure(f"{strategy.name} returned unusable content")
                except asyncio.TimeoutError:
                    logging.warning(f"{strategy.name} timed out after {timeout}s for {url}")
                    continue
                except (TransportFailure, ValidationFailure) as e:
                    logging.warning(f"{e} ({url})")
                    continue

                if kind is ContentKind.TEXT_PLAYLIST:
                    self.cache.set(url, content)
                return content

        logging.error(f"All fetch strategies failed for {url}")
        raise ExhaustedStrategies(url)
