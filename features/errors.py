class StreamProxyError(Exception):
    """Base class for every failure raised by the stream proxy."""


class TransportFailure(StreamProxyError):
    """A single strategy attempt hit a network error, timeout or bad status."""


class ValidationFailure(StreamProxyError):
    """Content came back but looks like an error page or is otherwise unusable."""


class ExhaustedStrategies(StreamProxyError):
    """Every fetch strategy failed for one url."""

    def __init__(self, url):
        super().__init__(f"all fetch strategies failed for {url}")
        self.url = url


class UnknownResource(StreamProxyError, KeyError):
    """Handle id is not known to the registry."""

    def __init__(self, handle_id):
        super().__init__(f"unknown resource {handle_id}")
        self.handle_id = handle_id

    def __str__(self):
        return f"unknown resource {self.handle_id}"


class MalformedCatalog(StreamProxyError):
    """No usable channel could be extracted from a catalog document."""
