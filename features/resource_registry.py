import itertools
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum

from features.errors import UnknownResource


class ResourceKind(Enum):
    MANIFEST = "manifest"
    SEGMENT = "segment"
    KEY = "key"


@dataclass(frozen=True)
class ResourceHandle:
    id: str
    real_url: str
    kind: ResourceKind
    registered_at: float


class ResourceRegistry:
    """Maps opaque handle ids to the real upstream urls they stand for.

    Ids come from a monotonic counter and are never reused. The same url
    registered twice gets two handles. Nothing is ever evicted, so the
    registry grows for as long as the process lives.
    """

    def __init__(self, start=1000):
        self._counter = itertools.count(start)
        self._handles = {}
        self._lock = threading.Lock()

    def register(self, url, kind=ResourceKind.MANIFEST):
        with self._lock:
            handle_id = str(next(self._counter))
            self._handles[handle_id] = ResourceHandle(handle_id, url, kind, time.time())
        logging.debug(f"registered {kind.value} {handle_id}")
        return handle_id

    def lookup(self, handle_id):
        """Return the full handle, raising UnknownResource if absent."""
        with self._lock:
            handle = self._handles.get(str(handle_id))
        if handle is None:
            raise UnknownResource(handle_id)
        return handle

    def resolve(self, handle_id):
        return self.lookup(handle_id).real_url

    def __contains__(self, handle_id):
        with self._lock:
            return str(handle_id) in self._handles

    def __len__(self):
        with self._lock:
            return len(self._handles)
