"""
Rewrites HLS playlists so every upstream reference (variant playlist,
media segment, encryption key) points back at the proxy.

Each reference is registered in the ResourceRegistry and replaced by
`{proxy_base}/{manifest|segment|key}/{handle id}`.
"""

import re
from enum import Enum
from urllib.parse import urljoin

from features.resource_registry import ResourceKind

PLAYLIST_HEADER = "#EXTM3U"
KEY_TAG = "#EXT-X-KEY"
VARIANT_TAG = "#EXT-X-STREAM-INF"
SEGMENT_TAG = "#EXTINF"

# an unterminated quote does not match, so such directives pass through as-is
KEY_URI_RE = re.compile(r'URI="([^"]+)"', re.IGNORECASE)


class LineKind(Enum):
    HEADER = "header"
    DIRECTIVE = "directive"
    KEY_DIRECTIVE = "key"
    BLANK_OR_COMMENT = "blank"
    REFERENCE = "reference"


def classify_line(line):
    if not line:
        return LineKind.BLANK_OR_COMMENT
    if line.startswith(PLAYLIST_HEADER):
        return LineKind.HEADER
    if line.startswith(KEY_TAG):
        return LineKind.KEY_DIRECTIVE
    if line.startswith("#EXT"):
        return LineKind.DIRECTIVE
    if line.startswith("#"):
        return LineKind.BLANK_OR_COMMENT
    return LineKind.REFERENCE


def resolve_reference(uri, base_url):
    """Absolute http(s) uris come back unchanged, anything else is joined to base_url."""
    if uri.startswith(("http://", "https://")):
        return uri
    return urljoin(base_url, uri)


def proxy_path(proxy_base, kind, handle_id):
    return f"{proxy_base}/{kind.value}/{handle_id}"


class PlaylistRewriter:

    def __init__(self, registry, proxy_base):
        self.registry = registry
        self.proxy_base = proxy_base.rstrip("/")

    def _register(self, url, kind):
        return proxy_path(self.proxy_base, kind, self.registry.register(url, kind))

    def _rewrite_key(self, line, base_url):
        match = KEY_URI_RE.search(line)
        if not match:
            return line
        key_url = resolve_reference(match.group(1), base_url)
        path = self._register(key_url, ResourceKind.KEY)
        return line[:match.start()] + f'URI="{path}"' + line[match.end():]

    def rewrite(self, document, base_url):
        lines = document.lstrip("\ufeff").splitlines()
        # leading blank lines would push the header off the first line
        while lines and not lines[0].strip():
            lines.pop(0)

        output = []
        pending = None
        for raw in lines:
            line = raw.strip()
            kind = classify_line(line)

            if kind is LineKind.KEY_DIRECTIVE:
                output.append(self._rewrite_key(line, base_url))
            elif kind is LineKind.REFERENCE:
                target = resolve_reference(line, base_url)
                output.append(self._register(target, pending or ResourceKind.SEGMENT))
                pending = None
            else:
                if line.startswith(VARIANT_TAG):
                    pending = ResourceKind.MANIFEST
                elif line.startswith(SEGMENT_TAG):
                    pending = ResourceKind.SEGMENT
                output.append(line)

        if not output or not output[0].startswith(PLAYLIST_HEADER):
            output.insert(0, PLAYLIST_HEADER)
        return "\n".join(output)

    def direct_stream_playlist(self, stream_url):
        """Single-entry playlist for a bare transport stream url."""
        return "\n".join([
            PLAYLIST_HEADER,
            "#EXT-X-VERSION:3",
            "#EXT-X-TARGETDURATION:10",
            "#EXT-X-MEDIA-SEQUENCE:0",
            "#EXTINF:10.0,",
            self._register(stream_url, ResourceKind.SEGMENT),
            "#EXT-X-ENDLIST",
        ])
