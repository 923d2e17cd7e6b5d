"""URL helpers for the SSE stream endpoint."""

import re
from collections.abc import Iterable
from urllib.parse import quote, urlsplit

DEFAULT_STREAM_PATH = "/api/sse-simple/"
TUNNEL_BYPASS_PARAM = "ngrok-skip-browser-warning=true"

# Characters left unescaped by JavaScript's encodeURIComponent.
_TOKEN_SAFE_CHARS = "-_.!~*'()"
_TOKEN_PATTERN = re.compile(r"token=[^&\s]+")


def is_tunnel_host(base_url: str, markers: Iterable[str]) -> bool:
    """Return whether the base URL host matches a tunneling-proxy marker."""
    host = (urlsplit(base_url).hostname or "").lower()
    if not host:
        return False
    return any(marker and marker.lower() in host for marker in markers)


def build_stream_url(
    base_url: str,
    token: str,
    *,
    path: str = DEFAULT_STREAM_PATH,
    tunnel_markers: Iterable[str] = ("ngrok",),
) -> str:
    """Build the stream URL carrying ``token`` as a query credential."""
    url = f"{base_url.rstrip('/')}{path}?token={quote(token, safe=_TOKEN_SAFE_CHARS)}"
    if is_tunnel_host(base_url, tunnel_markers):
        url = f"{url}&{TUNNEL_BYPASS_PARAM}"
    return url


def redact_token(url: str) -> str:
    """Mask the token query value so URLs can be logged."""
    return _TOKEN_PATTERN.sub("token=***", url)
