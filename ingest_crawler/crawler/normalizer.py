"""
URL normalization used as the dedup key of the frontier.
"""

import re
from typing import Dict, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from ..exceptions import InvalidUrl


# Hostnames known to serve the same site as their canonical counterpart.
HOST_ALIASES: Dict[str, str] = {
    'www.bccohp.ca': 'oralhealthbc.ca',
    'bccohp.ca': 'oralhealthbc.ca',
}

DEFAULT_PORTS = {'http': 80, 'https': 443}

_MULTI_SLASH = re.compile(r'/{2,}')


def _split(raw: str):
    if not isinstance(raw, str):
        raise InvalidUrl(f"Not a URL string: {raw!r}")

    candidate = raw.strip()
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as e:
        raise InvalidUrl(f"Invalid URL {candidate!r}: {e}") from e

    if not parts.scheme or not parts.hostname:
        raise InvalidUrl(f"Not an absolute URL: {candidate!r}")

    return parts, port


def _host_port(scheme: str, hostname: str, port: Optional[int]) -> str:
    host = f"[{hostname}]" if ':' in hostname else hostname
    if port is None or DEFAULT_PORTS.get(scheme) == port:
        return host
    return f"{host}:{port}"


def normalize_url(raw: str, aliases: Optional[Mapping[str, str]] = None) -> str:
    """
    Canonicalize a URL into a stable comparison key.

    - Lowercases scheme and hostname
    - Rewrites aliased hostnames to their canonical host
    - Drops the fragment
    - Collapses repeated slashes and strips one trailing slash
    - Removes default ports (:80 for http, :443 for https)

    Raises:
        InvalidUrl: if ``raw`` is not an absolute URL with a host
    """
    parts, port = _split(raw)

    scheme = parts.scheme.lower()
    hostname = parts.hostname.lower()

    alias_table = HOST_ALIASES if aliases is None else aliases
    hostname = alias_table.get(hostname, hostname)

    netloc = _host_port(scheme, hostname, port)
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _MULTI_SLASH.sub('/', parts.path)
    if len(path) > 1 and path.endswith('/'):
        path = path[:-1]
    if not path:
        path = '/'

    return urlunsplit((scheme, netloc, path, parts.query, ''))


def get_origin(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL, omitting default ports."""
    parts, port = _split(url)
    scheme = parts.scheme.lower()
    return f"{scheme}://{_host_port(scheme, parts.hostname.lower(), port)}"


def is_http_url(url: str) -> bool:
    """Check if URL is an absolute http(s) URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in ('http', 'https') and bool(parts.netloc)
