"""
Link extraction from HTML documents.

Anchors are found with a tolerant pattern match rather than a DOM parser,
so malformed markup resolves exactly as the attribute text reads.
"""

import re
import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit


logger = logging.getLogger(__name__)

ANCHOR_HREF_PATTERN = re.compile(
    r'''<a\b[^>]*?\bhref\s*=\s*(?:"([^"]+)"|'([^']+)'|([^\s"'=<>`]+))[^>]*>''',
    re.IGNORECASE
)
BASE_HREF_PATTERN = re.compile(
    r'''<base\b[^>]*?\bhref\s*=\s*(?:"([^"]+)"|'([^']+)'|([^\s"'=<>`]+))[^>]*>''',
    re.IGNORECASE
)
SKIPPED_SCHEMES = re.compile(r'^(mailto:|javascript:|tel:)', re.IGNORECASE)

_NAMED_ENTITIES = {
    'amp': '&',
    'lt': '<',
    'gt': '>',
    'quot': '"',
    'apos': "'",
}
_ENTITY_PATTERN = re.compile(r'&(?:#(\d+)|#[xX]([0-9a-fA-F]+)|(amp|lt|gt|quot|apos));', re.IGNORECASE)


def _replace_entity(match: re.Match) -> str:
    decimal, hexadecimal, name = match.groups()
    if name:
        return _NAMED_ENTITIES[name.lower()]
    try:
        return chr(int(decimal) if decimal else int(hexadecimal, 16))
    except (ValueError, OverflowError):
        return match.group(0)


def decode_html_attr(value: str) -> str:
    """Decode the standard HTML entities and numeric character references."""
    return _ENTITY_PATTERN.sub(_replace_entity, value)


def _first_group(match: re.Match) -> str:
    return next((g for g in match.groups() if g is not None), '')


def find_base_href(html: str) -> Optional[str]:
    """Return the raw href of the document's ``<base>`` element, if any."""
    match = BASE_HREF_PATTERN.search(html)
    if not match:
        return None
    return decode_html_attr(_first_group(match)).strip() or None


def _resolve(href: str, base: str) -> Optional[str]:
    try:
        absolute = urljoin(base, href)
        parts = urlsplit(absolute)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return None

    if not parts.scheme:
        return None
    if parts.scheme.lower() in ('http', 'https') and not parts.hostname:
        return None
    return absolute


def extract_links(html: str, base_url: str) -> List[str]:
    """
    Extract absolute link targets from anchor tags.

    Args:
        html: Raw HTML document
        base_url: URL the document was fetched from

    Returns:
        Absolute URLs in order of first occurrence, without exact duplicates
    """
    base = base_url
    base_in_doc = find_base_href(html)
    if base_in_doc:
        base = _resolve(base_in_doc, base_url) or base_url

    links: List[str] = []
    seen = set()

    for match in ANCHOR_HREF_PATTERN.finditer(html):
        href = decode_html_attr(_first_group(match)).strip()
        if not href or SKIPPED_SCHEMES.match(href):
            continue

        absolute = _resolve(href, base)
        if absolute is None:
            logger.debug(f"Dropping unresolvable href {href!r} on {base_url}")
            continue

        if absolute not in seen:
            seen.add(absolute)
            links.append(absolute)

    return links
