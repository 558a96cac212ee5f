"""
URL normalization and trap filtering.

Normalized URLs are the identity the crawler uses for deduplication, so
``normalize_url`` must be deterministic and idempotent.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

# Query keys stripped during normalization (compared lowercased)
STRIP_PARAMS: frozenset[str] = frozenset((
    # UTM
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "utm_id",
    # Facebook / Meta
    "fbclid", "fb_action_ids", "fb_action_types", "fb_source", "fb_ref",
    # Google
    "gclid", "gclsrc", "dclid", "gbraid", "wbraid",
    # Microsoft
    "msclkid",
    # HubSpot
    "hsa_cam", "hsa_grp", "hsa_mt", "hsa_src", "hsa_ad", "hsa_acc",
    "hsa_net", "hsa_ver", "hsa_la", "hsa_ol", "hsa_kw",
    # Analytics / referrers
    "mc_cid", "mc_eid", "_ga", "_gl", "_ke", "ref", "ref_src",
    # Session ids and cache busters
    "sid", "sessionid", "session_id", "jsessionid", "phpsessid", "aspsessionid",
    "nocache", "_", "timestamp", "cb",
))

# URL shapes that are almost always crawl traps or low-value pages
DEFAULT_DENY_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE) for p in (
        r"/(?:search|buscar|suche|recherche)(?:/|$|\?)",
        r"/(?:tag|tags|category|categories|label|labels)/",
        r"/(?:page|p)/\d+",                           # /page/3
        r"[?&](?:page|p|pg|offset|start)=\d",         # ?page=3
        r"/(?:calendar|event|events)/\d{4}[/-]\d{2}",  # /calendar/2024/01
        r"/(?:login|logout|register|signup|signin|signout|account|my-?account"
        r"|cart|checkout|wishlist)\b",
        r"/(?:wp-admin|admin|administrator|cgi-bin)/",
        r"/(?:feed|rss|atom|xmlrpc)(?:/|$)",
        r"/(?:print|pdf|share|email|mailto)(?:/|$)",
        r"\.(?:pdf|zip|gz|tar|rar|exe|dmg|iso|mp3|mp4|avi|mov|wmv"
        r"|doc|docx|xls|xlsx|ppt|pptx)$",
        r"[?&](?:sort|order|filter|view|display|limit|lang|currency|size|color)=",
        r"[?&](?:replytocom|action|preview|doing_wp_cron)=",
    )
)

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left untouched when re-quoting the path ("%" keeps it idempotent)
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_MULTI_SLASH = re.compile(r"/{2,}")


def normalize_url(raw: str, base: str) -> Optional[str]:
    """
    Normalize ``raw`` relative to ``base``; return None if it is not http(s).

    - Resolves relative references and drops the fragment
    - Lowercases scheme and host, drops default ports
    - Removes tracking / session query parameters, sorts the rest by key
    - Collapses repeated slashes and strips the trailing slash (except "/")
    """
    if raw is None:
        return None

    try:
        parts = urlsplit(urljoin(base, raw.strip()))
        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            return None

        hostname = (parts.hostname or "").lower()
        if not hostname:
            return None
        port = parts.port
    except ValueError:
        # Malformed netloc (bad port, unbalanced IPv6 brackets)
        return None

    if ":" in hostname:
        hostname = f"[{hostname}]"
    netloc = hostname
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{hostname}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _MULTI_SLASH.sub("/", quote(parts.path, safe=_PATH_SAFE)) or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]

    params = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key.lower() not in STRIP_PARAMS
    ]
    # Stable sort: repeated keys keep their relative order
    params.sort(key=lambda kv: kv[0])
    query = urlencode(params)

    return urlunsplit((scheme, netloc, path, query, ""))


def origin_of(url: str) -> Optional[str]:
    """Return ``scheme://host[:port]`` for an absolute URL, or None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc.rsplit('@', 1)[-1]}"


def is_same_origin(url: str, origin: str) -> bool:
    """Check if a normalized URL belongs to the crawl origin."""
    return origin_of(url) == origin


def compile_patterns(patterns: Optional[Iterable[str]]) -> List[Pattern[str]]:
    """
    Compile caller-supplied regex strings (case-insensitive).

    Raises ValueError naming the offending pattern if one does not compile.
    """
    compiled: List[Pattern[str]] = []
    for pattern in patterns or ():
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e
    return compiled


def _match_targets(url: str) -> Tuple[str, str]:
    """The full URL plus its path+query, so "^/news/" style patterns work too."""
    parts = urlsplit(url)
    path_query = parts.path + (f"?{parts.query}" if parts.query else "")
    return url, path_query


def _matches(patterns: Iterable[Pattern[str]], targets: Sequence[str]) -> bool:
    return any(p.search(t) for p in patterns for t in targets)


def should_deny_url(
    url: str,
    deny_patterns: Sequence[Pattern[str]] = (),
    allow_patterns: Sequence[Pattern[str]] = (),
) -> bool:
    """
    Return True if the URL must not be crawled.

    A non-empty allow list is exclusive: URLs matching none of it are denied
    before any deny pattern is consulted.
    """
    targets = _match_targets(url)

    if allow_patterns and not _matches(allow_patterns, targets):
        return True

    if _matches(deny_patterns, targets):
        return True

    return _matches(DEFAULT_DENY_PATTERNS, targets)
