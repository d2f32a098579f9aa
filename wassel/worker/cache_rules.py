# wassel/worker/cache_rules.py
"""
Runtime caching policy: an ordered list of (predicate, strategy) rules.

Rules are evaluated in declaration order and the first match wins. Changing
the order changes behaviour (the catch-all must stay last).
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import httpx

ONE_DAY_S = 60 * 60 * 24

ALLOWED_CROSS_ORIGIN_HOSTS = ("fonts.googleapis.com", "fonts.gstatic.com")
ALLOWED_CROSS_ORIGIN_DOMAIN = "supabase.co"

PRECACHE_MANIFEST = (
    "/",
    "/index.html",
    "/manifest.json",
    "/favicon.svg",
    "/icon-192x192.png",
    "/icon-512x512.png",
)


class Strategy(str, Enum):
    CACHE_FIRST = "CacheFirst"
    NETWORK_FIRST = "NetworkFirst"
    STALE_WHILE_REVALIDATE = "StaleWhileRevalidate"


UrlPredicate = Callable[[httpx.URL], bool]


@dataclass(frozen=True)
class CacheRule:
    name: str
    predicate: UrlPredicate
    strategy: Strategy
    group: str
    max_entries: int
    max_age_seconds: int
    network_timeout_seconds: float | None = None

    def matches(self, url: httpx.URL) -> bool:
        return self.predicate(url)


def url_matches(pattern: str) -> UrlPredicate:
    """Predicate testing a regex against the full URL."""
    compiled = re.compile(pattern)
    return lambda url: compiled.search(str(url)) is not None


def path_matches(pattern: str) -> UrlPredicate:
    """Predicate testing a regex against the URL path only (ignores query)."""
    compiled = re.compile(pattern)
    return lambda url: compiled.search(url.path) is not None


def group_name(name: str, version: str) -> str:
    return f"wassel-{name}-{version}"


def shell_group(version: str) -> str:
    return group_name("shell", version)


def default_rules(version: str = "v1") -> tuple[CacheRule, ...]:
    return (
        CacheRule(
            name="google-fonts",
            predicate=url_matches(r"^https://fonts\.googleapis\.com"),
            strategy=Strategy.CACHE_FIRST,
            group=group_name("fonts", version),
            max_entries=10,
            max_age_seconds=365 * ONE_DAY_S,
        ),
        CacheRule(
            name="google-fonts-web",
            predicate=url_matches(r"^https://fonts\.gstatic\.com"),
            strategy=Strategy.CACHE_FIRST,
            group=group_name("fonts-web", version),
            max_entries=10,
            max_age_seconds=365 * ONE_DAY_S,
        ),
        CacheRule(
            name="images",
            predicate=path_matches(r"\.(?:png|jpg|jpeg|svg|gif|webp|ico)$"),
            strategy=Strategy.CACHE_FIRST,
            group=group_name("images", version),
            max_entries=100,
            max_age_seconds=30 * ONE_DAY_S,
        ),
        CacheRule(
            name="api",
            predicate=path_matches(r"/api/"),
            strategy=Strategy.NETWORK_FIRST,
            group=group_name("api", version),
            max_entries=50,
            max_age_seconds=ONE_DAY_S,
            network_timeout_seconds=10,
        ),
        CacheRule(
            name="supabase",
            predicate=url_matches(r"supabase\.co"),
            strategy=Strategy.NETWORK_FIRST,
            group=group_name("supabase", version),
            max_entries=50,
            max_age_seconds=ONE_DAY_S,
            network_timeout_seconds=15,
        ),
        CacheRule(
            name="runtime",
            predicate=lambda url: True,
            strategy=Strategy.STALE_WHILE_REVALIDATE,
            group=group_name("runtime", version),
            max_entries=100,
            max_age_seconds=7 * ONE_DAY_S,
        ),
    )


def match_rule(rules: tuple[CacheRule, ...], url: httpx.URL) -> CacheRule | None:
    """First rule whose predicate accepts `url`, or None."""
    for rule in rules:
        if rule.matches(url):
            return rule
    return None


def is_allowed_origin(url: httpx.URL, app_origin: httpx.URL) -> bool:
    """Same-origin requests plus the small cross-origin allow-list."""
    if (url.scheme, url.host, url.port) == (app_origin.scheme, app_origin.host, app_origin.port):
        return True
    host = url.host or ""
    if host in ALLOWED_CROSS_ORIGIN_HOSTS:
        return True
    return host == ALLOWED_CROSS_ORIGIN_DOMAIN or host.endswith("." + ALLOWED_CROSS_ORIGIN_DOMAIN)
