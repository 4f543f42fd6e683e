"""Sitemap crawler: urlset and sitemap-index recursion into a flat page list."""

from __future__ import annotations

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from typing import Awaitable, Callable, List, Optional, Set, Tuple

import httpx

from adapters.base import BaseUrlSource


logger = logging.getLogger(__name__)

FetchText = Callable[[str], Awaitable[str]]
UrlsCallback = Callable[[List[str]], None]

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; RefreshAutopilot/1.0)",
    "Accept": "application/xml, text/xml, text/html, */*",
}

_BARE_AMPERSAND = re.compile(r"&(?!amp;|lt;|gt;|apos;|quot;|#\d+;|#x[a-fA-F0-9]+;)")
_LOC_RE = re.compile(
    r"<\s*(?:[A-Za-z_][\w.-]*:)?loc\s*>([\s\S]*?)<\s*/\s*(?:[A-Za-z_][\w.-]*:)?loc\s*>",
    re.IGNORECASE,
)
_ROOTS = (("<sitemapindex", "</sitemapindex>"), ("<urlset", "</urlset>"))


def _ensure_scheme(url: str) -> str:
    text = str(url or "").strip()
    if not text or text.startswith(("http://", "https://")):
        return text
    return f"https://{text}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].split(":")[-1].lower()


def _is_http(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def extract_payload(raw: str) -> str:
    """Cut the sitemap root out of an HTML shell, when it is wrapped in one."""
    for open_tag, close_tag in _ROOTS:
        start = raw.find(open_tag)
        if start == -1:
            continue
        end = raw.find(close_tag, start)
        if end == -1:
            continue
        return raw[start:end + len(close_tag)]
    return raw


def repair_entities(xml_text: str) -> str:
    return _BARE_AMPERSAND.sub("&amp;", xml_text)


def parse_sitemap(raw: str) -> Tuple[str, List[str]]:
    """Return ``(kind, locs)`` where kind is ``index``, ``urlset`` or ``unknown``.

    Falls back to a regex scan of ``<loc>`` elements when the document does
    not parse or yields nothing.
    """
    kind = "unknown"
    locs: List[str] = []
    try:
        root = ET.fromstring(repair_entities(extract_payload(raw)))
    except ET.ParseError as e:
        logger.debug("sitemap xml parse failed: %s", e)
        root = None

    if root is not None:
        root_name = _local(root.tag)
        names = {_local(el.tag) for el in root.iter()}
        if root_name == "sitemapindex" or "sitemap" in names:
            kind = "index"
        elif root_name == "urlset" or "url" in names:
            kind = "urlset"
        for el in root.iter():
            if _local(el.tag) != "loc":
                continue
            url = (el.text or "").strip()
            if url and _is_http(url):
                locs.append(url)

    if not locs:
        for match in _LOC_RE.finditer(raw):
            url = match.group(1).strip()
            if url and _is_http(url):
                locs.append(url.replace("&amp;", "&"))
        if kind == "unknown" and re.search(r"<\s*(?:[A-Za-z_][\w.-]*:)?sitemapindex\b", raw, re.IGNORECASE):
            kind = "index"
    return kind, locs


async def fetch_sitemap_text(url: str, *, timeout: float = 30.0) -> str:
    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True) as client:
        response = await client.get(url, headers=DEFAULT_HEADERS)
        response.raise_for_status()
        return str(response.text or "")


async def crawl_sitemap_urls(
    entry_url: str,
    *,
    fetch: Optional[FetchText] = None,
    concurrency: int = 8,
    max_sitemaps: int = 5000,
    max_urls: int = 500000,
    on_urls_batch: Optional[UrlsCallback] = None,
) -> List[str]:
    """Crawl ``entry_url`` and return every page URL it lists.

    Index sitemaps are followed breadth-first. A sitemap that fails to fetch
    is logged and skipped; the rest of the crawl continues.
    """
    fetch = fetch or fetch_sitemap_text
    concurrency = max(1, min(int(concurrency), 20))

    pending: List[str] = [_ensure_scheme(entry_url)]
    visited: Set[str] = set()
    discovered: List[str] = []
    seen_urls: Set[str] = set()

    async def _process(sitemap: str) -> None:
        try:
            raw = await fetch(sitemap)
        except (httpx.HTTPError, OSError) as e:
            logger.warning("sitemap fetch failed %s: %s", sitemap, e)
            return
        kind, locs = parse_sitemap(raw)
        if kind == "index":
            pending.extend(loc for loc in locs if loc not in visited)
            return
        added: List[str] = []
        for loc in locs:
            if len(discovered) >= max_urls:
                break
            if loc in seen_urls:
                continue
            seen_urls.add(loc)
            discovered.append(loc)
            added.append(loc)
        if added and on_urls_batch is not None:
            on_urls_batch(added)

    while pending:
        if len(visited) >= max_sitemaps or len(discovered) >= max_urls:
            break
        batch: List[str] = []
        while pending and len(batch) < concurrency:
            candidate = pending.pop(0)
            if candidate in visited:
                continue
            visited.add(candidate)
            batch.append(candidate)
        if batch:
            await asyncio.gather(*(_process(sitemap) for sitemap in batch))

    logger.info("sitemap crawl %s: %s sitemaps, %s urls", entry_url, len(visited), len(discovered))
    return discovered


class SitemapUrlSource(BaseUrlSource):
    """Scan source that re-crawls one or more sitemaps at every scan."""

    def __init__(self, sitemap_urls: List[str], *, fetch: Optional[FetchText] = None, max_urls: int = 500000):
        self.sitemap_urls = [u for u in sitemap_urls if u]
        self._fetch = fetch
        self.max_urls = max_urls

    async def list_urls(self) -> List[str]:
        out: List[str] = []
        seen: Set[str] = set()
        for sitemap in self.sitemap_urls:
            for url in await crawl_sitemap_urls(sitemap, fetch=self._fetch, max_urls=self.max_urls):
                if url not in seen:
                    seen.add(url)
                    out.append(url)
        return out
