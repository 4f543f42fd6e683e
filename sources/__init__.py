"""Candidate URL sources."""

from .sitemap import SitemapUrlSource, crawl_sitemap_urls, fetch_sitemap_text, parse_sitemap

__all__ = [
    "SitemapUrlSource",
    "crawl_sitemap_urls",
    "fetch_sitemap_text",
    "parse_sitemap",
]
