"""CLI entrypoint for the refresh engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
from typing import List, Optional, Tuple

from adapters import HttpContentPipeline, HttpHealthScorer, HttpPublisher
from config import get_settings
from core import Priority
from orchestrator import PhaseController, build_title, decode_queue, extract_keyword, slug_from_url
from sources import SitemapUrlSource, crawl_sitemap_urls
from storage import FileDurableStore
from utils.exceptions import ConfigurationError
from utils.logger import setup_logger


def _priority_url(text: str) -> Tuple[str, Priority]:
    """Parse ``URL`` or ``URL=priority``."""
    url, sep, level = str(text).rpartition("=")
    if sep and level.strip().lower() in {p.value for p in Priority}:
        return url.strip(), Priority(level.strip().lower())
    return str(text).strip(), Priority.HIGH


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, default=str))


async def _run(args: argparse.Namespace) -> None:
    settings = get_settings()
    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    services = settings.services
    scorer = None
    if services.scorer_url:
        scorer = HttpHealthScorer(services.scorer_url, api_token=services.api_token, timeout=services.scorer_timeout)
    pipeline = None
    if services.pipeline_url:
        pipeline = HttpContentPipeline(
            services.pipeline_url, api_token=services.api_token, timeout=services.request_timeout
        )
    publisher = None
    if services.publisher_url:
        publisher = HttpPublisher(services.publisher_url, api_token=services.api_token, timeout=services.request_timeout)

    scan_source = SitemapUrlSource(args.sitemap) if args.sitemap else None
    controller = PhaseController.from_settings(
        settings,
        sitemap_urls=args.url,
        priority_urls=[_priority_url(p) for p in args.priority_url],
        excluded_urls=args.exclude,
        excluded_categories=args.exclude_category,
        priority_only_mode=args.priority_only or settings.engine.priority_only_mode,
        health_scorer=scorer,
        content_pipeline=pipeline,
        publisher=publisher,
        scan_source=scan_source,
        store=FileDurableStore(settings.storage.queue_path),
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, controller.stop)
        except NotImplementedError:
            pass

    try:
        await controller.start()
    except ConfigurationError as e:
        _print({"status": controller.status.value, "error": e.message})
        return
    finally:
        for adapter in (scorer, pipeline, publisher):
            if adapter is not None:
                await adapter.close()

    state = controller.snapshot()
    _print(
        {
            "status": state.status.value,
            "queue_length": len(state.queue),
            "stats": state.stats.model_dump(mode="json"),
            "last_error": state.last_error,
        }
    )


def _show_queue(path: Optional[str]) -> None:
    store = FileDurableStore(path or get_settings().storage.queue_path)
    items = decode_queue(store.load())
    _print({"count": len(items), "items": [item.model_dump(mode="json") for item in items]})


def _keywords(urls: List[str]) -> None:
    out = []
    for url in urls:
        keyword = extract_keyword(url)
        out.append({"url": url, "keyword": keyword, "title": build_title(keyword), "slug": slug_from_url(url)})
    _print(out)


async def _crawl(args: argparse.Namespace) -> None:
    urls = await crawl_sitemap_urls(args.sitemap, max_urls=args.max_urls)
    _print({"sitemap": args.sitemap, "count": len(urls), "urls": urls})


def main() -> None:
    parser = argparse.ArgumentParser(description="Refresh Autopilot CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="run the engine until interrupted")
    run.add_argument("--sitemap", action="append", default=[], help="sitemap crawled at every scan")
    run.add_argument("--url", action="append", default=[], help="candidate page URL")
    run.add_argument("--priority-url", action="append", default=[], help="URL or URL=priority")
    run.add_argument("--exclude", action="append", default=[], help="excluded URL substring")
    run.add_argument("--exclude-category", action="append", default=[])
    run.add_argument("--priority-only", action="store_true")
    run.add_argument("--verbose", action="store_true")

    queue = sub.add_parser("queue", help="print the persisted queue")
    queue.add_argument("--path", default="")

    keyword = sub.add_parser("keyword", help="derive keyword and title for URLs")
    keyword.add_argument("urls", nargs="+")

    crawl = sub.add_parser("crawl", help="print the page URLs of a sitemap")
    crawl.add_argument("sitemap")
    crawl.add_argument("--max-urls", type=int, default=500000)

    args = parser.parse_args()

    if args.command == "run":
        asyncio.run(_run(args))
        return

    if args.command == "queue":
        _show_queue(args.path or None)
        return

    if args.command == "keyword":
        _keywords(args.urls)
        return

    if args.command == "crawl":
        asyncio.run(_crawl(args))


if __name__ == "__main__":
    main()
