"""Phase controller: the autonomous scan -> score -> generate -> publish loop."""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from core import (
    ActivityEvent,
    ActivityType,
    EngineConfig,
    EnginePhase,
    EngineState,
    EngineStatus,
    GenerationOptions,
    HealthAnalysis,
    HistoryAction,
    HistoryItem,
    PipelineResult,
    Priority,
    QueueItem,
    QueueSource,
    StateDelta,
    StatsDelta,
)
from storage import BaseDurableStore
from utils.exceptions import ConfigurationError, EngineStartupError, PublishError
from utils.logger import get_engine_logger

from .breaker import CircuitBreaker
from .keywords import build_title, extract_keyword, slug_from_url
from .quality_gate import GateRoute, QualityGate
from .queue import PriorityQueueStore, UrlExclusionFilter, normalize_url
from .retry import RetryPolicy
from .schedule import is_within_active_hours, manual_health_score, next_scan_at, priority_for_score, scan_due
from .state import EngineStateView
from .throttle import AdaptiveThrottle, QualityTrend
from .timer import CancellableSleeper, Clock, EngineTimings, system_clock


logger = logging.getLogger(__name__)

StateListener = Callable[[StateDelta], None]
ActivityListener = Callable[[ActivityEvent], None]
PriorityUrl = Union[Tuple[str, Union[Priority, str]], Mapping[str, Any]]

# Average seconds per item used for the priority queue ETA.
ESTIMATED_SECONDS_PER_ITEM = 120

_ACTIVITY_LEVELS = {
    ActivityType.INFO: logging.INFO,
    ActivityType.SUCCESS: logging.INFO,
    ActivityType.WARNING: logging.WARNING,
    ActivityType.ERROR: logging.ERROR,
}


def _coerce_priority_urls(entries: Optional[Iterable[PriorityUrl]]) -> List[Tuple[str, Priority]]:
    out: List[Tuple[str, Priority]] = []
    for entry in entries or []:
        if isinstance(entry, Mapping):
            url, priority = entry.get("url"), entry.get("priority", Priority.MEDIUM)
        else:
            url, priority = entry
        url = str(url or "").strip()
        if not url:
            continue
        out.append((url, Priority(priority)))
    return out


class PhaseController:
    """Owns the engine state and drives the main loop.

    Only this object mutates the state. Every change is applied to the
    internal :class:`EngineStateView` and forwarded to subscribers as a
    :class:`StateDelta`; activity is forwarded as :class:`ActivityEvent`.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        sitemap_urls: Optional[Sequence[str]] = None,
        priority_urls: Optional[Iterable[PriorityUrl]] = None,
        excluded_urls: Optional[Iterable[str]] = None,
        excluded_categories: Optional[Iterable[str]] = None,
        priority_only_mode: bool = False,
        credentials: Optional[Mapping[str, Optional[str]]] = None,
        health_scorer=None,
        content_pipeline=None,
        publisher=None,
        store: Optional[BaseDurableStore] = None,
        scan_source=None,
        on_state_update: Optional[StateListener] = None,
        on_activity: Optional[ActivityListener] = None,
        sleeper: Optional[CancellableSleeper] = None,
        clock: Optional[Clock] = None,
        timings: Optional[EngineTimings] = None,
        retry_policy: Optional[RetryPolicy] = None,
        breaker: Optional[CircuitBreaker] = None,
        throttle: Optional[AdaptiveThrottle] = None,
        quality_gate: Optional[QualityGate] = None,
        rng: Optional[random.Random] = None,
        scoring_concurrency: int = 3,
        scoring_batch_size: int = 50,
    ) -> None:
        self._config = config or EngineConfig()
        self._pending_config: Optional[EngineConfig] = None
        self._sitemap_urls: List[str] = [str(u).strip() for u in (sitemap_urls or []) if str(u or "").strip()]
        self._priority_urls = _coerce_priority_urls(priority_urls)
        self._priority_only = bool(priority_only_mode)
        self._credentials: Dict[str, Optional[str]] = dict(credentials or {})

        self._health_scorer = health_scorer
        self._content_pipeline = content_pipeline
        self._publisher = publisher
        self._scan_source = scan_source

        self._clock = clock or system_clock()
        self._sleeper = sleeper or CancellableSleeper()
        self._timings = timings or EngineTimings()
        self._retry_policy = retry_policy or RetryPolicy(rng=rng)
        self._breaker = breaker or CircuitBreaker(clock=self._clock)
        self._throttle = throttle or AdaptiveThrottle()
        self._quality_gate = quality_gate or QualityGate()
        self._scoring_concurrency = max(1, int(scoring_concurrency))
        self._scoring_batch_size = max(1, int(scoring_batch_size))

        self._queue = PriorityQueueStore(
            store,
            UrlExclusionFilter(excluded_urls=excluded_urls, excluded_categories=excluded_categories),
        )
        self._view = EngineStateView(self._config)

        self._state_listeners: List[StateListener] = []
        self._activity_listeners: List[ActivityListener] = []
        if on_state_update is not None:
            self._state_listeners.append(on_state_update)
        if on_activity is not None:
            self._activity_listeners.append(on_activity)

        self._running = False
        self._paused = False
        self._session = 0
        self._processed_today = 0
        self._today: Optional[date] = None
        self._cycle_count = 0
        self._last_scan_at: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings, **kwargs: Any) -> "PhaseController":
        """Build a controller from :class:`config.settings.Settings` groups."""
        clock = kwargs.pop("clock", None) or system_clock(settings.engine.timezone)
        rng = kwargs.pop("rng", None)
        kwargs.setdefault("config", settings.engine_config())
        kwargs.setdefault("priority_only_mode", settings.engine.priority_only_mode)
        kwargs.setdefault("credentials", settings.llm.credentials())
        kwargs.setdefault("timings", EngineTimings.from_settings(settings.resilience))
        kwargs.setdefault("retry_policy", RetryPolicy.from_settings(settings.resilience, rng=rng))
        kwargs.setdefault("breaker", CircuitBreaker.from_settings(settings.resilience, clock=clock))
        kwargs.setdefault("throttle", AdaptiveThrottle.from_settings(settings.resilience))
        kwargs.setdefault("scoring_concurrency", settings.resilience.scoring_concurrency)
        kwargs.setdefault("scoring_batch_size", settings.resilience.scoring_batch_size)
        return cls(clock=clock, **kwargs)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def status(self) -> EngineStatus:
        return self._view.status

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def processed_today(self) -> int:
        return self._processed_today

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def throttle(self) -> AdaptiveThrottle:
        return self._throttle

    def snapshot(self) -> EngineState:
        """Deep copy of the full engine state."""
        return self._view.state

    def quality_trend(self) -> QualityTrend:
        return self._throttle.trend()

    def subscribe(
        self,
        on_state_update: Optional[StateListener] = None,
        on_activity: Optional[ActivityListener] = None,
    ) -> Callable[[], None]:
        """Register observers. Returns a callable that unsubscribes them."""
        if on_state_update is not None:
            self._state_listeners.append(on_state_update)
        if on_activity is not None:
            self._activity_listeners.append(on_activity)

        def _unsubscribe() -> None:
            if on_state_update is not None and on_state_update in self._state_listeners:
                self._state_listeners.remove(on_state_update)
            if on_activity is not None and on_activity in self._activity_listeners:
                self._activity_listeners.remove(on_activity)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Host commands
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Validate, open a session and run the main loop until ``stop()``."""
        if self._running:
            self._log(ActivityType.WARNING, "Engine already running")
            return

        if self._pending_config is not None:
            self._config = self._pending_config
            self._pending_config = None
            self._emit(config=self._config)

        self._check_preconditions()

        self._session += 1
        session = self._session
        self._running = True
        self._paused = False
        self._sleeper.reset()
        self._processed_today = 0
        self._today = self._clock().date()
        self._cycle_count = 0
        self._throttle.reset()

        try:
            self._open_session()
        except Exception as e:
            self._running = False
            message = f"Engine initialization failed: {e}"
            self._emit(status=EngineStatus.ERROR, current_phase=EnginePhase.NONE, current_url=None, last_error=message)
            self._log(ActivityType.ERROR, "Engine initialization failed", str(e))
            raise EngineStartupError(message, details={"error": str(e)}) from e

        await self._main_loop(session)

    def stop(self) -> None:
        """Cancel every pending wait, persist the queue and go idle."""
        was_active = self._running
        self._log(ActivityType.INFO, "Stopping engine...", "Graceful shutdown initiated")
        self._running = False
        self._paused = False
        self._sleeper.cancel()
        self._queue.persist()
        self._emit(status=EngineStatus.IDLE, current_phase=EnginePhase.NONE, current_url=None)
        if was_active:
            self._log(ActivityType.SUCCESS, "Engine stopped", f"Processed {self._cycle_count} cycles this session")

    def pause(self) -> None:
        if not self._running or self._paused:
            return
        self._paused = True
        self._log(ActivityType.INFO, "Engine paused", "Processing will resume when unpaused")
        self._emit(status=EngineStatus.PAUSED)

    def resume(self) -> None:
        if not self._running or not self._paused:
            return
        self._paused = False
        self._log(ActivityType.INFO, "Engine resumed", "Continuing autonomous processing")
        self._emit(status=EngineStatus.RUNNING)

    def configure(self, config: Optional[EngineConfig] = None, **updates: Any) -> EngineConfig:
        """Validate a new configuration.

        Applied immediately while idle or errored; held for the next
        ``start()`` while a session is active. Raises ``ValidationError`` or
        ``ValueError`` on bad input, leaving the current config untouched.
        """
        base = config or self._pending_config or self._config
        new_config = base.merged(**updates) if updates else base
        if self._running:
            self._pending_config = new_config
            self._log(ActivityType.INFO, "Configuration updated", "Applies on next start")
        else:
            self._config = new_config
            self._pending_config = None
            self._emit(config=new_config)
        return new_config

    def set_sitemap_urls(self, urls: Iterable[str]) -> int:
        self._sitemap_urls = [str(u).strip() for u in urls if str(u or "").strip()]
        return len(self._sitemap_urls)

    def enqueue_url(self, url: str, priority: Union[Priority, str] = Priority.HIGH) -> Optional[QueueItem]:
        """Add a manual item. Returns None when excluded or already queued."""
        item = QueueItem(url=url, priority=Priority(priority), health_score=0, source=QueueSource.MANUAL)
        if not self._queue.push(item):
            return None
        self._emit(queue=self._queue.snapshot())
        self._log(ActivityType.INFO, "URL added to queue", f"{item.url} ({item.priority.value})")
        return item.model_copy()

    def remove_from_queue(self, item_id: str) -> bool:
        removed = self._queue.remove(item_id)
        if removed:
            self._emit(queue=self._queue.snapshot())
        return removed

    def restore_queue(self) -> int:
        """Load the persisted queue outside a session (e.g. to inspect it)."""
        restored = self._queue.restore()
        self._emit(queue=self._queue.snapshot())
        return restored

    # ------------------------------------------------------------------
    # Session setup
    # ------------------------------------------------------------------

    def _check_preconditions(self) -> None:
        problems: List[str] = []
        if self._priority_only and not self._priority_urls:
            problems.append(
                "Priority only mode requires at least one priority URL. Add URLs to the priority queue first."
            )
        if not self._priority_only and not (self._sitemap_urls or self._priority_urls or self._scan_source):
            problems.append("No URLs available. Crawl a sitemap first or add priority URLs.")
        if not any(str(value or "").strip() for value in self._credentials.values()):
            problems.append("No AI API key configured. Add at least one API key.")
        if self._content_pipeline is None:
            problems.append("No content pipeline configured.")
        if not self._priority_only and self._health_scorer is None:
            problems.append("No health scorer configured.")

        if problems:
            message = problems[0]
            self._emit(last_error=message)
            self._log(ActivityType.ERROR, "Cannot start engine", message)
            raise ConfigurationError(message, details={"problems": problems})

    def _open_session(self) -> None:
        now = self._clock()
        mode = "PRIORITY ONLY" if self._priority_only else "FULL SITEMAP"
        self._log(ActivityType.SUCCESS, f"Engine activated, mode: {mode}", "Autonomous refresh engine is now running")
        self._emit(
            status=EngineStatus.RUNNING,
            last_error=None,
            stats=StatsDelta(
                reset=True,
                cycle_count=0,
                session_started_at=now,
                last_scan_at=self._last_scan_at,
                next_scan_at=self._next_scan(now),
            ),
        )
        if self._priority_only:
            self._build_priority_queue()
        else:
            restored = self._queue.restore()
            self._emit(queue=self._queue.snapshot())
            if restored:
                self._log(ActivityType.INFO, f"Restored {restored} items from persisted queue")

    def _build_priority_queue(self) -> None:
        items: List[QueueItem] = []
        excluded = 0
        for url, priority in self._priority_urls:
            if self._queue.exclusions.is_excluded(url):
                excluded += 1
                continue
            items.append(
                QueueItem(
                    url=url,
                    priority=priority,
                    health_score=manual_health_score(priority),
                    source=QueueSource.MANUAL,
                )
            )
        self._queue.replace(items)

        counts = {priority: 0 for priority in Priority}
        for item in self._queue.snapshot():
            counts[item.priority] += 1
        self._log(ActivityType.INFO, f"Priority queue initialized: {len(self._queue)} URLs")
        for priority in Priority:
            self._log(ActivityType.INFO, f"  {priority.value.capitalize()}: {counts[priority]}")
        self._log(ActivityType.INFO, f"  Excluded: {excluded}")

        eta_minutes = math.ceil(len(self._queue) * ESTIMATED_SECONDS_PER_ITEM / 60)
        self._log(
            ActivityType.SUCCESS,
            f"Priority queue ready: {len(self._queue)} URLs queued",
            f"ETA: {eta_minutes}min",
        )
        self._emit(queue=self._queue.snapshot())

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def _active(self, session: int) -> bool:
        return self._running and session == self._session and not self._sleeper.cancelled

    def _next_scan(self, now: datetime) -> Optional[datetime]:
        return next_scan_at(
            self._last_scan_at, now, self._config.scan_interval_hours, priority_only=self._priority_only
        )

    def _roll_daily_counter(self, today: date) -> None:
        if self._today != today:
            if self._today is not None and self._processed_today:
                self._log(ActivityType.INFO, "New day", f"Daily counter reset after {self._processed_today} items")
            self._today = today
            self._processed_today = 0

    async def _main_loop(self, session: int) -> None:
        try:
            while self._active(session):
                try:
                    await self._run_cycle(session)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if not self._active(session):
                        break
                    logger.exception("main loop error")
                    self._log(ActivityType.ERROR, "Main loop error", str(e) or type(e).__name__)
                    self._record_pipeline_failure()
                    failures = max(1, self._breaker.consecutive_failures)
                    await self._sleeper.sleep(self._retry_policy.backoff_delay(failures - 1))
        finally:
            if session == self._session and not self._running:
                self._queue.persist()
                self._emit(current_phase=EnginePhase.NONE, current_url=None)
            self._log(ActivityType.INFO, "Main loop exited", f"Ran {self._cycle_count} cycles")

    async def _run_cycle(self, session: int) -> None:
        if self._paused:
            await self._sleeper.sleep(self._timings.pause_poll)
            return

        now = self._clock()
        self._roll_daily_counter(now.date())

        if not is_within_active_hours(now, self._config):
            self._log(
                ActivityType.INFO,
                "Outside active hours",
                f"Will resume at {self._config.active_hours_start:02d}:00",
            )
            await self._sleeper.sleep(self._timings.outside_hours_wait)
            return

        if self._processed_today >= self._config.max_per_day:
            self._log(
                ActivityType.INFO,
                "Daily limit reached",
                f"Processed {self._processed_today}/{self._config.max_per_day} items today",
            )
            await self._sleeper.sleep(self._timings.daily_limit_wait)
            return

        self._cycle_count += 1
        self._emit(
            stats=StatsDelta(
                cycle_count=self._cycle_count,
                last_scan_at=self._last_scan_at,
                next_scan_at=self._next_scan(now),
            )
        )

        if not self._priority_only:
            scored = False
            if scan_due(self._last_scan_at, now, self._config.scan_interval_hours):
                scored = await self._run_scan_phase(session)
            if not self._queue and not scored and self._active(session):
                await self._run_scoring_phase(session)

        if not self._active(session):
            return
        if self._queue:
            await self._run_generation_phase(session)
        else:
            self._emit(current_phase=EnginePhase.NONE, current_url=None)
            self._log(ActivityType.INFO, "Queue empty", "Waiting for next scan cycle...")
            await self._sleeper.sleep(self._timings.idle_wait)

    # ------------------------------------------------------------------
    # Scan and score
    # ------------------------------------------------------------------

    async def _refresh_from_source(self) -> None:
        try:
            urls = await self._scan_source.list_urls()
        except Exception as e:
            self._log(ActivityType.WARNING, "Scan source refresh failed", str(e) or type(e).__name__)
            return
        if urls:
            self.set_sitemap_urls(urls)

    async def _run_scan_phase(self, session: int) -> bool:
        """Refresh the candidate list and score new URLs. Returns True if scoring ran."""
        self._emit(current_phase=EnginePhase.SCANNING)
        if self._scan_source is not None:
            await self._refresh_from_source()
        self._log(ActivityType.INFO, "Scanning sitemap...", f"{len(self._sitemap_urls)} URLs available")

        now = self._clock()
        self._last_scan_at = now
        self._emit(
            stats=StatsDelta(
                cycle_count=self._cycle_count,
                last_scan_at=now,
                next_scan_at=self._next_scan(now),
            )
        )

        candidates = self._score_candidates()
        self._log(ActivityType.INFO, f"Scan complete: {len(candidates)} URLs to score")
        if not candidates:
            return False
        await self._run_scoring_phase(session, candidates)
        return True

    def _score_candidates(self) -> List[str]:
        queued = {normalize_url(url) for url in self._queue.urls()}
        seen = set()
        out: List[str] = []
        for url in self._sitemap_urls:
            key = normalize_url(url)
            if key in queued or key in seen or self._queue.exclusions.is_excluded(url):
                continue
            seen.add(key)
            out.append(url)
            if len(out) >= self._scoring_batch_size:
                break
        return out

    async def _score_one(self, url: str, semaphore: asyncio.Semaphore, session: int) -> Optional[HealthAnalysis]:
        async with semaphore:
            while self._paused and self._active(session):
                await self._sleeper.sleep(self._timings.pause_poll)
            if not self._active(session):
                return None
            try:
                return await self._health_scorer.score(url)
            finally:
                await self._sleeper.sleep(self._timings.scoring_batch_pause)

    async def _run_scoring_phase(self, session: int, urls: Optional[List[str]] = None) -> None:
        if urls is None:
            urls = self._score_candidates()
        if not urls:
            return

        self._emit(current_phase=EnginePhase.SCORING)
        self._log(ActivityType.INFO, f"Scoring {len(urls)} pages for content health...")

        semaphore = asyncio.Semaphore(self._scoring_concurrency)
        results = await asyncio.gather(
            *(self._score_one(url, semaphore, session) for url in urls),
            return_exceptions=True,
        )

        min_health = self._config.min_health_score
        scored: List[QueueItem] = []
        for url, result in zip(urls, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                self._log(ActivityType.WARNING, f"Scoring failed for {url}", str(result) or type(result).__name__)
                continue
            if result is None:
                continue
            priority = priority_for_score(result.score, min_health)
            if priority is None:
                continue
            scored.append(
                QueueItem(url=url, priority=priority, health_score=result.score, source=QueueSource.SCAN)
            )

        manual = [
            QueueItem(url=url, priority=priority, health_score=0, source=QueueSource.MANUAL)
            for url, priority in self._priority_urls
        ]
        self._queue.push_many(scored + manual)
        self._emit(queue=self._queue.snapshot())
        self._log(ActivityType.SUCCESS, f"Scoring complete: {len(self._queue)} pages queued for improvement")

    # ------------------------------------------------------------------
    # Generate and publish
    # ------------------------------------------------------------------

    async def _run_generation_phase(self, session: int) -> None:
        was_open = self._breaker.open_until is not None
        if self._breaker.is_open():
            minutes = math.ceil(self._breaker.remaining_seconds() / 60)
            self._log(ActivityType.WARNING, "Circuit breaker active", f"Waiting {minutes} more minutes before retry")
            await self._sleeper.sleep(self._timings.circuit_wait)
            return
        if was_open:
            self._log(ActivityType.INFO, "Circuit breaker reset", "Resuming normal operation")

        item = self._queue.shift()
        if item is None:
            return

        remaining = len(self._queue)
        if self._priority_only:
            total = len(self._priority_urls)
            position = f"{total - remaining}/{total}"
        else:
            position = f"Queue: {remaining} remaining"
        self._emit(current_phase=EnginePhase.GENERATING, current_url=item.url, queue=self._queue.snapshot())

        slug = slug_from_url(item.url)
        marker = "PRIORITY " if self._priority_only or item.source == QueueSource.MANUAL else ""
        self._log(
            ActivityType.INFO,
            f"{marker}Generating content [{position}]",
            f"URL: {slug} | Retry: {item.retry_count}/{self._config.retry_attempts}",
        )

        started = time.monotonic()
        phase = EnginePhase.GENERATING
        result: Optional[PipelineResult] = None
        try:
            keyword = extract_keyword(item.url)
            title = build_title(keyword, now=self._clock())
            options = GenerationOptions(title=title, source_url=item.url)
            result = await self._content_pipeline.generate(keyword, options)
            elapsed_ms = int((time.monotonic() - started) * 1000)

            self._throttle.record(result.quality_score, elapsed_ms)
            verdict = self._quality_gate.evaluate(result, self._config)

            if verdict.route == GateRoute.SKIP:
                self._record_skip(item, result, verdict.reason, elapsed_ms, slug)
                await self._sleeper.sleep(self._throttle.delay)
                return

            if verdict.route == GateRoute.PUBLISH:
                phase = EnginePhase.PUBLISHING
                await self._run_publish_phase(item, result, elapsed_ms, slug)
            else:
                self._record_generated(item, result, elapsed_ms)

            self._breaker.record_success()
            self._throttle.adjust()
            wait = self._config.processing_interval_minutes * 60 + self._throttle.delay
            if self._queue:
                self._log(
                    ActivityType.INFO,
                    f"Next item in {self._config.processing_interval_minutes:g} minutes",
                    f"{len(self._queue)} remaining",
                )
            await self._sleeper.sleep(wait)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._handle_item_failure(item, e, phase, result, started, slug)

    async def _run_publish_phase(self, item: QueueItem, result: PipelineResult, elapsed_ms: int, slug: str) -> None:
        self._emit(current_phase=EnginePhase.PUBLISHING)
        self._log(ActivityType.INFO, "Publishing...", slug)
        if self._publisher is None:
            raise PublishError("Publisher not configured")

        published = await self._publisher.publish(item, result, status=self._config.default_status)

        self._log(ActivityType.SUCCESS, f"Published: {published.published_url}", item.url)
        self._record_outcome(
            HistoryItem(
                url=item.url,
                action=HistoryAction.PUBLISHED,
                quality_score=result.quality_score,
                published_url=published.published_url,
                processing_time_ms=elapsed_ms,
                word_count=result.word_count,
                generated_content=result.to_generated_content(slug),
            ),
            StatsDelta(
                total_processed=1,
                success_count=1,
                quality_score=result.quality_score,
                words_generated=result.word_count,
            ),
        )

    def _record_generated(self, item: QueueItem, result: PipelineResult, elapsed_ms: int) -> None:
        self._log(
            ActivityType.SUCCESS,
            f"Content generated. Score: {result.quality_score:g}% | Words: {result.word_count:,} | "
            f"Time: {round(elapsed_ms / 1000)}s",
        )
        self._record_outcome(
            HistoryItem(
                url=item.url,
                action=HistoryAction.GENERATED,
                quality_score=result.quality_score,
                processing_time_ms=elapsed_ms,
                word_count=result.word_count,
                generated_content=result.to_generated_content(),
            ),
            StatsDelta(
                total_processed=1,
                success_count=1,
                quality_score=result.quality_score,
                words_generated=result.word_count,
            ),
        )

    def _record_skip(
        self, item: QueueItem, result: PipelineResult, reason: Optional[str], elapsed_ms: int, slug: str
    ) -> None:
        self._log(
            ActivityType.WARNING,
            f"Quality gate: score {result.quality_score:g} below threshold {self._config.quality_threshold}",
            f"Skipping {slug}",
        )
        self._record_outcome(
            HistoryItem(
                url=item.url,
                action=HistoryAction.SKIPPED,
                quality_score=result.quality_score,
                processing_time_ms=elapsed_ms,
                word_count=result.word_count,
                error=reason,
                generated_content=result.to_generated_content(),
            ),
            StatsDelta(total_processed=1, skipped_count=1, quality_score=result.quality_score),
        )

    def _record_outcome(self, entry: HistoryItem, stats: StatsDelta) -> None:
        self._processed_today += 1
        self._emit(history=[entry], stats=stats)

    async def _handle_item_failure(
        self,
        item: QueueItem,
        error: Exception,
        phase: EnginePhase,
        result: Optional[PipelineResult],
        started: float,
        slug: str,
    ) -> None:
        message = str(error) or type(error).__name__
        label = "Publish failed" if phase == EnginePhase.PUBLISHING else "Generation failed"
        self._log(ActivityType.ERROR, label, message)
        self._record_pipeline_failure()

        decision = self._retry_policy.on_failure(item, message, retry_attempts=self._config.retry_attempts)
        if decision.requeue:
            self._log(
                ActivityType.INFO,
                "Retry scheduled",
                f"Attempt {decision.attempt}/{self._config.retry_attempts} "
                f"after {round(decision.delay_seconds)}s backoff",
            )
            await self._sleeper.sleep(decision.delay_seconds)
            if not self._queue.requeue(item):
                self._log(
                    ActivityType.INFO,
                    "Retry merged into queued entry",
                    f"{slug} was queued again during backoff, keeping retry {item.retry_count}",
                )
            self._emit(queue=self._queue.snapshot())
            return

        self._log(ActivityType.ERROR, "Max retries exceeded", f"Giving up on {slug} after {item.retry_count} attempts")
        kept = result.to_generated_content(slug) if result is not None and phase == EnginePhase.PUBLISHING else None
        self._emit(
            history=[
                HistoryItem(
                    url=item.url,
                    action=HistoryAction.ERROR,
                    error=f"Max retries ({item.retry_count}) exceeded. Last error: {message}",
                    failed_phase=phase,
                    quality_score=result.quality_score if result is not None else None,
                    processing_time_ms=int((time.monotonic() - started) * 1000),
                    generated_content=kept,
                )
            ],
            stats=StatsDelta(total_processed=1, error_count=1),
            last_error=message,
        )

    def _record_pipeline_failure(self) -> None:
        if self._breaker.record_failure():
            self._log(
                ActivityType.ERROR,
                "Circuit breaker OPEN",
                f"{self._breaker.consecutive_failures} consecutive failures, "
                f"pausing for {self._breaker.cooldown_seconds / 60:g} minutes",
            )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _emit(self, **fields: Any) -> None:
        delta = StateDelta(**fields)
        self._view.apply(delta)
        for listener in list(self._state_listeners):
            try:
                listener(delta.model_copy(deep=True))
            except Exception:
                logger.exception("state listener failed")

    def _log(self, type_: ActivityType, message: str, details: Optional[str] = None) -> None:
        event = ActivityEvent(type=type_, message=message, details=details)
        self._view.add_activity(event)
        text = f"{message} | {details}" if details else message
        get_engine_logger().log(_ACTIVITY_LEVELS[type_], "%s", text)
        for listener in list(self._activity_listeners):
            try:
                listener(event.model_copy())
            except Exception:
                logger.exception("activity listener failed")
