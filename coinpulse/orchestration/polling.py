"""Polling Controller - APScheduler-driven refresh loops for live queries.

This module keeps subscribed market data queries up to date with:
- One interval job per subscription key (fires immediately, then every interval)
- Manual pause/resume/toggle per key
- Automatic pause while the hosting surface is hidden
- Strictly sequential ticks per key; failed ticks keep the last good result
- Teardown that discards results of fetches still in flight
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytz
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from coinpulse.utils.exceptions import SubscriptionError
from coinpulse.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_POLLING_INTERVAL_MS = 60_000


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


class VisibilitySignal:
    """Observable visibility flag of the surface that displays polled data.

    The host (a UI shell, a terminal dashboard, a test) flips it with
    ``set_visible``; the PollingController listens and pauses every job while
    the surface is hidden.

    Example:
        >>> visibility = VisibilitySignal()
        >>> controller = PollingController(visibility=visibility)
        >>> visibility.set_visible(False)  # all polling stops
        >>> visibility.set_visible(True)   # polling resumes with a refresh
    """

    def __init__(self, visible: bool = True):
        self._visible = visible
        self._listeners: List[Callable[[bool], None]] = []
        self._lock = threading.Lock()

    def is_visible(self) -> bool:
        return self._visible

    def set_visible(self, visible: bool) -> None:
        """Update visibility and notify listeners if it changed."""
        with self._lock:
            if visible == self._visible:
                return
            self._visible = visible
            listeners = list(self._listeners)

        for listener in listeners:
            listener(visible)

    def add_listener(self, listener: Callable[[bool], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[bool], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)


@dataclass(frozen=True)
class PollUpdate:
    """What a subscriber observes after each tick.

    Attributes:
        key: Subscription key
        result: Last good result (kept across failed ticks)
        updated_at: When ``result`` was fetched (None before the first success)
        error: Error raised by this tick's fetch, or None
        is_stale: Whether ``result`` is older than half the polling interval
    """

    key: str
    result: Any
    updated_at: Optional[datetime]
    error: Optional[Exception] = None
    is_stale: bool = False


@dataclass
class SubscriptionState:
    """Scheduling and result state for one subscription key.

    Attributes:
        key: Subscription key (also the scheduler job id)
        fetch_fn: Zero-argument callable producing the next result
        polling_interval_ms: Interval between ticks in milliseconds
        is_paused: Manual pause flag (visibility is tracked separately)
        last_result: Result of the last successful tick
        last_updated_at: When ``last_result`` was stored
        last_error: Error of the most recent tick, cleared on success
        subscriber_count: Number of attached subscribers
        listeners: Callbacks receiving a PollUpdate after every tick
        detached: Set once the subscription is torn down
    """

    key: str
    fetch_fn: Callable[[], Any]
    polling_interval_ms: int
    is_paused: bool = False
    last_result: Any = None
    last_updated_at: Optional[datetime] = None
    last_error: Optional[Exception] = None
    subscriber_count: int = 0
    listeners: List[Callable[[PollUpdate], None]] = field(default_factory=list)
    detached: bool = False
    _tick_lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    @property
    def stale_after(self) -> timedelta:
        """Results are considered fresh for half the polling interval."""
        return timedelta(milliseconds=self.polling_interval_ms / 2)

    def is_stale(self, now: datetime) -> bool:
        """Advisory staleness check; never blocks polling."""
        if self.last_updated_at is None:
            return True
        return now - self.last_updated_at > self.stale_after


class PollingController:
    """APScheduler wrapper that keeps subscribed queries refreshed.

    Each subscription key owns one interval job. A job fires only while the
    subscription is manually active AND the visibility signal says the host
    surface is visible. Max one instance per job, so a new tick never starts
    before the previous fetch for the same key has settled.

    Example:
        >>> controller = PollingController({"misfire_grace_time": 30})
        >>> state = controller.start(
        ...     "assets",
        ...     lambda: market_api.get_assets(limit=20),
        ...     interval_ms=60_000,
        ...     listener=lambda update: print(update.updated_at, update.error),
        ... )
        >>> controller.pause("assets")
        >>> controller.resume("assets")
        >>> controller.unsubscribe("assets")
    """

    def __init__(
        self,
        config: Optional[dict] = None,
        visibility: Optional[VisibilitySignal] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize polling controller.

        Args:
            config: Scheduler settings
                - coalesce: Combine missed runs into one (default: True)
                - misfire_grace_time: Seconds a late run may still fire (default: 30)
            visibility: Visibility signal of the host surface (default: always visible)
            clock: Timestamp source for ``last_updated_at`` (default: UTC now)
        """
        self.config = config or {}
        self.visibility = visibility if visibility is not None else VisibilitySignal()
        self._clock = clock or utc_now

        self.scheduler = BackgroundScheduler(
            timezone=pytz.utc,
            job_defaults={
                "coalesce": self.config.get("coalesce", True),
                "max_instances": 1,
                "misfire_grace_time": self.config.get("misfire_grace_time", 30),
            },
        )
        self.scheduler.add_listener(
            self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES
        )

        self.subscriptions: Dict[str, SubscriptionState] = {}
        self._lock = threading.RLock()

        self.visibility.add_listener(self._on_visibility_change)

        logger.debug("PollingController initialized")

    def start(
        self,
        key: str,
        fetch_fn: Callable[[], Any],
        interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
        listener: Optional[Callable[[PollUpdate], None]] = None,
    ) -> SubscriptionState:
        """Subscribe to a query and start polling it.

        The first tick fires immediately (if active and visible), then every
        ``interval_ms``. Starting an already-live key attaches another
        subscriber to the existing state instead of creating a second job;
        the key identifies the query, so that subscriber's ``fetch_fn`` and
        ``interval_ms`` are ignored and the first subscriber's are kept.

        Args:
            key: Subscription key
            fetch_fn: Zero-argument callable performing the fetch
            interval_ms: Polling interval in milliseconds
            listener: Optional callback receiving a PollUpdate after each tick

        Returns:
            The SubscriptionState for ``key``
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms}")

        with self._lock:
            state = self.subscriptions.get(key)
            if state is not None:
                if state.polling_interval_ms != interval_ms:
                    logger.warning(
                        "Subscription '%s' already polls every %dms, ignoring %dms",
                        key,
                        state.polling_interval_ms,
                        interval_ms,
                    )
                state.subscriber_count += 1
                if listener is not None:
                    state.listeners.append(listener)
                logger.debug(
                    "Attached subscriber to '%s' (%d total)",
                    key,
                    state.subscriber_count,
                )
                return state

            state = SubscriptionState(
                key=key,
                fetch_fn=fetch_fn,
                polling_interval_ms=interval_ms,
                subscriber_count=1,
            )
            if listener is not None:
                state.listeners.append(listener)
            self.subscriptions[key] = state

            if not self.scheduler.running:
                self.scheduler.start()

            self.scheduler.add_job(
                func=self._run_tick,
                trigger=IntervalTrigger(seconds=interval_ms / 1000, timezone=pytz.utc),
                args=[state],
                id=key,
                name=key,
                replace_existing=True,
                next_run_time=utc_now() if self._is_active(state) else None,
            )

        logger.info("Started polling '%s' every %dms", key, interval_ms)
        return state

    def unsubscribe(
        self,
        key: str,
        listener: Optional[Callable[[PollUpdate], None]] = None,
    ) -> None:
        """Detach one subscriber; the last one out tears the subscription down.

        Args:
            key: Subscription key
            listener: The listener that subscriber registered, if any
        """
        with self._lock:
            state = self.subscriptions.get(key)
            if state is None:
                logger.warning("Unsubscribe for unknown key '%s'", key)
                return

            if listener is not None and listener in state.listeners:
                state.listeners.remove(listener)
            state.subscriber_count -= 1

            if state.subscriber_count > 0:
                logger.debug(
                    "Detached subscriber from '%s' (%d left)",
                    key,
                    state.subscriber_count,
                )
                return

            self._teardown(state)

    def detach(self, key: str) -> None:
        """Tear down ``key`` regardless of how many subscribers remain."""
        with self._lock:
            state = self.subscriptions.get(key)
            if state is None:
                logger.warning("Detach for unknown key '%s'", key)
                return
            self._teardown(state)

    def _teardown(self, state: SubscriptionState) -> None:
        # Caller holds self._lock
        state.detached = True
        state.listeners.clear()
        del self.subscriptions[state.key]
        try:
            self.scheduler.remove_job(state.key)
        except JobLookupError:
            pass
        logger.info("Stopped polling '%s'", state.key)

    def pause(self, key: str) -> None:
        """Manually pause polling for ``key``; ``last_result`` stays readable."""
        state = self._require(key)
        state.is_paused = True
        self._sync_job(state)
        logger.info("Paused polling '%s'", key)

    def resume(self, key: str) -> None:
        """Clear the manual pause for ``key`` (still gated by visibility)."""
        state = self._require(key)
        state.is_paused = False
        self._sync_job(state)
        logger.info("Resumed polling '%s'", key)

    def toggle(self, key: str) -> bool:
        """Flip the manual pause flag. Returns the new ``is_paused`` value."""
        state = self._require(key)
        if state.is_paused:
            self.resume(key)
        else:
            self.pause(key)
        return state.is_paused

    def polling_status(self, key: str) -> str:
        """Return "active" if ticks are currently scheduled, else "paused"."""
        return "active" if self._is_active(self._require(key)) else "paused"

    def refresh(self, key: str) -> PollUpdate:
        """Run one tick for ``key`` synchronously and return its outcome.

        Skipped (returning the current state) if a tick is already running.
        """
        state = self._require(key)
        self._run_tick(state)
        return self._snapshot(state, state.last_error)

    def get_state(self, key: str) -> Optional[SubscriptionState]:
        return self.subscriptions.get(key)

    def is_stale(self, key: str) -> bool:
        """Advisory: whether the last result is older than half the interval."""
        return self._require(key).is_stale(self._clock())

    def _require(self, key: str) -> SubscriptionState:
        state = self.subscriptions.get(key)
        if state is None:
            raise SubscriptionError(f"No active subscription for '{key}'")
        return state

    def _is_active(self, state: SubscriptionState) -> bool:
        return not state.is_paused and self.visibility.is_visible()

    def _sync_job(self, state: SubscriptionState) -> None:
        """Pause or resume the job of ``state`` to match its effective state.

        Resuming fires a tick right away, then continues on the interval.
        """
        with self._lock:
            if state.detached:
                return
            job = self.scheduler.get_job(state.key)
            if job is None:
                return

            if self._is_active(state):
                if job.next_run_time is None:
                    job.modify(next_run_time=utc_now())
                    logger.debug("Job '%s' resumed", state.key)
            elif job.next_run_time is not None:
                job.pause()
                logger.debug("Job '%s' paused", state.key)

    def _on_visibility_change(self, visible: bool) -> None:
        logger.info(
            "Host surface %s, %s all polling",
            "visible" if visible else "hidden",
            "resuming" if visible else "pausing",
        )
        with self._lock:
            states = list(self.subscriptions.values())
        for state in states:
            self._sync_job(state)

    def _run_tick(self, state: SubscriptionState) -> None:
        """Fetch once for ``state`` and publish the outcome to its listeners."""
        if not state._tick_lock.acquire(blocking=False):
            logger.debug("Tick for '%s' still in flight, skipping", state.key)
            return

        try:
            error: Optional[Exception] = None
            try:
                result = state.fetch_fn()
            except Exception as e:
                error = e

            with self._lock:
                if state.detached:
                    logger.debug("Discarding tick result for detached '%s'", state.key)
                    return
                if error is None:
                    state.last_result = result
                    state.last_updated_at = self._clock()
                    state.last_error = None
                else:
                    state.last_error = error
                listeners = list(state.listeners)

            if error is not None:
                logger.warning(
                    "Fetch for '%s' failed, keeping last result: %s", state.key, error
                )
            else:
                logger.debug("Tick for '%s' completed", state.key)

            update = self._snapshot(state, error)
            for listener in listeners:
                try:
                    listener(update)
                except Exception as e:
                    logger.error(
                        "Listener for '%s' raised: %s", state.key, e, exc_info=True
                    )
        finally:
            state._tick_lock.release()

    def _snapshot(
        self, state: SubscriptionState, error: Optional[Exception]
    ) -> PollUpdate:
        return PollUpdate(
            key=state.key,
            result=state.last_result,
            updated_at=state.last_updated_at,
            error=error,
            is_stale=state.is_stale(self._clock()),
        )

    def _on_job_event(self, event) -> None:
        """Event listener for job errors and skipped overlapping runs."""
        if event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning(
                "Previous tick for '%s' still running, skipped this run", event.job_id
            )
        elif getattr(event, "exception", None):
            logger.error(
                "Job '%s' raised exception: %s",
                event.job_id,
                event.exception,
                exc_info=event.exception,
            )

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_jobs(self) -> list:
        """Get list of scheduled APScheduler jobs."""
        return self.scheduler.get_jobs()

    def shutdown(self, wait: bool = True) -> None:
        """Detach every subscription and stop the scheduler."""
        with self._lock:
            for state in list(self.subscriptions.values()):
                self._teardown(state)
        self.visibility.remove_listener(self._on_visibility_change)

        if self.scheduler.running:
            logger.info("Shutting down polling scheduler...")
            self.scheduler.shutdown(wait=wait)
