"""
Conflict engine for the ATOP conflict probe.

Owns the flight record store, the probe, its configuration, and the
scheduler. Inbound messages are processed one at a time on a single
worker thread, so a probe never runs concurrently with a store mutation
or with another probe. Timer ticks are turned into probe requests on the
same queue rather than probing on the timer thread.
"""

import logging
import queue
import threading
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Union

from atop_probe.conflict_detection import ConflictProbe
from atop_probe.flight_record import InvalidFlightRecordError
from atop_probe.flight_store import FlightRecordStore, utc_now
from atop_probe.messages import (
    BulkReplace,
    Message,
    RemoveRecord,
    RequestProbe,
    SetConfig,
    Start,
    Stop,
    UnknownMessageError,
    UpsertRecord,
    parse_message
)
from atop_probe.results import ConflictResults

logger = logging.getLogger(__name__)


ResultListener = Callable[[ConflictResults], None]

_SHUTDOWN = object()


class Scheduler:
    """
    Fixed-interval trigger built on a chain of daemon threading.Timer objects.

    start() and stop() are idempotent. A change to `interval_ms` applies
    from the next tick.

    Attributes:
        callback: Called on every tick
        interval_ms: Tick interval in milliseconds
    """

    def __init__(self, callback: Callable[[], Any], interval_ms: float = 5000):
        self.callback = callback
        self.interval_ms = interval_ms
        self._timer: Optional[threading.Timer] = None
        self._running = False
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """
        Start ticking.

        Returns:
            True if the scheduler was started, False if it was already running
        """
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._schedule()
        logger.info(f"Scheduler started ({self.interval_ms:.0f} ms interval)")
        return True

    def stop(self) -> bool:
        """
        Stop ticking.

        Returns:
            True if the scheduler was stopped, False if it was not running
        """
        with self._lock:
            if not self._running:
                return False
            self._running = False
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Scheduler stopped")
        return True

    def _schedule(self) -> None:
        # Each timer carries the generation it was started under; stop() bumps it
        self._timer = threading.Timer(self.interval_ms / 1000.0, self._tick, args=(self._generation,))
        self._timer.daemon = True
        self._timer.start()

    def _tick(self, generation: int) -> None:
        with self._lock:
            if not self._running or generation != self._generation:
                return

        try:
            self.callback()
        except Exception:
            logger.exception("Scheduler callback failed")

        with self._lock:
            if self._running and generation == self._generation:
                self._schedule()

    def __repr__(self) -> str:
        """String representation of the scheduler."""
        return f"Scheduler(interval={self.interval_ms:.0f}ms, running={self._running})"


class ConflictEngine:
    """
    Message-driven conflict detection engine.

    Use `post()` from any thread once `start_worker()` has been called, or
    `handle()` to process a message synchronously when the caller does its
    own sequencing.

    Attributes:
        store: Flight record store
        probe: Conflict probe (holds the configuration)
        scheduler: Periodic probe trigger
        clock: Time source for probe cycles
        last_results: Results of the most recent probe cycle
    """

    def __init__(
        self,
        store: Optional[FlightRecordStore] = None,
        probe: Optional[ConflictProbe] = None,
        config: Optional[Mapping[str, Any]] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize conflict engine.

        Args:
            store: Existing store (or None to create an empty one)
            probe: Existing probe (or None to create one from `config`)
            config: Partial configuration, used only when `probe` is None
            clock: Time source (default wall clock)
        """
        self.clock = clock
        self.store = store if store is not None else FlightRecordStore(clock)
        self.probe = probe if probe is not None else ConflictProbe(config)
        self.scheduler = Scheduler(
            self.request_probe,
            interval_ms=self.probe.config['checkIntervalMs']
        )

        self.last_results: Optional[ConflictResults] = None

        self._listeners: List[ResultListener] = []
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._probe_pending = False
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def subscribe(self, listener: ResultListener) -> None:
        """Register a callable that receives every ConflictResults."""
        self._listeners.append(listener)

    def _publish(self, results: ConflictResults) -> None:
        for listener in self._listeners:
            try:
                listener(results)
            except Exception:
                logger.exception(f"Result listener {listener!r} failed")

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def post(self, message: Union[Message, Mapping[str, Any]]) -> bool:
        """
        Queue a message for the worker thread.

        A probe request is coalesced with one that is already queued.

        Returns:
            False if the message was coalesced away, True otherwise
        """
        if isinstance(message, RequestProbe) or (
            isinstance(message, Mapping) and message.get('type') == 'requestProbe'
        ):
            with self._pending_lock:
                if self._probe_pending:
                    return False
                self._probe_pending = True
            message = RequestProbe()

        self._inbox.put(message)
        return True

    def request_probe(self) -> bool:
        """Queue an on-demand probe (also the scheduler's tick callback)."""
        return self.post(RequestProbe())

    def handle(self, message: Union[Message, Mapping[str, Any]]) -> Optional[ConflictResults]:
        """
        Process one message synchronously.

        Args:
            message: Typed message or a feeder envelope dict

        Returns:
            ConflictResults for a probe request, otherwise None

        Raises:
            UnknownMessageError: For an unknown envelope type
            InvalidFlightRecordError: For an unusable record payload
        """
        if isinstance(message, Mapping):
            message = parse_message(message)

        if isinstance(message, UpsertRecord):
            self.store.upsert(message.record)
        elif isinstance(message, RemoveRecord):
            self.store.remove(message.callsign)
        elif isinstance(message, BulkReplace):
            dropped = self.store.bulk_replace(message.records)
            logger.info(f"Bulk replace: {len(message.records)} records, {dropped} stale dropped")
        elif isinstance(message, RequestProbe):
            with self._pending_lock:
                self._probe_pending = False
            return self.run_probe()
        elif isinstance(message, SetConfig):
            self.update_config(message.updates)
        elif isinstance(message, Start):
            self.scheduler.start()
        elif isinstance(message, Stop):
            self.scheduler.stop()
        else:
            raise UnknownMessageError(f"Unsupported message: {message!r}")

        return None

    def update_config(self, updates: Mapping[str, Any]) -> None:
        """Merge configuration; takes effect on the next probe and tick."""
        self.probe.update_config(updates)
        self.scheduler.interval_ms = self.probe.config['checkIntervalMs']
        logger.info(f"Configuration updated: {self.probe.config}")

    def run_probe(self) -> ConflictResults:
        """Probe the current store contents and publish the results."""
        results = self.probe.probe(self.store.eligible_records(), now=self.clock())
        self.last_results = results
        logger.info(f"Probe cycle complete: {results}")
        self._publish(results)
        return results

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    @property
    def worker_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start_worker(self) -> None:
        """Start the message-processing thread (no-op if already running)."""
        if self.worker_running:
            return

        self._worker = threading.Thread(
            target=self._run,
            name="conflict-engine",
            daemon=True
        )
        self._worker.start()
        logger.info("Conflict engine worker started")

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the scheduler and the worker thread, draining queued messages first."""
        self.scheduler.stop()

        if not self.worker_running:
            return

        self._inbox.put(_SHUTDOWN)
        self._worker.join(timeout)
        self._worker = None
        logger.info("Conflict engine worker stopped")

    def _run(self) -> None:
        while True:
            message = self._inbox.get()
            try:
                if message is _SHUTDOWN:
                    return
                self.handle(message)
            except (InvalidFlightRecordError, UnknownMessageError) as e:
                logger.warning(f"Dropping message {message!r}: {e}")
            except Exception:
                logger.exception(f"Failed to process message {message!r}")
            finally:
                self._inbox.task_done()

    def join(self) -> None:
        """Block until every queued message has been processed."""
        self._inbox.join()

    def __repr__(self) -> str:
        """String representation of the engine."""
        return (
            f"ConflictEngine(records={len(self.store)}, "
            f"scheduler={'running' if self.scheduler.running else 'stopped'})"
        )
