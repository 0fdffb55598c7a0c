"""
Multi-Analyzer Orchestrator

Runs one observable through every analyzer that accepts its data type,
concurrently, and delivers one Outcome per analyzer as soon as it is known.

Per-run state machine:
    LISTING -> DISPATCHING -> AWAITING -> DONE

- LISTING: query the catalog. A failure aborts the run with CatalogError
  before anything is dispatched. Zero matches is not an error.
- DISPATCHING: one task per analyzer on a thread pool. File observables go
  through the fan-out splitter first, each task getting its own branch;
  inline observables are shared as is (immutable).
- AWAITING: tasks run independently. A failing analyzer becomes that
  analyzer's Outcome and never affects its siblings.
- DONE: the completion counter hit zero. Only then is the outcome channel
  closed, so no task can ever deliver into a closed channel.

Delivery modes:
    Callback: MultiRun(on_report=..., on_error=...).do(observable)
        Callbacks run on task threads; make them thread-safe.
    Channel:  for outcome in MultiRun(...).stream(observable): ...
        Outcomes arrive in completion order.
"""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Callable, Iterator, List, Optional, Union

from loguru import logger

from ..api.base import JobService
from ..core.config import CortexConfig, get_default_config
from ..core.exceptions import CatalogError, CortexError, RemoteError
from ..core.logging import create_run_summary
from ..models import AnalyzerDescriptor, FileStream, Inline, Observable, Outcome, Report
from .runner import Runner
from .splitter import Splitter

ReportCallback = Callable[[Report], None]
ErrorCallback = Callable[[CortexError], None]

# Enqueued once, after every outcome of the run
_CLOSED = object()


class RunState(str, Enum):
    """Multi-analyzer run state"""

    IDLE = "idle"
    LISTING = "listing"
    DISPATCHING = "dispatching"
    AWAITING = "awaiting"
    DONE = "done"


class _CompletionCounter:
    """
    Wait-group: counts down once per finished task.

    The event is set exactly once, by the task that brings the count to zero.
    """

    def __init__(self, count: int):
        self._count = count
        self._lock = threading.Lock()
        self._event = threading.Event()
        if count == 0:
            self._event.set()

    def done(self) -> bool:
        """Decrement; True for the call that reached zero"""
        with self._lock:
            if self._count <= 0:
                raise RuntimeError("completion counter decremented below zero")
            self._count -= 1
            reached_zero = self._count == 0
        if reached_zero:
            self._event.set()
        return reached_zero

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


class MultiRun:
    """
    Analyze an observable with all appropriate analyzers.

    Usage:
        # Callback mode (blocks until every analyzer finished)
        run = MultiRun(client, timeout=60, on_report=print, on_error=print)
        outcomes = run.do(Inline("ip", "8.8.8.8"))

        # Channel mode (returns immediately, iterate as results arrive)
        for outcome in MultiRun(client, timeout=60).stream(observable):
            print(outcome)
    """

    def __init__(
        self,
        service: JobService,
        timeout: Optional[float] = None,
        config: Optional[CortexConfig] = None,
        cancel: Optional[threading.Event] = None,
        on_report: Optional[ReportCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        """
        Args:
            service: Remote job client
            timeout: Per-analyzer wait budget in seconds (default: config.timeout)
            config: Client configuration
            cancel: Event that abandons in-flight waits when set
            on_report: Called with each successful Report (callback mode)
            on_error: Called with each failure (callback mode)
        """
        self.service = service
        self.config = config or get_default_config()
        self.timeout = self.config.timeout if timeout is None else timeout
        self.cancel = cancel
        self.on_report = on_report
        self.on_error = on_error

        self.runner = Runner(service, self.config)
        self.state = RunState.IDLE
        self.analyzers: List[AnalyzerDescriptor] = []
        self.outcomes: List[Outcome] = []
        self.splitter: Optional[Splitter] = None

        self._outcomes_lock = threading.Lock()
        self._started_at = 0.0

    # =========================================================================
    # Public API
    # =========================================================================

    def do(self, observable: Observable) -> List[Outcome]:
        """
        Run all matching analyzers and block until every one has finished.

        Outcomes are delivered through on_report/on_error as they complete.

        Returns:
            All outcomes, in completion order

        Raises:
            CatalogError: analyzer listing failed (nothing dispatched)
        """
        analyzers = self._list(observable)
        counter = self._dispatch(observable, analyzers, self._deliver_to_callbacks)
        counter.wait()
        self._finish(observable)
        return list(self.outcomes)

    def stream(self, observable: Observable) -> Iterator[Outcome]:
        """
        Start all matching analyzers and return an iterator over their outcomes.

        Listing happens before this returns, so CatalogError is raised here.
        The iterator ends once every dispatched analyzer has delivered.
        """
        analyzers = self._list(observable)
        channel: "queue.Queue" = queue.Queue(maxsize=len(analyzers) + 1)
        counter = self._dispatch(observable, analyzers, self._make_channel_delivery(channel))

        def close_when_done():
            counter.wait()
            self._finish(observable)
            channel.put(_CLOSED)

        threading.Thread(target=close_when_done, name="cortex-multirun-join", daemon=True).start()
        return self._drain(channel)

    # =========================================================================
    # States
    # =========================================================================

    def _list(self, observable: Observable) -> List[AnalyzerDescriptor]:
        """LISTING: analyzers accepting the observable's data type"""
        self.state = RunState.LISTING
        self._started_at = time.time()
        with self._outcomes_lock:
            self.outcomes = []
        self.splitter = None

        data_type = observable.kind()
        try:
            candidates = self.service.list_analyzers(data_type)
        except CatalogError:
            self.state = RunState.DONE
            raise
        except Exception as e:
            self.state = RunState.DONE
            logger.error(f"Failed to list analyzers for {data_type}: {e}")
            raise CatalogError(f"failed to list analyzers for data type {data_type}: {e}") from e

        analyzers = [a for a in candidates if a.accepts(data_type)]
        skipped = len(candidates) - len(analyzers)
        if skipped:
            logger.debug(f"Skipped {skipped} analyzers not accepting {data_type}")

        logger.info(
            f"Analyzing {observable.describe()} ({data_type}) with {len(analyzers)} analyzers: "
            f"{', '.join(a.name for a in analyzers) or '-'}"
        )
        self.analyzers = analyzers
        return analyzers

    def _dispatch(
        self,
        observable: Observable,
        analyzers: List[AnalyzerDescriptor],
        deliver: Callable[[Outcome], None],
    ) -> _CompletionCounter:
        """DISPATCHING: schedule one task per analyzer, then AWAITING"""
        self.state = RunState.DISPATCHING
        counter = _CompletionCounter(len(analyzers))

        if not analyzers:
            return counter

        inputs = self._prepare_inputs(observable, len(analyzers))

        max_workers = len(analyzers)
        if self.config.max_workers and not isinstance(observable, FileStream):
            max_workers = min(max_workers, self.config.max_workers)
        # A file branch that no worker reads would stall the broadcaster,
        # so file runs always get one worker per analyzer.

        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cortex-run")
        for analyzer, task_input in zip(analyzers, inputs):
            executor.submit(self._run_task, analyzer, task_input, deliver, counter)
        executor.shutdown(wait=False)

        self.state = RunState.AWAITING
        return counter

    def _prepare_inputs(self, observable: Observable, count: int) -> List[Observable]:
        """One input per task: a split branch per file task, the shared value otherwise"""
        if isinstance(observable, FileStream):
            self.splitter = Splitter(
                observable.reader,
                count,
                chunk_size=self.config.chunk_size,
                max_chunks=self.config.max_buffered_chunks,
                name=observable.filename,
            )
            return [observable.with_reader(stream) for stream in self.splitter.start()]

        if isinstance(observable, Inline):
            return [observable] * count

        raise TypeError(f"Unsupported observable: {type(observable).__name__}")

    def _run_task(
        self,
        analyzer: AnalyzerDescriptor,
        observable: Observable,
        deliver: Callable[[Outcome], None],
        counter: _CompletionCounter,
    ) -> None:
        """Run one analyzer; always delivers exactly one Outcome, then counts down"""
        try:
            try:
                report = self.runner.run(analyzer.id, observable, self.timeout, cancel=self.cancel)
                outcome = Outcome(analyzer, report=report)
            except CortexError as e:
                logger.warning(f"Failed to process {observable.describe()} with {analyzer.name}: {e}")
                outcome = Outcome(analyzer, error=e.with_context(analyzer=analyzer.id))
            except Exception as e:
                logger.exception(f"Unexpected error running {analyzer.name}: {e}")
                outcome = Outcome(
                    analyzer,
                    error=RemoteError(str(e), error_type=type(e).__name__, analyzer=analyzer.id),
                )
            finally:
                if isinstance(observable, FileStream):
                    # Detach the branch so the broadcaster never waits on it
                    observable.reader.close()

            with self._outcomes_lock:
                self.outcomes.append(outcome)
            deliver(outcome)
        finally:
            counter.done()

    def _finish(self, observable: Observable) -> None:
        """DONE"""
        self.state = RunState.DONE
        elapsed = time.time() - self._started_at
        with self._outcomes_lock:
            outcomes = list(self.outcomes)
        if outcomes:
            logger.info(create_run_summary(observable.describe(), outcomes, elapsed))

    # =========================================================================
    # Delivery
    # =========================================================================

    def _deliver_to_callbacks(self, outcome: Outcome) -> None:
        try:
            if outcome.ok:
                if self.on_report is not None:
                    self.on_report(outcome.report)
            elif self.on_error is not None:
                self.on_error(outcome.error)
        except Exception as e:
            logger.exception(f"Outcome callback for {outcome.analyzer.name} raised: {e}")

    @staticmethod
    def _make_channel_delivery(channel: "queue.Queue") -> Callable[[Outcome], None]:
        def deliver(outcome: Outcome) -> None:
            channel.put(outcome)
        return deliver

    @staticmethod
    def _drain(channel: "queue.Queue") -> Iterator[Outcome]:
        while True:
            item = channel.get()
            if item is _CLOSED:
                return
            yield item


def run_all(
    service: JobService,
    observable: Observable,
    timeout: Optional[float] = None,
    on_report: Optional[ReportCallback] = None,
    on_error: Optional[ErrorCallback] = None,
    cancel: Optional[threading.Event] = None,
    config: Optional[CortexConfig] = None,
) -> Union[List[Outcome], Iterator[Outcome]]:
    """
    Analyze an observable with every analyzer accepting its data type.

    With on_report/on_error: callback mode, blocks and returns all outcomes.
    Without callbacks: channel mode, returns an iterator of outcomes.
    """
    multi = MultiRun(
        service,
        timeout=timeout,
        config=config,
        cancel=cancel,
        on_report=on_report,
        on_error=on_error,
    )
    if on_report is not None or on_error is not None:
        return multi.do(observable)
    return multi.stream(observable)
