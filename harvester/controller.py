"""
Crawl Controller Module

The state machine that drives a run: fetch, extract, paginate, repeat.
Owns the run state and tells subscribers about every change.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from harvester.errors import RunInProgressError
from harvester.extraction.selectors import ParsedPage, SelectorEvaluator
from harvester.extraction.structurer import structure_records
from harvester.fetchers.http_fetcher import FetchClient
from harvester.models import ExtractionPlan, Record
from harvester.pagination import PaginationResolver
from harvester.safety.rate_limiter import RequestThrottle
from harvester.state import (
    CrawlEvent,
    EventKind,
    Listener,
    RunHistory,
    RunPhase,
    RunSnapshot,
    RunState,
    copy_record,
)


logger = logging.getLogger(__name__)


class CrawlController:
    """
    Runs an extraction plan across the pages of a paginated resource.

    Phases: idle -> running <-> paused -> completed | failed, and
    running/paused -> idle on stop().

    Pages are fetched one at a time. Pause, the inter-page delay and retry
    backoff are the only suspension points; stop() cuts all three short
    but never interrupts a request in flight.

    All methods must be called from the event loop running the crawl
    (use loop.call_soon_threadsafe from other threads).

    Example:
        controller = CrawlController()
        controller.subscribe(lambda event: print(event.kind, event.snapshot.progress))
        snapshot = await controller.run(plan)
        print(snapshot.phase, len(snapshot.records))
    """

    def __init__(
        self,
        fetch_client: FetchClient | None = None,
        evaluator: SelectorEvaluator | None = None,
        resolver: PaginationResolver | None = None,
        throttle: RequestThrottle | None = None,
        history: RunHistory | None = None,
    ):
        """
        Initialize the controller.

        Args:
            fetch_client: Page fetcher (default FetchClient)
            evaluator: Selector evaluator
            resolver: Pagination resolver
            throttle: Inter-request delay enforcer
            history: Shared run history (a private one if None)
        """
        self._fetch_client = fetch_client or FetchClient()
        self._evaluator = evaluator or SelectorEvaluator()
        self._resolver = resolver or PaginationResolver()
        self._throttle = throttle or RequestThrottle()
        self._history = history if history is not None else RunHistory()

        self._state = RunState()
        self._listeners: List[Listener] = []
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._resume_event = asyncio.Event()
        self._resume_event.set()

    @property
    def phase(self) -> RunPhase:
        return self._state.phase

    @property
    def history(self) -> RunHistory:
        return self._history

    @property
    def is_active(self) -> bool:
        """True while a run's loop has not finished."""
        return self._task is not None and not self._task.done()

    @property
    def _stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def snapshot(self) -> RunSnapshot:
        """Consistent copy of the current run state."""
        return self._state.snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for crawl events.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: EventKind, records: tuple = ()) -> None:
        if not self._listeners:
            return
        snapshot = self._state.snapshot()
        if kind is EventKind.COMPLETED:
            records = snapshot.records
        event = CrawlEvent(kind=kind, snapshot=snapshot, records=records)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Listener failed on {kind.value} event: {e}")

    def start(self, plan: ExtractionPlan) -> asyncio.Task:
        """
        Start a run in the background.

        State is reset before this returns, so snapshot() already shows
        the new run.

        Args:
            plan: The extraction plan

        Returns:
            The task running the crawl loop

        Raises:
            ConfigurationError: If the plan has no address or no selectors
            RunInProgressError: If another run is still active
        """
        plan.validate_for_run()
        if self.is_active:
            raise RunInProgressError("A run is already active on this controller")

        self._stop_event = asyncio.Event()
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._throttle.reset()

        if plan.rate_limit.concurrent_requests > 1:
            logger.info(
                f"concurrent_requests={plan.rate_limit.concurrent_requests} requested; "
                "pages are fetched one at a time"
            )

        self._state.reset(total=self._page_budget(plan))
        logger.info(f"Run started: {plan.address}")
        self._emit(EventKind.PHASE)

        self._task = asyncio.create_task(self._run_loop(plan))
        return self._task

    async def run(self, plan: ExtractionPlan) -> RunSnapshot:
        """Start a run and wait for it to end. Returns the final snapshot."""
        await self.start(plan)
        return self.snapshot()

    async def wait(self) -> RunSnapshot:
        """Wait for the active run (if any) to end."""
        if self._task is not None:
            await asyncio.shield(self._task)
        return self.snapshot()

    def pause(self) -> None:
        """Suspend the run before its next page."""
        if self._state.phase is not RunPhase.RUNNING:
            logger.debug(f"pause() ignored in phase {self._state.phase.value}")
            return
        self._resume_event.clear()
        self._state.phase = RunPhase.PAUSED
        logger.info("Run paused")
        self._emit(EventKind.PHASE)

    def resume(self) -> None:
        """Continue a paused run."""
        if self._state.phase is not RunPhase.PAUSED:
            logger.debug(f"resume() ignored in phase {self._state.phase.value}")
            return
        self._state.phase = RunPhase.RUNNING
        self._resume_event.set()
        logger.info("Run resumed")
        self._emit(EventKind.PHASE)

    def stop(self) -> None:
        """
        Stop the run. Phase becomes idle at once; the loop exits at its next
        checkpoint and collected records stay available.
        """
        if not self._state.phase.is_active:
            logger.debug(f"stop() ignored in phase {self._state.phase.value}")
            return
        self._stop_event.set()
        self._resume_event.set()
        self._state.finish(RunPhase.IDLE)
        logger.info("Run stopped")
        self._emit(EventKind.PHASE)

    @staticmethod
    def _page_budget(plan: ExtractionPlan) -> Optional[int]:
        if not plan.paginates:
            return 1
        return plan.pagination.page_limit

    async def _wait_if_paused(self) -> bool:
        """Block while paused. Returns False if the run was stopped."""
        if not self._resume_event.is_set():
            await self._resume_event.wait()
        return not self._stop_requested

    async def _run_loop(self, plan: ExtractionPlan) -> None:
        try:
            await self._crawl(plan)
        except asyncio.CancelledError:
            if self._state.phase.is_active:
                self._state.finish(RunPhase.IDLE)
                self._emit(EventKind.PHASE)
            raise
        except Exception as e:
            logger.exception(f"Run against {plan.address} crashed")
            self._fail(str(e) or type(e).__name__)

    async def _crawl(self, plan: ExtractionPlan) -> None:
        rate_limit = plan.rate_limit
        limit = self._page_budget(plan)
        address = plan.address
        pages = 0
        visited = {address}

        while not self._stop_requested:
            if not await self._wait_if_paused():
                break

            result = await self._fetch_client.fetch(
                address,
                headers=plan.headers,
                timeout_ms=rate_limit.timeout_ms,
                max_retries=rate_limit.retries,
                cancel_event=self._stop_event,
            )

            # stop() may have landed while the request was in flight
            if self._stop_requested:
                break
            if result.error is not None and result.error.is_cancelled:
                break
            if not result.success:
                message = result.error.message if result.error else f"Failed to fetch {address}"
                self._fail(message)
                return
            if not result.content:
                self._fail(f"Failed to fetch content from {address}")
                return

            page = ParsedPage(result.content, url=address)
            records = structure_records(self._evaluator.evaluate_all(page, plan.selectors))
            self._append(records)
            self._throttle.mark()
            pages += 1
            logger.info(f"Page {pages} ({address}): {len(records)} records")

            if not plan.paginates:
                break
            if limit is not None and pages >= limit:
                logger.info(f"Reached page limit of {limit}")
                break

            if not await self._throttle.wait(rate_limit.request_delay, self._stop_event):
                break

            next_address = self._resolver.next_address(
                address, plan.pagination, pages + 1, page=page
            )
            if next_address is None:
                logger.info("No next page; pagination finished")
                break
            if next_address in visited:
                logger.info(f"Next page {next_address} was already fetched; pagination finished")
                break
            visited.add(next_address)
            address = next_address

        if self._stop_requested:
            logger.info(f"Run against {plan.address} ended by stop after {pages} pages")
            return

        self._complete(plan)

    def _append(self, records: List[Record]) -> None:
        self._state.add_page(records)
        self._emit(EventKind.RECORDS, records=tuple(copy_record(r) for r in records))

    def _complete(self, plan: ExtractionPlan) -> None:
        self._state.finish(RunPhase.COMPLETED)
        entry = self._history.record(plan.address, len(self._state.records))
        logger.info(
            f"Run completed: {entry.record_count} records from "
            f"{self._state.progress.current} pages"
        )
        self._emit(EventKind.COMPLETED)

    def _fail(self, message: str) -> None:
        if not self._state.phase.is_active:
            return
        self._state.finish(RunPhase.FAILED, error=message)
        logger.error(f"Run failed: {message}")
        self._emit(EventKind.FAILED)

    def get_stats(self) -> dict:
        """Get current statistics."""
        return {
            "status": self._state.phase.value,
            "progress": self._state.progress.to_dict(),
            "error": self._state.error,
            "throttle": self._throttle.get_stats(),
            "runs_completed": len(self._history),
        }
