"""Batch orchestration of single-record pipelines.

One coordinating coroutine owns the queue of pending records. It keeps at
most ``concurrency`` pipeline tasks running, collects their outcomes as they
finish and re-queues records whose pipeline raised an unexpected exception.
Pipelines never touch the queue themselves.
"""

import asyncio
import inspect
from collections import deque
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    Deque,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
    Union,
)

from ..config.logger import logger
from ..connectors.rgpv.interfaces import (
    AttemptRecord,
    ErrorKind,
    RecordOutcome,
    StudentRecord,
)
from .outage_breaker import OutageBreaker

if TYPE_CHECKING:
    from ..context import RunContext

ProgressCallback = Callable[[RecordOutcome], Union[None, Awaitable[None]]]

CACHE_HIT_MESSAGE = "Result loaded from cache"
SKIPPED_MESSAGE = "Skipped: remote service unavailable"


class BatchOrchestrator:
    """Run the result pipeline over many roll numbers concurrently."""

    def __init__(self, context: "RunContext", breaker: Optional[OutageBreaker] = None):
        """Initialize the orchestrator.

        Args:
            context: Run context owning the pool, pipeline and cache.
            breaker: Outage breaker; a default one is created if not provided.
        """
        self.context = context
        self.config = context.config
        self.breaker = breaker or OutageBreaker()
        self.logger = logger.bind(component="batch_orchestrator")

    async def _notify(
        self,
        callback: Optional[ProgressCallback],
        outcome: RecordOutcome,
    ) -> None:
        if callback is None:
            return
        try:
            result = callback(outcome)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(
                "progress_callback_failed",
                roll_number=outcome.roll_number,
                error=str(e),
                exc_info=True,
            )

    async def _complete(
        self,
        outcome: RecordOutcome,
        outcomes: List[RecordOutcome],
        callback: Optional[ProgressCallback],
    ) -> None:
        if outcome.success and not outcome.from_cache and outcome.data is not None:
            await self.context.cache.add(outcome.roll_number, outcome.data)
        outcomes.append(outcome)
        await self._notify(callback, outcome)

    async def _split_cached(
        self,
        records: Iterable[StudentRecord],
        outcomes: List[RecordOutcome],
        callback: Optional[ProgressCallback],
    ) -> Deque[Tuple[StudentRecord, int]]:
        """Resolve cached records and return the queue of records to fetch."""
        cache = self.context.cache
        await cache.load()

        pending: Deque[Tuple[StudentRecord, int]] = deque()
        seen: Set[str] = set()
        for record in records:
            if record.roll_number in seen:
                self.logger.warning("record_duplicate_dropped", roll_number=record.roll_number)
                continue
            seen.add(record.roll_number)

            if record.roll_number in cache and not record.force_reprocess:
                payload = await cache.read(record.roll_number)
                if payload is not None:
                    self.logger.debug("record_cached", roll_number=record.roll_number)
                    outcome = RecordOutcome(
                        roll_number=record.roll_number,
                        semester=record.semester,
                        success=True,
                        data=payload,
                        from_cache=True,
                        message=CACHE_HIT_MESSAGE,
                    )
                    await self._complete(outcome, outcomes, callback)
                    continue
                self.logger.warning("cached_result_unreadable", roll_number=record.roll_number)

            pending.append((record, 0))
        return pending

    def _unexpected_failure(
        self,
        record: StudentRecord,
        tries: int,
        error: BaseException,
    ) -> RecordOutcome:
        return RecordOutcome(
            roll_number=record.roll_number,
            semester=record.semester,
            success=False,
            attempts=tries,
            errors=[AttemptRecord(tries, "pipeline", ErrorKind.UNEXPECTED, str(error))],
            message=f"Unexpected error after {tries} tries: {error}",
        )

    def _skipped(self, record: StudentRecord) -> RecordOutcome:
        return RecordOutcome(
            roll_number=record.roll_number,
            semester=record.semester,
            success=False,
            attempts=0,
            service_unavailable=True,
            message=SKIPPED_MESSAGE,
        )

    async def _drain(
        self,
        pending: Deque[Tuple[StudentRecord, int]],
        limit: int,
        outcomes: List[RecordOutcome],
        callback: Optional[ProgressCallback],
    ) -> None:
        pipeline = self.context.pipeline
        stop_on_outage = self.config.stop_on_service_unavailable
        max_tries = max(1, self.config.max_retries)
        running: Dict["asyncio.Task[RecordOutcome]", Tuple[StudentRecord, int]] = {}

        try:
            while pending or running:
                while pending and len(running) < limit:
                    record, tries = pending.popleft()
                    if stop_on_outage and not await self.breaker.allow_request():
                        self.logger.info("record_skipped_outage", roll_number=record.roll_number)
                        await self._complete(self._skipped(record), outcomes, callback)
                        continue

                    task = asyncio.create_task(
                        pipeline.fetch(record.roll_number, record.semester),
                        name=f"fetch-{record.roll_number}",
                    )
                    running[task] = (record, tries + 1)

                if not running:
                    continue

                done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    record, tries = running.pop(task)
                    try:
                        outcome = task.result()
                    except Exception as e:
                        self.logger.error(
                            "pipeline_unexpected_error",
                            roll_number=record.roll_number,
                            tries=tries,
                            error=str(e),
                            exc_info=True,
                        )
                        await self.breaker.release_trial()
                        if tries < max_tries:
                            pending.append((record, tries))
                            continue
                        outcome = self._unexpected_failure(record, tries, e)
                    else:
                        if outcome.service_unavailable:
                            await self.breaker.record_failure()
                        else:
                            await self.breaker.record_success()

                    await self._complete(outcome, outcomes, callback)
        finally:
            for task in running:
                task.cancel()
            if running:
                await asyncio.gather(*running, return_exceptions=True)

    async def run(
        self,
        records: Iterable[StudentRecord],
        concurrency: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[RecordOutcome]:
        """Fetch every record, skipping those already in the completion cache.

        Args:
            records: Records to process.
            concurrency: Maximum pipelines running at once. Defaults to the
                configured concurrency.
            progress_callback: Called with every outcome as it is produced;
                may be a plain function or a coroutine function.

        Returns:
            One outcome per record, in completion order.

        Raises:
            OCRPoolInitializationError: If no OCR engine could be started.
        """
        limit = max(1, concurrency or self.config.concurrency)
        records = list(records)
        outcomes: List[RecordOutcome] = []

        self.logger.info("batch_started", records=len(records), concurrency=limit)

        pending = await self._split_cached(records, outcomes, progress_callback)
        self.logger.info(
            "batch_cache_checked",
            cached=len(outcomes),
            to_fetch=len(pending),
        )

        if pending:
            pool = self.context.pool
            await pool.initialize(self.config.ocr_concurrency)
            try:
                await self._drain(pending, limit, outcomes, progress_callback)
            finally:
                await pool.shutdown()

        successful = sum(1 for outcome in outcomes if outcome.success)
        self.logger.info(
            "batch_completed",
            total=len(outcomes),
            successful=successful,
            failed=len(outcomes) - successful,
            breaker=self.breaker.current_state.value,
        )
        return outcomes
