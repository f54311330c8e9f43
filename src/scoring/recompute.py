"""Recomputation engine - fills the points cache for every stat record.

One pass under a scoring rule:

1. Count the stat records (N) for the progress denominator.
2. Page through them in fixed-size batches, in insertion order.
3. Skip records missing a key, skip keys already cached, compute the rest.
4. Commit each batch together with the resume offset in one transaction.
5. Advance progress by batch_size / N; check for cancellation between
   batches.

A failed commit leaves the resume offset at the last committed batch,
so calling again picks up where the pass stopped. A resumed pass then
wraps around to re-check the records before that offset, so it only
reports completion once every record has been checked.
"""

import logging
import sqlite3
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from src.projections.models import StatRecord
from src.scoring.calculator import calculate_points
from src.scoring.config import (
    MAX_BATCH_RETRIES,
    RECOMPUTE_BATCH_SIZE,
    RETRY_BACKOFF_SECONDS,
)
from src.scoring.errors import MissingFieldError, PersistenceError
from src.scoring.models import ComputedPoints, RecomputationResult, ScoringRule
from src.scoring.points_cache import require_key
from src.scoring.progress import Dispatch, ProgressReporter
from src.scoring.store import ProjectionStore

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[RecomputationResult], Any]


class RecomputationEngine:
    """Computes points for all stat records under a scoring rule.

    ``recalculate`` runs a pass on the calling thread; ``start`` runs it
    on a background worker and returns a Future. Each pass uses its own
    store connection.
    """

    def __init__(
        self,
        store: ProjectionStore,
        batch_size: int = RECOMPUTE_BATCH_SIZE,
        max_retries: int = MAX_BATCH_RETRIES,
        retry_backoff: float = RETRY_BACKOFF_SECONDS,
        max_workers: int = 1,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.store = store
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def recalculate(
        self,
        rule: ScoringRule,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
        resume: bool = True,
    ) -> RecomputationResult:
        """Run one full pass for *rule* on the current thread.

        Args:
            rule: Scoring rule to compute points under.
            progress: Reporter to advance; a private one is used if omitted.
            cancel_event: Checked between batches; when set the pass stops
                with status ``"cancelled"`` and can be resumed later.
            resume: Continue from the last committed batch of an earlier,
                unfinished pass for the same rule.

        Returns:
            Counters for the pass.

        Raises:
            PersistenceError: If the store fails and retries are exhausted
                or the failure is not transient. Progress is left FAILED.
        """
        progress = progress or ProgressReporter()
        try:
            conn = self.store.connect()
        except PersistenceError as e:
            progress.fail(e)
            raise

        try:
            return self._run_pass(conn, rule, progress, cancel_event, resume)
        except PersistenceError as e:
            logger.error("Recomputation for %r aborted: %s", rule.name, e)
            progress.fail(e)
            raise
        finally:
            conn.close()

    def start(
        self,
        rule: ScoringRule,
        on_complete: Optional[CompletionCallback] = None,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
        dispatch: Optional[Dispatch] = None,
    ) -> "Future[RecomputationResult]":
        """Run a pass in the background.

        ``on_complete(result)`` is called only when the pass completes,
        through ``dispatch(on_complete, result)`` when a dispatch is
        given (for example ``loop.call_soon_threadsafe``). Failures are
        raised from the returned Future and leave *progress* FAILED.
        """
        progress = progress or ProgressReporter(dispatch)

        def run() -> RecomputationResult:
            result = self.recalculate(rule, progress, cancel_event)
            if result.is_complete and on_complete is not None:
                if dispatch is not None:
                    dispatch(on_complete, result)
                else:
                    on_complete(result)
            return result

        return self._get_executor().submit(run)

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait)
                self._executor = None

    def __enter__(self) -> "RecomputationEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------
    def _run_pass(
        self,
        conn: sqlite3.Connection,
        rule: ScoringRule,
        progress: ProgressReporter,
        cancel_event: Optional[threading.Event],
        resume: bool,
    ) -> RecomputationResult:
        total = self.store.count_stat_records(conn)
        result = RecomputationResult(scoring_rule_name=rule.name, status="completed", total=total)
        progress.start()

        if total == 0:
            logger.info("No stat records to score under %r", rule.name)
            self.store.clear_recompute_cursor(rule.name, conn)
            progress.finish()
            return result

        start = self.store.get_recompute_cursor(rule.name, conn) if resume else 0
        if start >= total:
            start = 0
        if start:
            result.resumed_from = start
            logger.info("Resuming %r at record %d of %d", rule.name, start, total)
        else:
            logger.info("Computing %r points for %d stat records", rule.name, total)

        # The cursor may belong to another pass, or records below it may have
        # lost their points since; wrap around and re-check them.
        segments = [(start, total)]
        if start:
            segments.append((0, start))

        for begin, end in segments:
            if not self._scan(conn, rule, begin, end, total, progress, cancel_event, result):
                logger.info(
                    "Recomputation for %r cancelled after %d batch(es)",
                    rule.name, result.batches,
                )
                result.status = "cancelled"
                progress.cancel()
                return result

        self.store.clear_recompute_cursor(rule.name, conn)
        progress.finish()
        logger.info(
            "Finished %r: %d computed, %d already cached, %d skipped",
            rule.name, result.computed, result.already_cached, result.skipped_missing,
        )
        return result

    def _scan(
        self,
        conn: sqlite3.Connection,
        rule: ScoringRule,
        begin: int,
        end: int,
        total: int,
        progress: ProgressReporter,
        cancel_event: Optional[threading.Event],
        result: RecomputationResult,
    ) -> bool:
        """Process records [begin, end) batch by batch. False if cancelled."""
        offset = begin
        while offset < end:
            if cancel_event is not None and cancel_event.is_set():
                return False

            limit = min(self.batch_size, end - offset)
            batch = self.store.fetch_stat_records(offset, limit, conn)
            if not batch:
                break

            staged = self._stage_batch(batch, rule, result, conn)
            next_offset = offset + len(batch)
            inserted = self._commit_with_retry(staged, rule.name, next_offset, conn)

            result.computed += inserted
            # Entries another writer stored between our check and commit
            result.already_cached += len(staged) - inserted
            result.batches += 1
            logger.debug(
                "Batch %d: records %d-%d, %d new totals",
                result.batches, offset, next_offset - 1, inserted,
            )

            progress.advance(len(batch) / total)
            offset = next_offset
            staged.clear()
        return True

    def _stage_batch(
        self,
        batch: List[StatRecord],
        rule: ScoringRule,
        result: RecomputationResult,
        conn: sqlite3.Connection,
    ) -> List[ComputedPoints]:
        """Points for the records in *batch* that are not cached yet."""
        keyed = []
        for record in batch:
            try:
                require_key(record)
            except MissingFieldError as e:
                result.skipped_missing += 1
                logger.debug("Skipping record: %s", e)
                continue
            keyed.append(record)

        cached = self.store.existing_point_keys(
            rule.name, [record.key for record in keyed], conn
        )
        staged = []
        for record in keyed:
            if record.key in cached:
                result.already_cached += 1
                continue
            staged.append(
                ComputedPoints(
                    player_id=record.player_id,
                    projection_source=record.projection_source,
                    scoring_rule_name=rule.name,
                    amount=calculate_points(record, rule),
                )
            )
        return staged

    def _commit_with_retry(
        self,
        staged: List[ComputedPoints],
        rule_name: str,
        next_offset: int,
        conn: sqlite3.Connection,
    ) -> int:
        """Commit a batch, retrying transient store failures."""
        attempt = 0
        while True:
            try:
                return self.store.commit_points_batch(staged, rule_name, next_offset, conn)
            except PersistenceError as e:
                attempt += 1
                if not e.transient or attempt > self.max_retries:
                    logger.error(
                        "Commit of batch ending at %d for %r failed after %d attempt(s)",
                        next_offset, rule_name, attempt,
                    )
                    raise
                logger.warning(
                    "Commit of batch ending at %d for %r failed (attempt %d/%d): %s",
                    next_offset, rule_name, attempt, self.max_retries, e,
                )
                time.sleep(self.retry_backoff * attempt)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="recompute"
                )
            return self._executor
