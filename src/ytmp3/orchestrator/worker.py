"""Batch orchestrator that runs one concurrent job per unique identifier."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ytmp3.config import DownloadSettings
from ytmp3.orchestrator.backend import (
    TaskBackend,
    TaskExecutionError,
    TaskRunRequest,
)
from ytmp3.orchestrator.backend.cli_backend import OUTPUT_LOCK, THUMBNAIL_STEM
from ytmp3.orchestrator.cancellation import CancellationToken
from ytmp3.orchestrator.ledger import Ledger, LedgerWriteError
from ytmp3.orchestrator.metrics import (
    RunAggregator,
    render_job_result,
    render_job_start,
    render_run_start,
)
from ytmp3.orchestrator.models import JobOutcome, JobResult, PostProcessReport, RunSummary
from ytmp3.orchestrator.pending import PendingTracker
from ytmp3.postprocess.thumbnails import ThumbnailEmbedder

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchItem:
    """Identifier with its 1-based position in the submitted input."""

    item_number: int
    identifier: str


def deduplicate_identifiers(
    identifiers: Iterable[str],
) -> tuple[list[BatchItem], list[BatchItem]]:
    """Split trimmed, non-blank identifiers into first occurrences and repeats.

    Both lists keep input order and share one numbering.
    """

    seen: set[str] = set()
    unique: list[BatchItem] = []
    repeats: list[BatchItem] = []
    for identifier in _clean_identifiers(identifiers):
        item = BatchItem(item_number=len(unique) + len(repeats) + 1, identifier=identifier)
        if identifier in seen:
            repeats.append(item)
            continue
        seen.add(identifier)
        unique.append(item)
    return unique, repeats


class BatchOrchestrator:
    """Fan out one thread per identifier, fan results back in over a queue.

    Per job: PendingTracker admission, ledger check, backend run, then a
    ledger append when the backend succeeded. Every launched job puts
    exactly one :class:`JobResult` on the queue, and :meth:`run` returns
    only after all of them were received.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        backend: TaskBackend,
        ledger: Ledger | None,
        download: DownloadSettings,
        token: CancellationToken | None = None,
        pending: PendingTracker | None = None,
        post_processor: ThumbnailEmbedder | None = None,
        graceful_shutdown_seconds: float = 10.0,
        output_tee: Callable[[str], None] | None = None,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.backend = backend
        self.ledger = ledger
        self.download = download
        self.token = token or CancellationToken()
        self.pending = pending or PendingTracker()
        self.post_processor = post_processor
        self.graceful_shutdown_seconds = graceful_shutdown_seconds
        self.output_tee = output_tee
        self._on_progress = on_progress or (lambda _line: None)

    def run(self, identifiers: Sequence[str], *, deduplicate_input: bool = True) -> RunSummary:
        """Run every identifier to a terminal outcome and return the aggregate."""

        if deduplicate_input:
            items, repeats = deduplicate_identifiers(identifiers)
        else:
            items = [
                BatchItem(item_number=number, identifier=identifier)
                for number, identifier in enumerate(_clean_identifiers(identifiers), start=1)
            ]
            repeats = []

        total = len(items) + len(repeats)
        aggregator = RunAggregator(submitted=total)
        self._emit(render_run_start(total=total, started_at=datetime.now()))
        if repeats:
            logger.info("Collapsed %d duplicate identifiers in input", len(repeats))

        results: queue.Queue[JobResult] = queue.Queue(maxsize=max(total, 1))
        threads = [
            threading.Thread(
                target=self._run_job,
                args=(item, total, results),
                name=f"ytmp3-job-{item.item_number}",
                daemon=True,
            )
            for item in items
        ]
        for thread in threads:
            thread.start()
        for item in repeats:
            results.put(
                JobResult(
                    identifier=item.identifier,
                    item_number=item.item_number,
                    outcome=JobOutcome.SKIPPED_DUPLICATE,
                    started_at=datetime.now(),
                    error_summary="duplicate in input",
                ),
            )

        for _ in range(total):
            result = results.get()
            aggregator.record(result)
            self._emit(render_job_result(result))

        for thread in threads:
            thread.join()
        return aggregator.finish(interrupted=self.token.cancelled)

    def _run_job(self, item: BatchItem, total: int, results: queue.Queue[JobResult]) -> None:
        started = time.monotonic()
        result = JobResult(
            identifier=item.identifier,
            item_number=item.item_number,
            outcome=JobOutcome.FAILED,
            started_at=datetime.now(),
        )
        try:
            self._emit(
                render_job_start(
                    item_number=item.item_number,
                    total=total,
                    identifier=item.identifier,
                    started_at=result.started_at,
                ),
            )
            self._execute(item, result)
        except Exception as error:
            logger.exception("[%s] Unexpected error while processing", item.identifier)
            result.outcome = JobOutcome.FAILED
            result.error_summary = f"unexpected error: {error}"
        finally:
            result.duration_seconds = time.monotonic() - started
            results.put(result)

    def _execute(self, item: BatchItem, result: JobResult) -> None:
        identifier = item.identifier
        with self.pending.admit(identifier) as admitted:
            if not admitted:
                logger.warning("[%s] Skipped, duplicate already in progress", identifier)
                result.outcome = JobOutcome.SKIPPED_DUPLICATE
                result.error_summary = "duplicate already in progress"
                return

            if self.ledger is not None and self.ledger.contains(identifier):
                logger.info("[%s] Skipped, already in ledger", identifier)
                result.outcome = JobOutcome.SKIPPED_ALREADY_DONE
                return

            if self.token.cancelled:
                result.outcome = JobOutcome.CANCELLED
                return

            try:
                execution = self.backend.run(
                    TaskRunRequest(
                        identifier=identifier,
                        download=self.download,
                        token=self.token,
                        graceful_shutdown_seconds=self.graceful_shutdown_seconds,
                        output_tee=self.output_tee,
                    ),
                )
            except TaskExecutionError as error:
                logger.error("[%s] %s", identifier, error)
                result.outcome = JobOutcome.FAILED
                result.error_summary = str(error)
                return

            result.exit_code = execution.exit_code
            if not execution.succeeded:
                if execution.cancelled:
                    logger.warning("[%s] Processing cancelled", identifier)
                    result.outcome = JobOutcome.CANCELLED
                else:
                    result.outcome = JobOutcome.FAILED
                    result.error_summary = (
                        f"downloader exited with code {execution.exit_code}"
                    )
                    logger.error("[%s] Failed: %s", identifier, result.error_summary)
                return

            if self.post_processor is not None and execution.output_dir is not None:
                if self.token.cancelled:
                    logger.info("[%s] Run cancelled, skipping thumbnail embedding", identifier)
                else:
                    result.post_process = self._post_process(identifier, execution.output_dir)

            self._record_success(identifier, result)

    def _post_process(self, identifier: str, output_dir: Path) -> PostProcessReport:
        """Embed thumbnails; failures land in the report, never in the job outcome."""

        try:
            return self.post_processor.process(
                output_dir,
                thumbnail_stem=THUMBNAIL_STEM,
                label=identifier,
            )
        except OSError as error:
            logger.error("[%s] Thumbnail embedding failed: %s", identifier, error)
            return PostProcessReport(attempted=True, errors=1)

    def _record_success(self, identifier: str, result: JobResult) -> None:
        if self.ledger is None:
            result.outcome = JobOutcome.SUCCEEDED
            return
        try:
            self.ledger.append(identifier)
        except LedgerWriteError as error:
            logger.warning(
                "[%s] Processed, but failed to update ledger %s: %s",
                identifier,
                self.ledger.path,
                error,
            )
            result.outcome = JobOutcome.SUCCEEDED_WITH_LEDGER_ERROR
            result.error_summary = str(error)
            return
        logger.debug("[%s] Added to ledger", identifier)
        result.outcome = JobOutcome.SUCCEEDED

    def _emit(self, line: str) -> None:
        with OUTPUT_LOCK:
            self._on_progress(line)


def _clean_identifiers(identifiers: Iterable[str]) -> list[str]:
    return [identifier.strip() for identifier in identifiers if identifier.strip()]
