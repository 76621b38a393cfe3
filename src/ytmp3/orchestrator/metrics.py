"""Run accounting and report rendering."""

from __future__ import annotations

import time
from collections import Counter
from datetime import datetime
from pathlib import Path

from ytmp3.orchestrator.models import (
    JobOutcome,
    JobResult,
    OutcomeCategory,
    RunSummary,
)

_SUMMARY_RULE = "═" * 60
_SUMMARY_THIN_RULE = "─" * 60
_BOX_RULE = "═" * 47


class RunAggregator:
    """Count job results as they arrive; each result lands in exactly one bucket."""

    def __init__(self, *, submitted: int, started_monotonic: float | None = None) -> None:
        self.submitted = submitted
        self._started = time.monotonic() if started_monotonic is None else started_monotonic
        self._categories: Counter[OutcomeCategory] = Counter()
        self._outcomes: Counter[JobOutcome] = Counter()

    def record(self, result: JobResult) -> None:
        self._categories[result.category] += 1
        self._outcomes[result.outcome] += 1

    @property
    def reported(self) -> int:
        return sum(self._categories.values())

    def finish(self, *, interrupted: bool) -> RunSummary:
        return RunSummary(
            submitted=self.submitted,
            succeeded=self._categories[OutcomeCategory.SUCCEEDED],
            skipped=self._categories[OutcomeCategory.SKIPPED],
            errored=self._categories[OutcomeCategory.ERRORED],
            elapsed_seconds=time.monotonic() - self._started,
            interrupted=interrupted,
            outcome_counts=dict(self._outcomes),
        )


def render_run_start(*, total: int, started_at: datetime) -> str:
    return f"Starting processing for {total} items at {started_at:%H:%M:%S}"


def render_job_start(*, item_number: int, total: int, identifier: str, started_at: datetime) -> str:
    return (
        f"\n╔════ ITEM {item_number}/{total} {'═' * 32}\n"
        f"║ URL: {identifier}\n"
        f"║ Start: {started_at:%H:%M:%S}\n"
        f"╚{_BOX_RULE}"
    )


def render_job_result(result: JobResult) -> str:
    """One line per finished job, e.g. ``[2] abc (14s) - Success``."""

    status = _status_text(result)
    if result.post_process is not None and result.post_process.attempted:
        if result.post_process.errors:
            status += f" (thumbnails: {result.post_process.errors} errors)"
        else:
            status += f" (thumbnails embedded into {result.post_process.processed} files)"
    return (
        f"[{result.item_number}] {result.identifier} "
        f"({_format_duration(result.duration_seconds)}) - {status}"
    )


def render_summary_lines(summary: RunSummary, *, ledger_path: Path | None) -> list[str]:
    status = "PROCESSING INTERRUPTED" if summary.interrupted else "Processing complete"
    lines = [
        "",
        f"{'═' * 19} PROCESSING SUMMARY {'═' * 21}",
        f" Status:                  {status}",
        _SUMMARY_THIN_RULE,
        f" Total items submitted:   {summary.submitted}",
        f" Successfully processed:  {summary.succeeded}",
        f" Skipped:                 {summary.skipped}",
    ]
    lines.extend(
        f"   {label:<22}{summary.outcome_counts.get(outcome, 0)}"
        for outcome, label in (
            (JobOutcome.SKIPPED_ALREADY_DONE, "already in ledger:"),
            (JobOutcome.SKIPPED_DUPLICATE, "duplicate:"),
        )
        if summary.outcome_counts.get(outcome)
    )
    lines.append(f" Errors/Cancelled:        {summary.errored}")
    lines.extend(
        f"   {label:<22}{summary.outcome_counts.get(outcome, 0)}"
        for outcome, label in (
            (JobOutcome.FAILED, "failed:"),
            (JobOutcome.CANCELLED, "cancelled:"),
            (JobOutcome.SUCCEEDED_WITH_LEDGER_ERROR, "ledger write failed:"),
        )
        if summary.outcome_counts.get(outcome)
    )
    lines.extend(
        [
            f" Ledger file:             {ledger_path if ledger_path is not None else 'disabled'}",
            f" Total duration:          {_format_duration(summary.elapsed_seconds)}",
            _SUMMARY_RULE,
        ],
    )
    return lines


def _status_text(result: JobResult) -> str:
    if result.outcome == JobOutcome.SUCCEEDED:
        return "Success"
    if result.outcome == JobOutcome.SKIPPED_ALREADY_DONE:
        return "Skipped (already in ledger)"
    if result.outcome == JobOutcome.SKIPPED_DUPLICATE:
        return "Skipped (duplicate)"
    if result.outcome == JobOutcome.CANCELLED:
        return "Cancelled"
    if result.outcome == JobOutcome.SUCCEEDED_WITH_LEDGER_ERROR:
        return f"Success, ledger write failed: {result.error_summary}"
    return f"Failed: {result.error_summary or 'unknown error'}"


def _format_duration(seconds: float) -> str:
    total = int(round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"
