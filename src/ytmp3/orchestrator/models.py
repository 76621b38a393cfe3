"""Domain models for batch jobs and run accounting."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class JobOutcome(str, Enum):
    """Terminal outcome of one job; every job reports exactly one."""

    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_ALREADY_DONE = "skipped_already_done"
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_LEDGER_ERROR = "succeeded_with_ledger_error"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OutcomeCategory(str, Enum):
    """Summary bucket a job outcome is counted in."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    ERRORED = "errored"


OUTCOME_CATEGORIES: dict[JobOutcome, OutcomeCategory] = {
    JobOutcome.SUCCEEDED: OutcomeCategory.SUCCEEDED,
    JobOutcome.SKIPPED_DUPLICATE: OutcomeCategory.SKIPPED,
    JobOutcome.SKIPPED_ALREADY_DONE: OutcomeCategory.SKIPPED,
    JobOutcome.FAILED: OutcomeCategory.ERRORED,
    JobOutcome.CANCELLED: OutcomeCategory.ERRORED,
    JobOutcome.SUCCEEDED_WITH_LEDGER_ERROR: OutcomeCategory.ERRORED,
}


@dataclass(slots=True)
class PostProcessReport:
    """Result of the optional thumbnail embedding pass over a job's output."""

    attempted: bool
    processed: int = 0
    errors: int = 0

    @property
    def ok(self) -> bool:
        return self.errors == 0


@dataclass(slots=True)
class JobResult:
    """Single report emitted by a job to the aggregator."""

    identifier: str
    item_number: int
    outcome: JobOutcome
    started_at: datetime
    duration_seconds: float = 0.0
    exit_code: int | None = None
    error_summary: str | None = None
    post_process: PostProcessReport | None = None

    @property
    def category(self) -> OutcomeCategory:
        return OUTCOME_CATEGORIES[self.outcome]


@dataclass(slots=True)
class RunSummary:
    """Aggregate counters for one run, derived only from job results."""

    submitted: int = 0
    succeeded: int = 0
    skipped: int = 0
    errored: int = 0
    elapsed_seconds: float = 0.0
    interrupted: bool = False
    outcome_counts: dict[JobOutcome, int] = field(default_factory=dict)

    @property
    def reported(self) -> int:
        return self.succeeded + self.skipped + self.errored

    @property
    def exit_code(self) -> int:
        """Process exit code: non-zero when any job ended in an error bucket."""

        return 1 if self.errored else 0
