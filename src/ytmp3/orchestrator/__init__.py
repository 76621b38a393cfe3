"""Batch orchestration: ledger, admission, cancellation, task execution, reporting."""
