"""
Error taxonomy for the dedup engine.

Every error surfaces to the caller; nothing here is retried automatically.
Candidate generation is read-only, so callers may simply run it again.
"""

from typing import Optional


class DedupError(Exception):
    """Base class for all dedup engine errors."""


class ValidationError(DedupError):
    """Malformed input, e.g. a record without its required name field."""


class StoreUnavailable(DedupError):
    """A record store or ledger call failed. The original error is chained."""


class StaleRecord(DedupError):
    """
    A merge referenced a record that no longer exists.

    Non-fatal: the operator should re-fetch candidates.
    """

    def __init__(self, kind, record_id):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.value} {record_id} no longer exists")


class PartialMergeFailure(DedupError):
    """
    A merge step failed after an earlier step had already committed.

    The store is left in an intermediate state (e.g. keep-record updated,
    discard-record still present). Re-running the same merge finishes the
    remaining steps.
    """

    def __init__(self, completed_steps: list[str], failed_step: str, summary=None):
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.summary = summary
        super().__init__(
            f"Merge failed at '{failed_step}' after completing: "
            f"{', '.join(self.completed_steps)}"
        )


class MergeInProgress(DedupError):
    """Another merge touching one of the same record ids is still running."""

    def __init__(self, record_ids):
        self.record_ids = sorted(str(r) for r in record_ids)
        super().__init__(f"Merge already in flight for: {', '.join(self.record_ids)}")


class OperationCancelled(DedupError):
    """The caller cancelled the operation or its deadline passed."""

    def __init__(self, reason: Optional[str] = None):
        super().__init__(reason or "operation cancelled")
