"""
Caller-supplied cancellation and timeout for record store calls.
"""

import threading
import time
from typing import Optional

from dedup.errors import OperationCancelled


class CancelToken:
    """
    Cancellation flag plus an optional deadline.

    Checked before every external call. Cancelling does not interrupt a call
    that is already running; it stops the next one from starting.

    Usage:
        token = CancelToken(timeout=10)
        engine.merge(RecordKind.ORGANIZATION, keep_id, discard_id, token=token)
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self, operation: str = "operation") -> None:
        """Raise OperationCancelled if the token is cancelled or expired."""
        if self.cancelled:
            raise OperationCancelled(f"{operation}: {self._reason}")
        if self.expired:
            raise OperationCancelled(f"{operation}: deadline exceeded")


def check_token(token: Optional[CancelToken], operation: str) -> None:
    """Check a token if one was supplied."""
    if token is not None:
        token.check(operation)
