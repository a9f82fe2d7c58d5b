"""Engine result values and infrastructure failures."""

from enum import Enum


class Outcome(str, Enum):
    """Result of a lifecycle operation.

    Validation-shaped conditions are returned, never raised.
    """

    OK = "ok"
    COMPLETED = "completed"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    NOT_DUE = "not_due"
    ROUTER_FAILURE = "router_failure"
    PRICE_ABOVE_LIMIT = "price_above_limit"

    @property
    def ok(self) -> bool:
        return self in (Outcome.OK, Outcome.COMPLETED)

    def __bool__(self) -> bool:
        return self.ok


class StorageFailure(Exception):
    """The position store could not commit a mutation."""
