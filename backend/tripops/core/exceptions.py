"""
Typed exceptions raised by the trip operations coordinator.

Every error carries a machine-readable ``code`` and the structured data the
caller needs, so handlers catch by type instead of matching messages.

    TripOpsError
    |
    +-- PreconditionFailed        trip not ready for the requested transition
    +-- InvalidArgument           malformed or missing input
    +-- InsufficientBalance       wallet cannot cover a voucher charge
    +-- InsufficientLeaveBalance  driver cannot cover a leave request
    +-- NotFound                  missing trip, order, wallet or driver
    +-- StoreFailure              persistence error, always retryable
        +-- ConcurrentModification  document changed since it was read

Validation errors are terminal: they are raised before any write is issued.
"""
from decimal import Decimal
from typing import Optional


class TripOpsError(Exception):
    """Base class for coordinator errors."""
    code: str = "TRIPOPS_ERROR"
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_details(self) -> dict:
        """Structured payload for API responses."""
        return {"code": self.code}


class PreconditionFailed(TripOpsError):
    code = "PRECONDITION_FAILED"


class InvalidArgument(TripOpsError):
    code = "INVALID_ARGUMENT"


class InsufficientBalance(TripOpsError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, available: Decimal, required: Decimal):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient wallet balance: available {available}, required {required}"
        )

    def to_details(self) -> dict:
        return {
            "code": self.code,
            "available": str(self.available),
            "required": str(self.required),
        }


class InsufficientLeaveBalance(TripOpsError):
    code = "INSUFFICIENT_LEAVE_BALANCE"

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient leave balance: available {available}, requested {requested}"
        )

    def to_details(self) -> dict:
        return {
            "code": self.code,
            "available": self.available,
            "requested": self.requested,
        }


class NotFound(TripOpsError):
    code = "NOT_FOUND"

    def __init__(self, collection: str, key: str):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection}/{key} not found")

    def to_details(self) -> dict:
        return {"code": self.code, "collection": self.collection, "key": self.key}


class StoreFailure(TripOpsError):
    code = "STORE_FAILURE"
    retryable = True


class ConcurrentModification(StoreFailure):
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, collection: str, key: str, expected: Optional[int], actual: Optional[int]):
        self.collection = collection
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{collection}/{key} changed since it was read (expected version {expected}, found {actual})"
        )

    def to_details(self) -> dict:
        return {"code": self.code, "collection": self.collection, "key": self.key}
