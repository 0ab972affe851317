"""Serializable result shapes returned by the fulfillment services."""

from dataclasses import asdict, dataclass, field


@dataclass
class SubmissionResult:
    """Outcome of a successful (or parked) order submission."""

    order_id: int
    kind: str
    status: str
    message: str
    external_reference: str | None = None
    note: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RefreshResult:
    """Outcome of a single status refresh."""

    updated: bool
    message: str
    status: str | None = None
    delivered_count: int | None = None
    # Seconds until the cooldown lets the order be polled again
    retry_after: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BulkRefreshResult:
    updated_count: int = 0
    failed_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ActionResult:
    """Outcome of a cancel or refund request."""

    ok: bool
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BulkSubmissionItem:
    success: bool
    order_id: int | None = None
    status: str | None = None
    error: str | None = None
    note: str | None = None


@dataclass
class BulkSubmissionResult:
    successful: int = 0
    # Paid for and awaiting resubmission; not sent to the provider
    parked: int = 0
    failed: int = 0
    results: list[BulkSubmissionItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
