"""Partial-success results for bulk operations."""

from dataclasses import dataclass, field
from typing import Any, List

from estate_admin.core.exceptions import EstateAdminError


@dataclass
class BatchFailure:
    id: Any
    code: str
    message: str


@dataclass
class BatchResult:
    """Which items of a bulk request succeeded and which failed, and why."""
    succeeded: List[Any] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)

    def fail(self, item_id: Any, error: EstateAdminError) -> None:
        self.failed.append(BatchFailure(item_id, error.code, error.message))

    @property
    def count(self) -> int:
        return len(self.succeeded)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "succeeded": list(self.succeeded),
            "failed": [
                {"id": f.id, "code": f.code, "message": f.message}
                for f in self.failed
            ],
        }
