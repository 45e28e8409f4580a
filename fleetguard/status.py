"""Status enum for document lifecycle states."""

from enum import Enum
from typing import Iterable


class Status(Enum):
    """Document lifecycle states, derived from the expiry date."""

    MISSING = "Missing"  # No expiry date on file
    VALID = "Valid"
    EXPIRING = "Expiring"
    EXPIRED = "Expired"

    @property
    def severity(self) -> int:
        """Higher = worse. Missing ranks between Expiring and Expired."""
        return _SEVERITY[self]


_SEVERITY = {
    Status.VALID: 0,
    Status.EXPIRING: 1,
    Status.MISSING: 2,
    Status.EXPIRED: 3,
}


def worst_status(statuses: Iterable[Status]) -> Status:
    """Most severe status; VALID for an empty sequence."""
    worst = Status.VALID
    for status in statuses:
        if status.severity > worst.severity:
            worst = status
    return worst
