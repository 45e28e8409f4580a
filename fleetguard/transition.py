"""Transition dataclass for status changes produced by a document patch."""

from dataclasses import dataclass
from typing import Optional

from .document import DocType
from .status import Status


@dataclass
class Transition:
    """Before/after status of one document across a single patch."""

    vehicle_id: str
    doc_id: str
    doc_type: DocType
    old_status: Status
    new_status: Status
    expiry_date: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    @property
    def entered_expiring(self) -> bool:
        return self.old_status != Status.EXPIRING and self.new_status == Status.EXPIRING
