"""Task class for follow-up reminders."""

from datetime import date
from typing import Optional


class Task:
    """A follow-up reminder, optionally tied to a vehicle document."""

    def __init__(
        self,
        task_id: str,
        title: str,
        vehicle_id: Optional[str] = None,
        doc_id: Optional[str] = None,
        due_date: Optional[str] = None,
        created_at: Optional[str] = None,
        completed: bool = False,
    ):
        self.id = task_id
        self.title = title
        self.vehicle_id = vehicle_id
        self.doc_id = doc_id
        self.due_date = due_date
        self.created_at = created_at or date.today().isoformat()
        self.completed = completed or False

    @property
    def is_open(self) -> bool:
        return not self.completed
