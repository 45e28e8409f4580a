"""Task generator: renewal reminders for documents entering the expiring window."""

import logging
from datetime import date
from typing import List, Optional

from .document import DocType
from .ids import new_id
from .status import Status
from .task import Task

logger = logging.getLogger(__name__)


def renewal_title(doc_type: DocType, plate: str) -> str:
    return f"Renew {DocType(doc_type).value} for {plate}"


def has_open_task(tasks: List[Task], doc_id: str) -> bool:
    return any(t.doc_id == doc_id and not t.completed for t in tasks)


def on_transition(
    tasks: List[Task],
    vehicle_id: str,
    doc_id: str,
    old_status: Status,
    new_status: Status,
    doc_type: DocType,
    plate: str,
    due_date: Optional[str],
    today: Optional[date] = None,
) -> Optional[Task]:
    """
    React to one document status transition.

    Only the edge into EXPIRING creates a task, and only when no open task
    references the document. The new task is appended to tasks and returned.
    """
    if old_status == Status.EXPIRING or new_status != Status.EXPIRING:
        return None
    if has_open_task(tasks, doc_id):
        return None

    task = Task(
        task_id=new_id("task"),
        title=renewal_title(doc_type, plate),
        vehicle_id=vehicle_id,
        doc_id=doc_id,
        due_date=due_date,
        created_at=(today or date.today()).isoformat(),
        completed=False,
    )
    tasks.append(task)
    logger.info("Created task %r (due %s)", task.title, due_date)
    return task
