"""Due-soon reminders."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Set, Tuple

from ..models.task import Task
from ..utils.dates import as_local, format_due_date, local_now
from .task_store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = timedelta(hours=1)


def find_due_soon(
    tasks: Sequence[Task],
    now: Optional[datetime] = None,
    window: timedelta = DEFAULT_WINDOW,
) -> List[Task]:
    """Return open tasks whose due date falls within ``window`` from now.

    Args:
        tasks: Tasks to scan
        now: Reference time (defaults to the current local time)
        window: How far ahead to look

    Returns:
        Incomplete tasks with ``now < due_date <= now + window``, in input order
    """
    current = as_local(now) if now is not None else local_now()
    horizon = current + window
    return [
        task
        for task in tasks
        if not task.completed and task.due_date is not None and current < task.due_date <= horizon
    ]


def log_reminder(task: Task) -> None:
    logger.info(f'Reminder: task "{task.text}" is due soon ({format_due_date(task.due_date)})')


class ReminderScanner:
    """Periodically announces tasks that are about to fall due.

    Each task is announced once per due date; moving the due date makes it
    eligible again.
    """

    def __init__(
        self,
        store: TaskStore,
        window: timedelta = DEFAULT_WINDOW,
        notify: Optional[Callable[[Task], None]] = None,
    ):
        self.store = store
        self.window = window
        self.notify = notify or log_reminder
        self._announced: Set[Tuple[str, datetime]] = set()

    def scan_once(self, now: Optional[datetime] = None) -> List[Task]:
        """Announce due-soon tasks that have not been announced yet.

        Returns:
            The tasks announced by this scan
        """
        fresh = []
        for task in find_due_soon(self.store.tasks(), now, self.window):
            key = (task.id, task.due_date)
            if key in self._announced:
                continue
            self._announced.add(key)
            fresh.append(task)
            self.notify(task)

        if fresh:
            logger.debug(f"Announced {len(fresh)} due-soon tasks")
        return fresh

    async def run(self, interval: float) -> None:
        """Scan every ``interval`` seconds until cancelled."""
        logger.info(f"Reminder scanner started (every {interval}s, window {self.window})")
        while True:
            try:
                self.scan_once()
            except Exception as e:
                logger.error(f"Reminder scan failed: {str(e)}", exc_info=True)
            await asyncio.sleep(interval)
