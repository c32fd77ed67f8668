"""Task store: the owner of the task collection and its undo buffer."""

import json
import logging
from datetime import datetime
from threading import RLock
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..models.task import (
    DEFAULT_CATEGORY,
    Priority,
    Subtask,
    Task,
    coerce_tasks,
    new_id,
    serialize_tasks,
)
from ..schemas import TaskStatistics, TaskUpdate
from ..utils.dates import as_local, local_now, start_of_day, start_of_month, week_ago
from ..utils.tags import clean_tags
from .persistence import PersistenceGateway

logger = logging.getLogger(__name__)


class TaskStore:
    """In-memory task collection with single-step undo.

    Tasks are kept newest-first. Every operation runs to completion under the
    store lock, and every successful mutation hands a deep-copied snapshot of
    the collection to the persistence gateway, if one is attached.

    Failures are reported through return values rather than exceptions:
    unknown identifiers and empty text yield ``None``, a malformed import
    yields ``False``.
    """

    def __init__(
        self,
        tasks: Optional[Iterable[Task]] = None,
        persistence: Optional[PersistenceGateway] = None,
    ):
        """Initialize the task store.

        Args:
            tasks: Tasks to preload, in display order
            persistence: Gateway receiving a snapshot after each mutation
        """
        self._tasks: List[Task] = list(tasks or [])
        self._deleted: Optional[Tuple[Task, int]] = None
        self._persistence = persistence
        self._lock = RLock()
        logger.info(f"Task store initialized with {len(self._tasks)} tasks")

    # Internal helpers

    def _index_of(self, task_id: str) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return -1

    def _find(self, task_id: str) -> Optional[Task]:
        index = self._index_of(task_id)
        return self._tasks[index] if index != -1 else None

    def _taken_ids(self) -> Set[str]:
        taken = {task.id for task in self._tasks}
        if self._deleted is not None:
            taken.add(self._deleted[0].id)
        return taken

    def _fresh_id(self, taken: Set[str]) -> str:
        ident = new_id()
        while ident in taken:
            ident = new_id()
        return ident

    def _local_due_date(self, due_date: Optional[datetime]) -> Tuple[bool, Optional[datetime]]:
        """Localize a due date, reporting False when it cannot be represented."""
        if due_date is None:
            return True, None
        try:
            return True, as_local(due_date)
        except (ValueError, OverflowError):
            logger.warning(f"Rejected out-of-range due date {due_date!r}")
            return False, None

    def _persist(self) -> None:
        if self._persistence is None:
            return
        snapshot = [task.model_copy(deep=True) for task in self._tasks]
        try:
            self._persistence.save(snapshot)
        except Exception as e:
            logger.error(f"Persisting {len(snapshot)} tasks failed: {str(e)}", exc_info=True)

    # Reads

    def tasks(self) -> List[Task]:
        """Return the tasks in stored order (a shallow copy of the collection)."""
        with self._lock:
            return list(self._tasks)

    def get(self, task_id: str) -> Optional[Task]:
        """Get a task by ID.

        Args:
            task_id: Task ID

        Returns:
            Task if found, None otherwise
        """
        with self._lock:
            return self._find(task_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    @property
    def can_undo(self) -> bool:
        """Whether a deleted task is waiting in the undo buffer."""
        with self._lock:
            return self._deleted is not None

    # CRUD

    def add(
        self,
        text: str,
        priority: Priority = Priority.MEDIUM,
        category: str = DEFAULT_CATEGORY,
        due_date: Optional[datetime] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Optional[Task]:
        """Create a new task and put it at the front of the collection.

        Args:
            text: Task text, trimmed before use
            priority: Task priority level
            category: Task category
            due_date: Optional due date
            tags: Optional tags; blank entries are dropped

        Returns:
            The created task, or None if the text is empty after trimming or
            the due date cannot be represented in local time
        """
        text = (text or "").strip()
        if not text:
            logger.warning("Rejected task with empty text")
            return None

        valid_due, due_date = self._local_due_date(due_date)
        if not valid_due:
            return None

        with self._lock:
            task = Task(
                id=self._fresh_id(self._taken_ids()),
                text=text,
                priority=priority,
                category=category.strip() or DEFAULT_CATEGORY,
                due_date=due_date,
                tags=clean_tags(tags or []),
                created_at=local_now(),
            )
            self._tasks.insert(0, task)
            self._persist()

            logger.info(f"Created task {task.id}: {task.text}")
            return task

    def update(self, task_id: str, patch: TaskUpdate) -> Optional[Task]:
        """Merge the provided fields of ``patch`` into a task.

        Only fields explicitly set on the patch are applied. Identity and
        creation time cannot be changed. Setting ``completed`` keeps the
        completion timestamp consistent.

        Args:
            task_id: Task ID
            patch: Fields to change

        Returns:
            Updated task, or None if the task does not exist, the patched
            text is empty after trimming or the due date cannot be represented
            in local time. A rejected patch changes nothing.
        """
        changes = patch.model_dump(exclude_unset=True)
        valid_due, due_date = self._local_due_date(changes.get("due_date"))
        if not valid_due:
            return None

        with self._lock:
            task = self._find(task_id)
            if task is None:
                logger.warning(f"Task {task_id} not found for update")
                return None

            if "text" in changes:
                text = (changes["text"] or "").strip()
                if not text:
                    logger.warning(f"Rejected empty text for task {task_id}")
                    return None
                task.text = text

            if changes.get("priority") is not None:
                task.priority = changes["priority"]

            if changes.get("category") is not None:
                task.category = changes["category"].strip() or DEFAULT_CATEGORY

            if "due_date" in changes:
                task.due_date = due_date

            if changes.get("tags") is not None:
                task.tags = clean_tags(changes["tags"])

            if changes.get("notes") is not None:
                task.notes = changes["notes"]

            if changes.get("completed") is not None:
                task.set_completed(changes["completed"])

            self._persist()

            logger.info(f"Updated task {task_id}: {', '.join(sorted(changes)) or 'no fields'}")
            return task

    def toggle_completion(self, task_id: str) -> Optional[Task]:
        """Flip a task's completion state.

        Args:
            task_id: Task ID

        Returns:
            Updated task if found, None otherwise
        """
        with self._lock:
            task = self._find(task_id)
            if task is None:
                logger.warning(f"Task {task_id} not found for toggle")
                return None

            task.toggle()
            self._persist()

            logger.info(f"Task {task_id} completed={task.completed}")
            return task

    def delete(self, task_id: str) -> Optional[Task]:
        """Delete a task, keeping it in the undo buffer.

        The buffer holds a single entry, so this replaces any task deleted
        earlier.

        Args:
            task_id: Task ID

        Returns:
            The removed task, or None if not found
        """
        with self._lock:
            index = self._index_of(task_id)
            if index == -1:
                logger.warning(f"Task {task_id} not found for deletion")
                return None

            task = self._tasks.pop(index)
            self._deleted = (task, index)
            self._persist()

            logger.info(f"Deleted task {task_id}: {task.text}")
            return task

    def undo_delete(self) -> Optional[Task]:
        """Restore the most recently deleted task.

        The task goes back to its original position, or to the end of the
        collection if that position no longer exists.

        Returns:
            The restored task, or None if there is nothing to undo
        """
        with self._lock:
            if self._deleted is None:
                logger.debug("Nothing to undo")
                return None

            task, index = self._deleted
            self._deleted = None
            position = min(index, len(self._tasks))
            self._tasks.insert(position, task)
            self._persist()

            logger.info(f"Restored task {task.id} at position {position}")
            return task

    def clear_completed(self) -> int:
        """Remove every completed task.

        This bypasses the undo buffer and cannot be undone.

        Returns:
            Number of tasks that were removed
        """
        with self._lock:
            before = len(self._tasks)
            self._tasks = [task for task in self._tasks if not task.completed]
            removed = before - len(self._tasks)
            if removed:
                self._persist()

            logger.info(f"Cleared {removed} completed tasks")
            return removed

    def reorder(self, ordered_ids: Sequence[str]) -> List[Task]:
        """Apply an explicit order to the collection.

        Tasks named in ``ordered_ids`` come first, in that order; unknown or
        repeated identifiers are ignored. Tasks that are not named keep their
        relative order after them.

        Args:
            ordered_ids: Task identifiers in their new order

        Returns:
            The collection in its new order
        """
        with self._lock:
            by_id = {task.id: task for task in self._tasks}
            head: List[Task] = []
            for task_id in ordered_ids:
                task = by_id.pop(task_id, None)
                if task is not None:
                    head.append(task)
            tail = [task for task in self._tasks if task.id in by_id]
            self._tasks = head + tail
            self._persist()

            logger.info(f"Reordered tasks: {len(head)} moved to the front")
            return list(self._tasks)

    # Subtasks and notes

    def add_subtask(self, task_id: str, text: str) -> Optional[Subtask]:
        """Append a subtask to a task.

        Args:
            task_id: Task ID
            text: Subtask text, trimmed before use

        Returns:
            The created subtask, or None if the task does not exist or the
            text is empty
        """
        text = (text or "").strip()
        with self._lock:
            task = self._find(task_id)
            if task is None or not text:
                logger.warning(f"Cannot add subtask to task {task_id}")
                return None

            subtask = Subtask(id=self._fresh_id({s.id for s in task.subtasks}), text=text)
            task.subtasks.append(subtask)
            self._persist()

            logger.info(f"Added subtask {subtask.id} to task {task_id}")
            return subtask

    def toggle_subtask(self, task_id: str, subtask_id: str) -> Optional[Subtask]:
        """Flip a subtask's completion flag.

        Returns:
            Updated subtask, or None if the task or subtask does not exist
        """
        with self._lock:
            task = self._find(task_id)
            subtask = task.find_subtask(subtask_id) if task is not None else None
            if subtask is None:
                logger.warning(f"Subtask {subtask_id} of task {task_id} not found")
                return None

            subtask.completed = not subtask.completed
            self._persist()
            return subtask

    def set_notes(self, task_id: str, text: str) -> Optional[Task]:
        """Replace a task's notes verbatim.

        Returns:
            Updated task if found, None otherwise
        """
        with self._lock:
            task = self._find(task_id)
            if task is None:
                logger.warning(f"Task {task_id} not found for notes update")
                return None

            task.notes = text
            self._persist()
            return task

    # Import/export

    def export_snapshot(self) -> str:
        """Serialize the whole collection as pretty-printed JSON."""
        with self._lock:
            return serialize_tasks(self._tasks)

    def import_snapshot(self, blob: str) -> bool:
        """Replace the collection with the tasks in ``blob``.

        Individual records are coerced leniently: missing or malformed fields
        fall back to their defaults instead of failing the import. Only a
        payload that is not a JSON array is rejected, in which case the
        current collection is left untouched.

        Args:
            blob: JSON text, as produced by ``export_snapshot``

        Returns:
            True if the collection was replaced, False otherwise
        """
        try:
            data = json.loads(blob)
        except (TypeError, ValueError, RecursionError) as e:
            logger.error(f"Import rejected, invalid JSON: {str(e)}")
            return False

        if not isinstance(data, list):
            logger.error("Import rejected, expected a JSON array")
            return False

        tasks = coerce_tasks(data)
        with self._lock:
            self._tasks = tasks
            self._deleted = None
            self._persist()

        logger.info(f"Imported {len(tasks)} tasks")
        return True

    # Statistics

    def statistics(self, now: Optional[datetime] = None) -> TaskStatistics:
        """Compute aggregate counts as of ``now``.

        Args:
            now: Reference time (defaults to the current local time)

        Returns:
            Totals plus completions today (since local midnight), in the
            trailing seven days and since the first of the month
        """
        current = as_local(now) if now is not None else local_now()
        today_start = start_of_day(current)
        week_start = week_ago(current)
        month_start = start_of_month(current)

        with self._lock:
            completed_at = [
                task.completed_at
                for task in self._tasks
                if task.completed and task.completed_at is not None
            ]
            total = len(self._tasks)
            completed = sum(1 for task in self._tasks if task.completed)

        return TaskStatistics(
            total=total,
            completed=completed,
            active=total - completed,
            today_completed=sum(1 for when in completed_at if when >= today_start),
            week_completed=sum(1 for when in completed_at if when >= week_start),
            month_completed=sum(1 for when in completed_at if when >= month_start),
        )
