"""View projection: filter, search and sort tasks for display.

Apart from the startup hook ``use_system_collation``, everything here is a
pure function of its arguments. The input sequence is never modified and
all sorts are stable, so tasks that compare equal keep their stored order
from one render to the next.
"""

import locale
import logging
from typing import Callable, Dict, List, Optional, Sequence

from ..models.task import Task
from ..schemas import ProjectionParams, SortKey, StatusFilter

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"


def use_system_collation() -> bool:
    """Adopt the collation rules of the environment locale (LC_ALL, LC_COLLATE, LANG).

    Python starts with the C locale, under which text compares by code point.
    The application calls this once at startup.

    Returns:
        True if the environment locale was applied, False if it is not
        available and the current collation was kept
    """
    try:
        name = locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning(f"Keeping current collation, environment locale unavailable: {str(e)}")
        return False
    logger.info(f"Sorting text with collation locale {name}")
    return True


def _collate(value: str) -> str:
    # Case-insensitive; ordering follows the process LC_COLLATE setting.
    return locale.strxfrm(value.casefold())


def filter_by_status(tasks: Sequence[Task], status: StatusFilter) -> List[Task]:
    if status == StatusFilter.ACTIVE:
        return [task for task in tasks if not task.completed]
    if status == StatusFilter.COMPLETED:
        return [task for task in tasks if task.completed]
    return list(tasks)


def filter_by_category(tasks: Sequence[Task], category: str) -> List[Task]:
    if category == ALL_CATEGORIES:
        return list(tasks)
    return [task for task in tasks if task.category == category]


def matches(task: Task, query: str) -> bool:
    """Case-insensitive substring match against text, notes and tags."""
    needle = query.casefold()
    return (
        needle in task.text.casefold()
        or needle in task.notes.casefold()
        or any(needle in tag.casefold() for tag in task.tags)
    )


def search(tasks: Sequence[Task], query: str) -> List[Task]:
    query = query.strip()
    if not query:
        return list(tasks)
    return [task for task in tasks if matches(task, query)]


def _sort_by_due_date(tasks: List[Task]) -> List[Task]:
    # Tasks without a due date always go last.
    return sorted(
        tasks,
        key=lambda task: (task.due_date is None, task.due_date.timestamp() if task.due_date else 0.0),
    )


_SORTERS: Dict[SortKey, Callable[[List[Task]], List[Task]]] = {
    SortKey.DATE_DESC: lambda tasks: sorted(tasks, key=lambda task: task.created_at, reverse=True),
    SortKey.DATE_ASC: lambda tasks: sorted(tasks, key=lambda task: task.created_at),
    SortKey.PRIORITY: lambda tasks: sorted(tasks, key=lambda task: -task.priority.rank),
    SortKey.ALPHABETICAL: lambda tasks: sorted(tasks, key=lambda task: _collate(task.text)),
    SortKey.DUE_DATE: _sort_by_due_date,
    SortKey.CATEGORY: lambda tasks: sorted(tasks, key=lambda task: _collate(task.category)),
}


def sort_tasks(tasks: Sequence[Task], key: SortKey) -> List[Task]:
    """Return the tasks stably sorted by ``key``."""
    return _SORTERS[key](list(tasks))


def project(tasks: Sequence[Task], params: Optional[ProjectionParams] = None) -> List[Task]:
    """Compute the ordered list of tasks to display.

    The stages always run in the same order: status filter, category
    filter, search, then sort.

    Args:
        tasks: Task collection in stored order
        params: Filter/sort/search parameters (defaults show everything,
            newest first)

    Returns:
        A new list holding the selected tasks in display order
    """
    params = params or ProjectionParams()
    result = filter_by_status(tasks, params.status)
    result = filter_by_category(result, params.category)
    result = search(result, params.search)
    return sort_tasks(result, params.sort)
