"""Task management routes."""

import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from ..deps import get_task_store
from ..models.task import Subtask, Task
from ..schemas import (
    ClearCompletedResponse,
    ImportResponse,
    NotesUpdate,
    ProjectionParams,
    ReorderRequest,
    SortKey,
    StatusFilter,
    SubtaskCreate,
    TaskCreate,
    TaskResponse,
    TaskStatistics,
    TaskUpdate,
    UndoStatus,
)
from ..services.projector import project
from ..services.reminders import find_due_soon
from ..services.task_store import TaskStore
from ..utils.dates import format_due_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def to_response(task: Task) -> TaskResponse:
    """Build the API representation of a task."""
    return TaskResponse(**task.model_dump(), due_label=format_due_date(task.due_date))


def _not_found(task_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Task {task_id} not found"
    )


def _rejected(text: Optional[str]) -> HTTPException:
    if text is not None and not text.strip():
        detail = "Task text cannot be empty"
    else:
        detail = "Due date is outside the representable range"
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Create a new task.

    Raises:
        HTTPException: If the task text is blank
    """
    try:
        logger.info(f"Creating new task: {task_data.text}")

        task = task_store.add(
            text=task_data.text,
            priority=task_data.priority,
            category=task_data.category,
            due_date=task_data.due_date,
            tags=task_data.tags,
        )

        if task is None:
            raise _rejected(task_data.text)

        return to_response(task)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating task: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error during task creation"
        )


@router.get("/", response_model=List[TaskResponse])
async def list_tasks(
    status_filter: StatusFilter = Query(StatusFilter.ALL, alias="status"),
    category: str = Query("all"),
    q: str = Query("", description="Search query"),
    sort: SortKey = Query(SortKey.DATE_DESC),
    task_store: TaskStore = Depends(get_task_store)
) -> List[TaskResponse]:
    """List tasks filtered, searched and sorted for display."""
    params = ProjectionParams(status=status_filter, category=category, search=q, sort=sort)
    logger.debug(f"Projecting tasks with {params}")

    return [to_response(task) for task in project(task_store.tasks(), params)]


@router.get("/stats/", response_model=TaskStatistics)
async def get_task_statistics(
    task_store: TaskStore = Depends(get_task_store)
) -> TaskStatistics:
    """Get task statistics."""
    return task_store.statistics()


@router.get("/due-soon/", response_model=List[TaskResponse])
async def list_due_soon(
    minutes: int = Query(60, ge=1, le=7 * 24 * 60, description="Look-ahead window"),
    task_store: TaskStore = Depends(get_task_store)
) -> List[TaskResponse]:
    """List open tasks falling due within the next ``minutes``."""
    tasks = find_due_soon(task_store.tasks(), window=timedelta(minutes=minutes))
    return [to_response(task) for task in tasks]


@router.get("/export/")
async def export_tasks(
    task_store: TaskStore = Depends(get_task_store)
) -> Response:
    """Download all tasks as a JSON backup."""
    filename = f"taskflow_backup_{date.today().isoformat()}.json"
    return Response(
        content=task_store.export_snapshot(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import/", response_model=ImportResponse)
async def import_tasks(
    request: Request,
    task_store: TaskStore = Depends(get_task_store)
) -> ImportResponse:
    """Replace all tasks with the JSON array sent as the request body.

    Raises:
        HTTPException: If the body is not a JSON array
    """
    body = await request.body()

    if not task_store.import_snapshot(body.decode("utf-8", errors="replace")):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid format: expected a JSON array of tasks"
        )

    return ImportResponse(success=True, count=len(task_store))


@router.get("/undo/", response_model=UndoStatus)
async def get_undo_status(
    task_store: TaskStore = Depends(get_task_store)
) -> UndoStatus:
    """Report whether a deleted task can be restored."""
    return UndoStatus(available=task_store.can_undo)


@router.post("/undo/", response_model=TaskResponse)
async def undo_delete(
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Restore the most recently deleted task."""
    task = task_store.undo_delete()

    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Nothing to undo"
        )

    return to_response(task)


@router.post("/clear-completed/", response_model=ClearCompletedResponse)
async def clear_completed(
    task_store: TaskStore = Depends(get_task_store)
) -> ClearCompletedResponse:
    """Remove all completed tasks. This cannot be undone."""
    return ClearCompletedResponse(removed=task_store.clear_completed())


@router.put("/order/", response_model=List[TaskResponse])
async def reorder_tasks(
    order: ReorderRequest,
    task_store: TaskStore = Depends(get_task_store)
) -> List[TaskResponse]:
    """Persist an explicit task order."""
    return [to_response(task) for task in task_store.reorder(order.ids)]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Get a specific task by ID.

    Raises:
        HTTPException: If task not found
    """
    task = task_store.get(task_id)

    if task is None:
        raise _not_found(task_id)

    return to_response(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    task_data: TaskUpdate,
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Update a task.

    Raises:
        HTTPException: If task not found or the new text is blank
    """
    try:
        logger.info(f"Updating task: {task_id}")

        if task_store.get(task_id) is None:
            raise _not_found(task_id)

        task = task_store.update(task_id, task_data)

        if task is None:
            raise _rejected(task_data.text)

        return to_response(task)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error updating task {task_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error during task update"
        )


@router.post("/{task_id}/toggle", response_model=TaskResponse)
async def toggle_task(
    task_id: str,
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Flip a task between open and completed."""
    task = task_store.toggle_completion(task_id)

    if task is None:
        raise _not_found(task_id)

    return to_response(task)


@router.delete("/{task_id}", response_model=TaskResponse)
async def delete_task(
    task_id: str,
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Delete a task. The deletion can be reverted with ``POST /tasks/undo/``.

    Raises:
        HTTPException: If task not found
    """
    logger.info(f"Deleting task: {task_id}")

    task = task_store.delete(task_id)

    if task is None:
        raise _not_found(task_id)

    return to_response(task)


@router.post("/{task_id}/subtasks", response_model=Subtask, status_code=status.HTTP_201_CREATED)
async def add_subtask(
    task_id: str,
    subtask_data: SubtaskCreate,
    task_store: TaskStore = Depends(get_task_store)
) -> Subtask:
    """Append a subtask to a task."""
    if task_store.get(task_id) is None:
        raise _not_found(task_id)

    subtask = task_store.add_subtask(task_id, subtask_data.text)

    if subtask is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subtask text cannot be empty"
        )

    return subtask


@router.post("/{task_id}/subtasks/{subtask_id}/toggle", response_model=Subtask)
async def toggle_subtask(
    task_id: str,
    subtask_id: str,
    task_store: TaskStore = Depends(get_task_store)
) -> Subtask:
    """Flip a subtask between open and completed."""
    subtask = task_store.toggle_subtask(task_id, subtask_id)

    if subtask is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subtask {subtask_id} of task {task_id} not found"
        )

    return subtask


@router.put("/{task_id}/notes", response_model=TaskResponse)
async def set_notes(
    task_id: str,
    notes_data: NotesUpdate,
    task_store: TaskStore = Depends(get_task_store)
) -> TaskResponse:
    """Replace a task's notes."""
    task = task_store.set_notes(task_id, notes_data.notes)

    if task is None:
        raise _not_found(task_id)

    return to_response(task)
