"""Request/response and view schemas for the task manager."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from .models.task import DEFAULT_CATEGORY, Priority, Record, Task
from .utils.tags import clean_tags, tags_from_string


def _parse_tags(value: Any) -> Any:
    """Accept tags as a list or as a comma-separated string."""
    if isinstance(value, str):
        return tags_from_string(value)
    if isinstance(value, list):
        return clean_tags(value)
    return value


TagList = Annotated[List[str], BeforeValidator(_parse_tags)]


class StatusFilter(str, Enum):
    """Completion filter applied by the view projector."""
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class SortKey(str, Enum):
    """Sort orders supported by the view projector."""
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    PRIORITY = "priority"
    ALPHABETICAL = "alphabetical"
    DUE_DATE = "duedate"
    CATEGORY = "category"


class ProjectionParams(BaseModel):
    """Filter/sort/search parameters for a projected view of the tasks."""

    model_config = ConfigDict(frozen=True)

    status: StatusFilter = Field(default=StatusFilter.ALL, description="Completion filter")
    category: str = Field(default="all", description="Category to keep, or 'all'")
    search: str = Field(default="", description="Case-insensitive search query")
    sort: SortKey = Field(default=SortKey.DATE_DESC, description="Sort order")


# Task-related schemas
class TaskCreate(Record):
    """Schema for creating a new task."""
    text: str = Field(..., min_length=1, description="Task text")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1, description="Task category")
    due_date: Optional[datetime] = Field(default=None, description="Optional due date")
    tags: TagList = Field(default_factory=list, description="Tags, as a list or comma-separated")


class TaskUpdate(Record):
    """Schema for updating an existing task.

    Only fields that are explicitly provided are applied; an explicit null
    due date clears it.
    """
    text: Optional[str] = Field(None, min_length=1, description="Task text")
    completed: Optional[bool] = Field(None, description="Completion flag")
    priority: Optional[Priority] = Field(None, description="Task priority")
    category: Optional[str] = Field(None, min_length=1, description="Task category")
    due_date: Optional[datetime] = Field(None, description="Due date, null clears it")
    tags: Optional[TagList] = Field(None, description="Tags, as a list or comma-separated")
    notes: Optional[str] = Field(None, description="Task notes")


class SubtaskCreate(Record):
    """Schema for adding a subtask."""
    text: str = Field(..., min_length=1, description="Subtask text")


class NotesUpdate(Record):
    """Schema for replacing a task's notes."""
    notes: str = Field(..., description="Notes, stored verbatim")


class ReorderRequest(Record):
    """Schema for persisting an explicit task order."""
    ids: List[str] = Field(..., description="Task identifiers in their new order")


class TaskResponse(Task):
    """Schema for task API responses."""
    due_label: str = Field(default="", description="Human readable due date")


class TaskStatistics(Record):
    """Aggregate counts over the task collection."""

    total: int = Field(..., description="Number of tasks")
    completed: int = Field(..., description="Number of completed tasks")
    active: int = Field(..., description="Number of tasks still open")
    today_completed: int = Field(..., description="Completed since local midnight")
    week_completed: int = Field(..., description="Completed in the last 7 days")
    month_completed: int = Field(..., description="Completed since the 1st of the month")


class ImportResponse(Record):
    """Schema for snapshot import responses."""
    success: bool = Field(..., description="Whether the import was accepted")
    count: int = Field(..., description="Number of tasks after the import")


class ClearCompletedResponse(Record):
    """Schema for clear-completed responses."""
    removed: int = Field(..., description="Number of tasks removed")


# Health check schema
class HealthResponse(BaseModel):
    """Schema for health check responses."""
    status: str = Field(default="healthy", description="Service health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(default="1.0.0", description="Application version")
    task_count: Optional[int] = Field(None, description="Number of tasks held by the store")


class UndoStatus(Record):
    """Schema for the undo buffer state."""
    available: bool = Field(..., description="Whether a deleted task can be restored")
