"""Domain models for the task manager."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..utils.dates import as_local, local_now
from ..utils.tags import clean_tags, tags_from_string

DEFAULT_CATEGORY = "personal"


def new_id() -> str:
    """Generate a fresh opaque identifier."""
    return uuid4().hex


class Priority(str, Enum):
    """Task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Numeric weight used for sorting, higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}


class Record(BaseModel):
    """Base model serialized with camelCase keys.

    Both camelCase and snake_case keys are accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Subtask(Record):
    """A checklist item nested inside a task."""

    id: str = Field(default_factory=new_id, description="Unique subtask identifier")
    text: str = Field(..., description="Subtask text")
    completed: bool = Field(default=False, description="Whether the subtask is done")


class Task(Record):
    """Task domain model."""

    id: str = Field(default_factory=new_id, description="Unique task identifier")
    text: str = Field(..., description="Task text")
    completed: bool = Field(default=False, description="Whether the task is done")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    category: str = Field(default=DEFAULT_CATEGORY, description="Free-form category")
    due_date: Optional[datetime] = Field(default=None, description="Optional due date")
    tags: List[str] = Field(default_factory=list, description="Ordered tags")
    notes: str = Field(default="", description="Free-form notes, stored verbatim")
    subtasks: List[Subtask] = Field(default_factory=list, description="Checklist items")
    created_at: datetime = Field(default_factory=local_now, description="Creation timestamp")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp")

    @field_validator("due_date", "created_at", "completed_at")
    @classmethod
    def _localize(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_local(value) if value is not None else None

    def set_completed(self, completed: bool, when: Optional[datetime] = None) -> None:
        """Set the completion flag, keeping completed_at in step.

        The timestamp is only written on a false -> true transition and is
        cleared on true -> false; setting the current value is a no-op.
        """
        if completed == self.completed:
            return
        self.completed = completed
        self.completed_at = (when or local_now()) if completed else None

    def toggle(self) -> None:
        """Flip the completion flag."""
        self.set_completed(not self.completed)

    def find_subtask(self, subtask_id: str) -> Optional[Subtask]:
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def to_record(self) -> Dict[str, Any]:
        """Return the JSON-ready camelCase record for this task."""
        return self.model_dump(mode="json", by_alias=True)


_TASK_LIST = TypeAdapter(List[Task])
_DATETIME = TypeAdapter(datetime)


def serialize_tasks(tasks: Iterable[Task], indent: Optional[int] = 2) -> str:
    """Serialize tasks into the textual (JSON) form used for storage and export."""
    return _TASK_LIST.dump_json(list(tasks), indent=indent, by_alias=True).decode("utf-8")


# Lenient coercion of stored/imported records. Nothing below raises: every
# malformed field falls back to the Task default.

def _pick(raw: Dict[str, Any], name: str) -> Any:
    camel = to_camel(name)
    if camel in raw:
        return raw[camel]
    return raw.get(name)


def _coerce_id(value: Any, taken: Set[str]) -> str:
    ident: Optional[str] = None
    if isinstance(value, int) and not isinstance(value, bool):
        ident = str(value)
    elif isinstance(value, str) and value.strip():
        ident = value.strip()

    while ident is None or ident in taken:
        ident = new_id()
    taken.add(ident)
    return ident


def _coerce_text(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return ""
    return str(value).strip()


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return as_local(_DATETIME.validate_python(value))
    except (ValidationError, ValueError, OverflowError):
        return None


def _coerce_priority(value: Any) -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value).strip().lower())
    except ValueError:
        return Priority.MEDIUM


def _coerce_tags(value: Any) -> List[str]:
    if isinstance(value, str):
        return tags_from_string(value)
    if isinstance(value, list):
        return clean_tags(value)
    return []


def coerce_subtask(raw: Any, taken: Set[str]) -> Optional[Subtask]:
    """Build a subtask from a raw record, or None when it has no usable text."""
    if not isinstance(raw, dict):
        return None
    text = _coerce_text(raw.get("text"))
    if not text:
        return None
    return Subtask(id=_coerce_id(raw.get("id"), taken), text=text, completed=bool(raw.get("completed")))


def coerce_task(raw: Any, taken: Set[str]) -> Task:
    """Build a task from a raw record, defaulting every malformed field.

    Args:
        raw: Decoded JSON value describing one task
        taken: Identifiers already in use; the chosen id is added to it

    Returns:
        A valid Task satisfying the completion invariant
    """
    if not isinstance(raw, dict):
        raw = {}

    created_at = _coerce_datetime(_pick(raw, "created_at")) or local_now()
    completed = bool(_pick(raw, "completed"))
    completed_at = _coerce_datetime(_pick(raw, "completed_at")) if completed else None
    if completed and completed_at is None:
        completed_at = created_at

    category = _coerce_text(_pick(raw, "category")) or DEFAULT_CATEGORY
    notes = _pick(raw, "notes")

    subtask_ids: Set[str] = set()
    raw_subtasks = _pick(raw, "subtasks")
    subtasks = [
        subtask
        for subtask in (
            coerce_subtask(item, subtask_ids)
            for item in (raw_subtasks if isinstance(raw_subtasks, list) else [])
        )
        if subtask is not None
    ]

    return Task(
        id=_coerce_id(_pick(raw, "id"), taken),
        text=_coerce_text(_pick(raw, "text")),
        completed=completed,
        priority=_coerce_priority(_pick(raw, "priority")),
        category=category,
        due_date=_coerce_datetime(_pick(raw, "due_date")),
        tags=_coerce_tags(_pick(raw, "tags")),
        notes=notes if isinstance(notes, str) else "",
        subtasks=subtasks,
        created_at=created_at,
        completed_at=completed_at,
    )


def coerce_tasks(records: Iterable[Any]) -> List[Task]:
    """Coerce a sequence of raw records into tasks with unique identifiers."""
    taken: Set[str] = set()
    return [coerce_task(raw, taken) for raw in records]
