"""Persistence gateway for the task collection.

The store only ever talks to an object with ``save(tasks)``; loading happens
once at startup. Storage failures are logged here and never propagate: a
broken or missing file reads as "no tasks" and a failed write is dropped.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from ..models.task import Task, coerce_tasks, serialize_tasks

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    """Load/save contract used by the application and the task store."""

    def load(self) -> List[Task]:
        ...

    def save(self, tasks: Sequence[Task]) -> None:
        ...


class JsonFileGateway:
    """Stores the task collection as a pretty-printed JSON array on disk."""

    def __init__(self, path: Union[str, Path]):
        """Initialize the gateway.

        Args:
            path: Location of the JSON file
        """
        self.path = Path(path)

    def load(self) -> List[Task]:
        """Load tasks from disk.

        Returns:
            Tasks read from the file; empty when the file is missing,
            unreadable or does not hold a JSON array
        """
        if not self.path.exists():
            logger.info(f"No task file at {self.path}, starting empty")
            return []

        try:
            content = self.path.read_text(encoding="utf-8").strip()
            if not content:
                return []
            data = json.loads(content)
        except (OSError, ValueError, RecursionError) as e:
            logger.error(f"Failed to read tasks from {self.path}: {str(e)}")
            return []

        if not isinstance(data, list):
            logger.error(f"Ignoring task file {self.path}: expected a JSON array")
            return []

        tasks = coerce_tasks(data)
        logger.info(f"Loaded {len(tasks)} tasks from {self.path}")
        return tasks

    def save(self, tasks: Sequence[Task]) -> None:
        """Write tasks to disk, replacing the previous file atomically.

        Args:
            tasks: Full task collection to store
        """
        payload = serialize_tasks(tasks)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
            logger.debug(f"Saved {len(tasks)} tasks to {self.path}")
        except OSError as e:
            logger.error(f"Failed to save tasks to {self.path}: {str(e)}")


class DebouncedWriter:
    """Coalesces repeated save requests into one trailing write.

    A single pending slot holds the most recent snapshot. Every ``save``
    replaces it and re-arms the timer; the write happens once the requests
    have been quiet for ``delay`` seconds, or immediately on ``flush``.
    """

    def __init__(self, gateway: PersistenceGateway, delay: float = 0.3):
        self.gateway = gateway
        self.delay = delay
        self._pending: Optional[List[Task]] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

    @property
    def pending(self) -> bool:
        """Whether a snapshot is waiting to be written."""
        with self._lock:
            return self._pending is not None

    def load(self) -> List[Task]:
        return self.gateway.load()

    def save(self, tasks: Sequence[Task]) -> None:
        """Schedule a write of ``tasks``, superseding any pending snapshot."""
        with self._lock:
            self._pending = list(tasks)
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """Write the pending snapshot now.

        Returns:
            True if a snapshot was written, False if nothing was pending
        """
        with self._write_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                payload, self._pending = self._pending, None

            if payload is None:
                return False

            self.gateway.save(payload)
            return True

    def cancel(self) -> None:
        """Drop the pending snapshot without writing it."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
