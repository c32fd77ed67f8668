"""Tests for due-soon reminders."""

import asyncio
from datetime import timedelta

import pytest

from taskflow.models.task import Task
from taskflow.services.reminders import ReminderScanner, find_due_soon
from taskflow.services.task_store import TaskStore
from taskflow.utils.dates import local_now

from conftest import REFERENCE_TIME


def due_in(text, delta, **fields) -> Task:
    return Task(text=text, due_date=REFERENCE_TIME + delta, **fields)


class TestFindDueSoon:
    """Test the due-soon window."""

    def test_window_bounds(self):
        tasks = [
            due_in("Past", -timedelta(minutes=1)),
            due_in("Now", timedelta(0)),
            due_in("Soon", timedelta(minutes=30)),
            due_in("Edge", timedelta(hours=1)),
            due_in("Later", timedelta(hours=1, seconds=1)),
            Task(text="Undated"),
        ]

        found = find_due_soon(tasks, now=REFERENCE_TIME)

        assert [t.text for t in found] == ["Soon", "Edge"]

    def test_completed_tasks_are_skipped(self):
        done = due_in("Done", timedelta(minutes=5))
        done.set_completed(True)

        assert find_due_soon([done], now=REFERENCE_TIME) == []

    def test_custom_window(self):
        task = due_in("Tomorrow", timedelta(hours=20))

        assert find_due_soon([task], now=REFERENCE_TIME) == []
        assert find_due_soon([task], now=REFERENCE_TIME, window=timedelta(days=1)) == [task]


class TestReminderScanner:
    """Test reminder announcement."""

    def test_announces_each_task_once(self):
        store = TaskStore([due_in("Soon", timedelta(minutes=10))])
        announced = []
        scanner = ReminderScanner(store, notify=announced.append)

        assert [t.text for t in scanner.scan_once(now=REFERENCE_TIME)] == ["Soon"]
        assert scanner.scan_once(now=REFERENCE_TIME + timedelta(minutes=1)) == []
        assert [t.text for t in announced] == ["Soon"]

    def test_moved_due_date_is_announced_again(self):
        task = due_in("Soon", timedelta(minutes=10))
        store = TaskStore([task])
        scanner = ReminderScanner(store, notify=lambda task: None)
        scanner.scan_once(now=REFERENCE_TIME)

        task.due_date = REFERENCE_TIME + timedelta(minutes=20)

        assert scanner.scan_once(now=REFERENCE_TIME) == [task]

    def test_default_notify_logs(self, caplog):
        store = TaskStore([due_in("Call back", timedelta(minutes=10))])

        with caplog.at_level("INFO", logger="taskflow.services.reminders"):
            ReminderScanner(store).scan_once(now=REFERENCE_TIME)

        assert 'task "Call back" is due soon' in caplog.text

    @pytest.mark.asyncio
    async def test_run_scans_until_cancelled(self):
        store = TaskStore()
        store.add("Imminent", due_date=local_now() + timedelta(minutes=5))
        announced = []
        scanner = ReminderScanner(store, notify=announced.append)

        runner = asyncio.create_task(scanner.run(interval=0.01))
        await asyncio.sleep(0.05)
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner

        assert [t.text for t in announced] == ["Imminent"]

    @pytest.mark.asyncio
    async def test_run_survives_failing_notifier(self):
        store = TaskStore()
        store.add("Imminent", due_date=local_now() + timedelta(minutes=5))
        calls = []

        def broken(task):
            calls.append(task)
            raise RuntimeError("notifier down")

        runner = asyncio.create_task(ReminderScanner(store, notify=broken).run(interval=0.01))
        await asyncio.sleep(0.05)
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner

        assert len(calls) == 1
