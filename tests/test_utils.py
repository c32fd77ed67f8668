"""Tests for date, tag, collation, logging and configuration helpers."""

import locale
import logging
from datetime import datetime, timedelta, timezone

import pytest

from taskflow.config import Settings
from taskflow.services.projector import use_system_collation
from taskflow.utils.dates import as_local, format_due_date, start_of_day, start_of_month, week_ago
from taskflow.utils.logging import ColoredFormatter, setup_logging
from taskflow.utils.tags import clean_tags, tags_from_string

from conftest import REFERENCE_TIME


class TestFormatDueDate:
    """Test relative due-date labels."""

    @pytest.mark.parametrize("delta, label", [
        (timedelta(hours=-30), "Overdue by 1 days"),
        (timedelta(days=-3, hours=-1), "Overdue by 3 days"),
        (timedelta(hours=-2), "Due today"),
        (timedelta(0), "Due today"),
        (timedelta(hours=12), "Due tomorrow"),
        (timedelta(days=1), "Due tomorrow"),
        (timedelta(days=2, hours=3), "Due in 3 days"),
        (timedelta(days=7), "Due in 7 days"),
        (timedelta(days=20), "Apr 7, 2026"),
    ])
    def test_labels(self, delta, label):
        assert format_due_date(REFERENCE_TIME + delta, now=REFERENCE_TIME) == label

    def test_no_due_date(self):
        assert format_due_date(None) == ""


class TestDateHelpers:
    """Test the calendar window helpers."""

    def test_as_local_keeps_aware_values(self):
        value = datetime(2026, 3, 18, 12, 0, tzinfo=timezone(timedelta(hours=5)))

        assert as_local(value) is value

    def test_as_local_attaches_timezone(self):
        assert as_local(datetime(2026, 3, 18, 12, 0)).tzinfo is not None

    def test_windows(self):
        assert start_of_day(REFERENCE_TIME) == REFERENCE_TIME.replace(hour=0, minute=0)
        assert start_of_month(REFERENCE_TIME) == REFERENCE_TIME.replace(day=1, hour=0, minute=0)
        assert REFERENCE_TIME - week_ago(REFERENCE_TIME) == timedelta(days=7)

    def test_windows_on_dst_day(self, central_european_time):
        """Midnight takes the offset in force at midnight, not at ``now``."""
        now = datetime(2025, 3, 30, 14, 0).astimezone()

        midnight = start_of_day(now)

        assert (midnight.hour, midnight.minute) == (0, 0)
        assert midnight.utcoffset() == timedelta(hours=1)
        assert start_of_month(now) == datetime(2025, 3, 1).astimezone()

    def test_windows_use_local_calendar_day(self, central_european_time):
        late_utc = datetime(2025, 6, 10, 23, 30, tzinfo=timezone.utc)  # 11 June 01:30 CEST

        assert start_of_day(late_utc).day == 11


class TestTags:
    """Test tag parsing."""

    def test_tags_from_string(self):
        assert tags_from_string(" work, urgent ,, home") == ["work", "urgent", "home"]
        assert tags_from_string("") == []
        assert tags_from_string(" , ") == []

    def test_clean_tags(self):
        assert clean_tags([" a ", "", 3, None, "b"]) == ["a", "b"]


class TestLogging:
    """Test logging setup."""

    def test_setup_logging_writes_files(self, tmp_path):
        settings = Settings(log_dir=tmp_path / "logs", log_level="DEBUG")

        setup_logging(settings)
        logging.getLogger("taskflow.test").error("Something broke")

        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "Something broke" in (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")
        assert "Something broke" in (tmp_path / "logs" / "error.log").read_text(encoding="utf-8")

    def test_setup_logging_replaces_its_own_handlers(self, tmp_path):
        settings = Settings(log_dir=tmp_path / "logs")

        setup_logging(settings)
        setup_logging(settings)

        owned = [h for h in logging.getLogger().handlers if getattr(h, "_taskflow_handler", False)]
        assert len(owned) == 3

    def test_colored_formatter_leaves_record_untouched(self):
        record = logging.makeLogRecord({"levelname": "ERROR", "msg": "boom", "levelno": logging.ERROR})

        output = ColoredFormatter("%(levelname)s %(message)s").format(record)

        assert "\033[31m" in output
        assert record.levelname == "ERROR"


class TestSettings:
    """Test environment-driven configuration."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.save_delay == 0.3
        assert settings.reminder_window == timedelta(hours=1)
        assert settings.log_dir is None

    def test_environment_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TASKFLOW_STORAGE_PATH", str(tmp_path / "tasks.json"))
        monkeypatch.setenv("TASKFLOW_REMINDER_WINDOW_MINUTES", "15")

        settings = Settings(_env_file=None)

        assert settings.storage_path == tmp_path / "tasks.json"
        assert settings.reminder_window == timedelta(minutes=15)


class TestCollation:
    """Test adopting the environment collation locale."""

    def test_applies_environment_locale(self, monkeypatch):
        calls = []

        def record(category, name=None):
            calls.append((category, name))
            return "en_US.UTF-8"

        monkeypatch.setattr(locale, "setlocale", record)

        assert use_system_collation() is True
        assert calls == [(locale.LC_COLLATE, "")]

    def test_unavailable_locale_is_logged(self, monkeypatch, caplog):
        def unsupported(category, name=None):
            raise locale.Error("unsupported locale setting")

        monkeypatch.setattr(locale, "setlocale", unsupported)

        with caplog.at_level(logging.WARNING):
            assert use_system_collation() is False

        assert "Keeping current collation" in caplog.text
