import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from narrator.logging_handlers import DateStampedFileHandler, cleanup_old_logs


def test_date_stamped_file_handler_creates_expected_path(tmp_path) -> None:
    current = datetime(2024, 5, 26, 12, 34, 56, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(
        tmp_path / "app",
        prefix="narrator",
        tz_name="America/New_York",
        current_time=current,
    )
    try:
        expected_dir = (tmp_path / "app" / "2024-05-26").resolve()
        expected_file = expected_dir / "narrator_2024-05-26_08-34-56_EDT.log"
        file_path = Path(handler.baseFilename)
        assert file_path == expected_file
        assert file_path.exists()

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg="hello world",
            args=(),
            exc_info=None,
        )
        handler.emit(record)

        assert "hello world" in file_path.read_text(encoding="utf-8")
    finally:
        handler.close()


def test_handler_defaults_to_utc(tmp_path) -> None:
    current = datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(tmp_path, current_time=current, delay=True)
    try:
        expected = (tmp_path / "2023-01-02").resolve() / "narrator_2023-01-02_03-04-05_UTC.log"
        assert Path(handler.baseFilename) == expected
        # delay=True opens the file on first write only
        assert not expected.exists()
    finally:
        handler.close()


def test_handler_unknown_zone_falls_back_to_utc(tmp_path) -> None:
    current = datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(tmp_path, tz_name="Mars/Olympus", current_time=current)
    try:
        assert Path(handler.baseFilename).name.endswith("_UTC.log")
    finally:
        handler.close()


def test_cleanup_old_logs(tmp_path) -> None:
    """Test that old log files are deleted based on retention hours."""
    log_dir = tmp_path / "logs" / "app"
    log_dir.mkdir(parents=True)
    now = datetime.now(timezone.utc)

    old_file = log_dir / "old_log.log"
    old_file.write_text("old content")
    old_time = (now - timedelta(days=3)).timestamp()
    os.utime(old_file, (old_time, old_time))

    recent_file = log_dir / "recent_log.log"
    recent_file.write_text("recent content")
    recent_time = (now - timedelta(days=1)).timestamp()
    os.utime(recent_file, (recent_time, recent_time))

    files_deleted, errors = cleanup_old_logs([log_dir], retention_hours=48)

    assert files_deleted == 1
    assert errors == 0
    assert not old_file.exists()
    assert recent_file.exists()


def test_cleanup_old_logs_disabled(tmp_path) -> None:
    """Test that cleanup does nothing when retention_hours is 0."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    old_file = log_dir / "old_log.log"
    old_file.write_text("content")
    old_time = (datetime.now(timezone.utc) - timedelta(days=100)).timestamp()
    os.utime(old_file, (old_time, old_time))

    assert cleanup_old_logs([log_dir], retention_hours=0) == (0, 0)
    assert old_file.exists()


def test_cleanup_old_logs_removes_empty_directories(tmp_path) -> None:
    """Test that empty date directories are removed after cleanup."""
    log_dir = tmp_path / "logs" / "app"
    date_dir = log_dir / "2024-01-01"
    date_dir.mkdir(parents=True)
    old_file = date_dir / "old_log.log"
    old_file.write_text("content")
    old_time = (datetime.now(timezone.utc) - timedelta(days=100)).timestamp()
    os.utime(old_file, (old_time, old_time))

    files_deleted, _ = cleanup_old_logs([log_dir], retention_hours=48)

    assert files_deleted == 1
    assert not date_dir.exists()
