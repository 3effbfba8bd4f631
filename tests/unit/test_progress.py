from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock, patch

from labdata_ingest.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    """Test that is_tty_enabled returns sys.stdout.isatty()."""
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestProgressTracker:
    """Test cases for ProgressTracker class."""

    def test_init_with_tty_enabled(self):
        with patch('labdata_ingest.services.progress.is_tty_enabled', return_value=True), \
             patch('labdata_ingest.services.progress.tqdm') as mock_tqdm:

            tracker = ProgressTracker(5, description="Test files")

            assert tracker.total_files == 5
            assert tracker.current_file == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Test files",
                unit="file",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('labdata_ingest.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(5, description="Test files")

            assert tracker.enabled is False
            assert tracker.pbar is None

    def test_file_lifecycle_with_tty_enabled(self):
        mock_pbar = Mock()

        with patch('labdata_ingest.services.progress.is_tty_enabled', return_value=True), \
             patch('labdata_ingest.services.progress.tqdm', return_value=mock_pbar):

            tracker = ProgressTracker(3, description="Processing")
            tracker.start_file(Path("run.xlsx"))
            tracker.finish_file(success=True)
            tracker.set_postfix(ok=1, failed=0)

            assert tracker.current_file == 1
            mock_pbar.set_description.assert_any_call("Processing (run.xlsx)")
            mock_pbar.update.assert_called_once_with(1)
            mock_pbar.set_postfix.assert_called_once_with(ok=1, failed=0)

    def test_file_lifecycle_with_tty_disabled(self):
        with patch('labdata_ingest.services.progress.is_tty_enabled', return_value=False):
            tracker = ProgressTracker(3, description="Processing")
            tracker.start_file(Path("run.xlsx"))
            tracker.finish_file(success=False)
            tracker.set_postfix(ok=0)

            assert tracker.current_file == 1

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()

        with patch('labdata_ingest.services.progress.is_tty_enabled', return_value=True), \
             patch('labdata_ingest.services.progress.tqdm', return_value=mock_pbar):

            with ProgressTracker(1) as tracker:
                pass

            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None
