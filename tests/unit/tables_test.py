"""Unit tests for table rendering utilities."""

from dvingest.domain.progress import ProgressLog
from dvingest.ui.tables import create_check_table, create_progress_table


class TestProgressTable:
    """Test progress table creation."""

    def test_creates_table_with_correct_columns(self):
        """Table should have all required columns."""
        table = create_progress_table(ProgressLog())

        column_headers = [col.header for col in table.columns]
        assert column_headers == ["Step", "Status", "Items done"]

    def test_one_row_per_marker(self):
        """Every completion marker gets a row."""
        log = ProgressLog()

        table = create_progress_table(log)

        assert table.row_count == len(list(log.iter_items()))

    def test_title_counts_completed_steps(self):
        """Title should show how many steps are done."""
        log = ProgressLog()
        log.dataset.complete()
        log.update_state.complete()

        table = create_progress_table(log, title_suffix=" - bag1")

        assert "2/20 steps completed" in table.title
        assert table.title.endswith(" - bag1")


class TestCheckTable:
    """Test bag check table creation."""

    def test_rows_match_checks(self):
        checks = [("init.yml", True, "valid"), ("edit-files.yml", False, "No editFiles found")]

        table = create_check_table(checks)

        assert table.row_count == 2
        assert table.title == "Bag check"
