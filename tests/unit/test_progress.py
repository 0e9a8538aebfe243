from __future__ import annotations

from unittest.mock import MagicMock, patch

from inventory_import.services.progress import ProgressReporter, ProgressTracker, is_tty_enabled


def test_reporter_clamps_and_never_decreases():
    seen = []
    reporter = ProgressReporter(lambda p, m: seen.append(p))
    reporter(-5, "start")
    reporter(40, "rows")
    reporter(30, "late")
    reporter(150, "overshoot")
    assert seen == [0.0, 40.0, 40.0, 99.0]


def test_reporter_complete_emits_100_once():
    seen = []
    reporter = ProgressReporter(lambda p, m: seen.append((p, m)))
    reporter(60, "merging")
    reporter.complete()
    reporter.complete()
    reporter(70, "ignored")
    assert seen == [(60.0, "merging"), (100.0, "Import completed")]
    assert reporter.percent == 100.0


def test_reporter_without_callback():
    reporter = ProgressReporter()
    reporter(10)
    reporter.complete()
    assert reporter.completed


@patch("inventory_import.services.progress.sys.stdout")
def test_is_tty_enabled(mock_stdout):
    mock_stdout.isatty.return_value = True
    assert is_tty_enabled() is True
    mock_stdout.isatty.return_value = False
    assert is_tty_enabled() is False


@patch("inventory_import.services.progress.is_tty_enabled", return_value=False)
def test_tracker_disabled_outside_tty(_):
    with ProgressTracker("routers.xlsx") as tracker:
        tracker(50, "half")
        assert tracker.pbar is None
        assert tracker.position == 50


@patch("inventory_import.services.progress.tqdm")
@patch("inventory_import.services.progress.is_tty_enabled", return_value=True)
def test_tracker_updates_bar_by_delta(_, mock_tqdm):
    bar = MagicMock()
    mock_tqdm.return_value = bar
    tracker = ProgressTracker("routers.xlsx")
    tracker(10, "Validating rows...")
    tracker(10, "same")
    tracker(35, "Merging rows...")
    tracker.close()
    assert [c.args[0] for c in bar.update.call_args_list] == [10, 25]
    bar.set_postfix_str.assert_called_with("Merging rows...", refresh=False)
    bar.close.assert_called_once()
    assert mock_tqdm.call_args.kwargs["total"] == 100
