"""Tests for the tool-accuracy command line."""

import pytest

from tool_accuracy import cli
from tool_accuracy.models import AccuracyRunStatus
from tool_accuracy.storage import DiskResultStorage


COMMIT = "abc123"


@pytest.fixture
def seeded_storage(results_dir, expected, model_response) -> DiskResultStorage:
    storage = DiskResultStorage(results_dir)
    storage.save_model_response_for_prompt(COMMIT, "run-1", "Find movies", [expected("find")], model_response(1.0))
    return storage


class TestUpdateStatus:
    def test_marks_run_done(self, seeded_storage, results_dir):
        exit_code = cli.main(
            ["--results-dir", str(results_dir), "--commit", COMMIT, "--run-id", "run-1", "update-status", "--status", "done"]
        )

        assert exit_code == 0
        latest = seeded_storage.get_accuracy_result(COMMIT)
        assert latest.run_status == AccuracyRunStatus.DONE

    def test_missing_run_id_fails(self, results_dir, monkeypatch):
        monkeypatch.setattr(cli.config, "RUN_ID", None)
        exit_code = cli.main(
            ["--results-dir", str(results_dir), "--commit", COMMIT, "update-status", "--status", "failed"]
        )
        assert exit_code == 1

    def test_unknown_run_fails(self, results_dir):
        exit_code = cli.main(
            ["--results-dir", str(results_dir), "--commit", COMMIT, "--run-id", "nope", "update-status", "--status", "done"]
        )
        assert exit_code == 1

    def test_invalid_status_is_rejected(self, results_dir):
        with pytest.raises(SystemExit):
            cli.main(["--results-dir", str(results_dir), "--commit", COMMIT, "update-status", "--status", "paused"])


class TestSummary:
    def test_writes_reports(self, seeded_storage, results_dir, tmp_path, capsys):
        html_path = tmp_path / "summary.html"
        markdown_path = tmp_path / "brief.md"

        exit_code = cli.main(
            [
                "--results-dir", str(results_dir),
                "--commit", COMMIT,
                "--run-id", "run-1",
                "summary",
                "--html", str(html_path),
                "--markdown", str(markdown_path),
            ]
        )

        assert exit_code == 0
        assert html_path.exists()
        assert markdown_path.exists()
        assert "Average accuracy: 100.0%" in capsys.readouterr().out

    def test_missing_run_fails(self, results_dir, tmp_path):
        exit_code = cli.main(
            [
                "--results-dir", str(results_dir),
                "--commit", COMMIT,
                "--run-id", "missing",
                "summary",
                "--html", str(tmp_path / "summary.html"),
                "--markdown", str(tmp_path / "brief.md"),
            ]
        )
        assert exit_code == 1


class TestCommitSha:
    def test_configured_commit_wins(self, monkeypatch):
        monkeypatch.setattr(cli.config, "COMMIT_SHA", "configured")
        assert cli.get_commit_sha() == "configured"

    def test_git_failure_returns_none(self, monkeypatch):
        monkeypatch.setattr(cli.config, "COMMIT_SHA", None)

        def fail(*args, **kwargs):
            raise OSError("git not installed")

        monkeypatch.setattr(cli.subprocess, "run", fail)
        assert cli.get_commit_sha() is None

    def test_no_commit_exits_with_error(self, monkeypatch, results_dir):
        monkeypatch.setattr(cli, "get_commit_sha", lambda: None)
        exit_code = cli.main(["--results-dir", str(results_dir), "--run-id", "run-1", "update-status", "--status", "done"])
        assert exit_code == 1
