"""JSON file storage for accuracy run results.

Results live under ``<results_dir>/<commit_sha>/<run_id>.json``. Once a run
is marked as done, ``latest-run.json`` in the same commit directory points at
it so that later runs can use it as their baseline.

Test workers for several models may record responses at the same time, so
every read-modify-write of a result file happens under a lock file.
"""

import json
import logging
import os
import shutil
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from . import config
from .models import AccuracyResult, AccuracyRunStatus, ExpectedToolCall, ModelResponse, PromptResult


logger = logging.getLogger(__name__)


class AccuracyResultNotFoundError(LookupError):
    """Raised when an accuracy result that must exist is missing."""


class StorageLockError(TimeoutError):
    """Raised when a result file lock cannot be acquired."""


class DiskResultStorage:
    """Stores accuracy results as JSON files on disk."""

    def __init__(
        self,
        results_dir: str | Path | None = None,
        lock_retries: int = config.LOCK_RETRIES,
        lock_retry_delay_s: float = config.LOCK_RETRY_DELAY_S,
        lock_stale_s: float = config.LOCK_STALE_S,
    ):
        """Initialize the storage.

        Args:
            results_dir: Root directory for results (default from config).
            lock_retries: Attempts made to acquire a file lock before giving up.
            lock_retry_delay_s: Base delay between lock attempts; grows linearly.
            lock_stale_s: Age in seconds after which a lock file is considered
                abandoned and removed.
        """
        self.results_dir = Path(results_dir) if results_dir is not None else config.RESULTS_DIR
        self.lock_retries = lock_retries
        self.lock_retry_delay_s = lock_retry_delay_s
        self.lock_stale_s = lock_stale_s

    def get_accuracy_result(self, commit_sha: str, run_id: str | None = None) -> AccuracyResult | None:
        """Get the result of a run.

        Args:
            commit_sha: Commit the run was executed against.
            run_id: Run to load. Without it, the latest run marked as done
                for the commit is returned.

        Returns:
            The stored result, or None if nothing was recorded.
        """
        file_path = self._result_path(commit_sha, run_id or config.LATEST_RUN_NAME)
        if not file_path.exists():
            return None
        with self._file_lock(file_path):
            return self._read_result(file_path)

    def save_model_response_for_prompt(
        self,
        commit_sha: str,
        run_id: str,
        prompt: str,
        expected_tool_calls: list[ExpectedToolCall],
        model_response: ModelResponse,
    ) -> None:
        """Record one model's response to a prompt.

        The run file is created on the first response. Later responses are
        appended to the prompt's entry, or start a new entry for a new prompt.
        """
        file_path = self._result_path(commit_sha, run_id)
        with self._file_lock(file_path):
            result = self._read_result(file_path)
            if result is None:
                result = AccuracyResult(
                    run_id=run_id,
                    run_status=AccuracyRunStatus.IN_PROGRESS,
                    created_on=int(time.time() * 1000),
                    commit_sha=commit_sha,
                )
                logger.info(f"Creating accuracy result {file_path}")

            prompt_result = result.get_prompt_result(prompt)
            if prompt_result is not None:
                prompt_result.model_responses.append(model_response)
            else:
                result.prompt_results.append(
                    PromptResult(
                        prompt=prompt,
                        expected_tool_calls=expected_tool_calls,
                        model_responses=[model_response],
                    )
                )
            self._write_result(file_path, result)

        logger.info(
            f"Saved response of {model_response.provider_model} for run {run_id} "
            f"(accuracy: {model_response.tool_calling_accuracy:.2f})"
        )

    def update_run_status(self, commit_sha: str, run_id: str, status: AccuracyRunStatus) -> None:
        """Set the status of a run.

        Marking a run as done also makes it the latest run of its commit.
        A later status change of the latest run is reflected there too.

        Raises:
            AccuracyResultNotFoundError: If the run has no stored result.
        """
        file_path = self._result_path(commit_sha, run_id)
        if not file_path.exists():
            raise AccuracyResultNotFoundError(f"No accuracy result for {commit_sha}/{run_id}")

        with self._file_lock(file_path):
            result = self._read_result(file_path)
            if result is None:
                raise AccuracyResultNotFoundError(f"No accuracy result for {commit_sha}/{run_id}")
            result.run_status = status
            self._write_result(file_path, result)

        logger.info(f"Marked accuracy run {run_id} of {commit_sha} as {status.value}")

        latest_path = self._result_path(commit_sha, config.LATEST_RUN_NAME)
        with self._file_lock(latest_path):
            if status != AccuracyRunStatus.DONE:
                # run files are replaced on write, so the link must follow explicitly
                latest = self._read_result(latest_path)
                if latest is None or latest.run_id != run_id:
                    return
            self._link_latest(file_path, latest_path)
        logger.info(f"Linked {latest_path} to run {run_id}")

    def close(self) -> None:
        """Release resources. Nothing to release for disk storage."""

    # =========================================================================
    # Internals
    # =========================================================================

    def _result_path(self, commit_sha: str, run_id: str) -> Path:
        return self.results_dir / commit_sha / f"{run_id}.json"

    def _read_result(self, file_path: Path) -> AccuracyResult | None:
        try:
            raw = file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return AccuracyResult.model_validate(json.loads(raw))

    def _write_result(self, file_path: Path, result: AccuracyResult) -> None:
        # Replace atomically so readers never see a partial file
        tmp_path = file_path.with_name(f"{file_path.name}.tmp")
        tmp_path.write_text(json.dumps(result.model_dump(mode="json"), indent=2), encoding="utf-8")
        os.replace(tmp_path, file_path)

    def _link_latest(self, file_path: Path, latest_path: Path) -> None:
        tmp_path = latest_path.with_name(f"{latest_path.name}.tmp")
        tmp_path.unlink(missing_ok=True)
        try:
            os.link(file_path, tmp_path)
        except OSError:
            shutil.copyfile(file_path, tmp_path)
        os.replace(tmp_path, latest_path)

    @contextmanager
    def _file_lock(self, file_path: Path) -> Iterator[None]:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = file_path.with_name(f"{file_path.name}.lock")

        for attempt in range(self.lock_retries + 1):
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                break
            except FileExistsError:
                if self._break_stale_lock(lock_path):
                    continue
                if attempt == self.lock_retries:
                    logger.warning(f"Could not acquire lock for file - {file_path}")
                    raise StorageLockError(f"Could not acquire lock for {file_path}") from None
                time.sleep(self.lock_retry_delay_s * (attempt + 1))
        else:
            raise StorageLockError(f"Could not acquire lock for {file_path}")

        try:
            os.close(fd)
            yield
        finally:
            lock_path.unlink(missing_ok=True)

    def _break_stale_lock(self, lock_path: Path) -> bool:
        """Remove a lock left behind by a writer that died while holding it."""
        try:
            age = time.time() - lock_path.stat().st_mtime
        except FileNotFoundError:
            # released in the meantime
            return True
        if age < self.lock_stale_s:
            return False

        logger.warning(f"Removing stale lock {lock_path} ({age:.0f}s old)")
        lock_path.unlink(missing_ok=True)
        return True
