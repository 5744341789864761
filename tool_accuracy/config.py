"""Configuration for tool calling accuracy runs.

Values come from the environment (a local .env file is loaded first) so the
same settings work for test suites, CI jobs and the command line.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Score shape
PERFECT_SCORE = 1.0
HALLUCINATION_CAP = 0.75
MATCH_THRESHOLD = 0.75

# Storage layout
GENERATED_ASSETS_DIR = Path(os.getenv("TOOL_ACCURACY_ASSETS_DIR", ".accuracy"))
RESULTS_DIR = Path(os.getenv("TOOL_ACCURACY_RESULTS_DIR", str(GENERATED_ASSETS_DIR / "results")))
LATEST_RUN_NAME = "latest-run"
LOCK_RETRIES = int(os.getenv("TOOL_ACCURACY_LOCK_RETRIES", "10"))
LOCK_RETRY_DELAY_S = float(os.getenv("TOOL_ACCURACY_LOCK_RETRY_DELAY", "0.1"))
LOCK_STALE_S = float(os.getenv("TOOL_ACCURACY_LOCK_STALE", "10"))

# Reports
HTML_SUMMARY_FILE = Path(
    os.getenv("TOOL_ACCURACY_HTML_SUMMARY", str(GENERATED_ASSETS_DIR / "test-summary.html"))
)
MARKDOWN_BRIEF_FILE = Path(
    os.getenv("TOOL_ACCURACY_MARKDOWN_BRIEF", str(GENERATED_ASSETS_DIR / "test-brief.md"))
)

# Run identification
RUN_ID = os.getenv("TOOL_ACCURACY_RUN_ID")
RUN_STATUS = os.getenv("TOOL_ACCURACY_RUN_STATUS")
BASELINE_COMMIT = os.getenv("TOOL_ACCURACY_BASELINE_COMMIT")
COMMIT_SHA = os.getenv("TOOL_ACCURACY_COMMIT_SHA")

# Logging
LOG_LEVEL = os.getenv("TOOL_ACCURACY_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
