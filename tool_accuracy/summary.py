"""Accuracy run summaries.

This module turns a stored accuracy run into reports:
- A TestSummary with aggregate statistics
- A comparison against a baseline run (another commit's latest done run)
- An HTML report (Jinja2) and a short Markdown brief for pull requests
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from jinja2 import BaseLoader, Environment
from pydantic import BaseModel, Field

from . import config
from .models import (
    AccuracyResult,
    AccuracyRunStatus,
    ExpectedToolCall,
    LLMToolCall,
    ModelResponse,
)
from .storage import AccuracyResultNotFoundError, DiskResultStorage


logger = logging.getLogger(__name__)


# =============================================================================
# Summary Models
# =============================================================================


class PromptAndModelResponse(ModelResponse):
    """A model response flattened together with its prompt and baseline."""

    prompt: str
    expected_tool_calls: list[ExpectedToolCall] = Field(default_factory=list)
    baseline_tool_accuracy: float | None = None


class BaselineRunInfo(BaseModel):
    """Identification of the run used as the baseline."""

    commit_sha: str
    run_id: str
    run_status: AccuracyRunStatus
    created_on: str


class TestSummary(BaseModel):
    """
    Aggregate statistics of an accuracy run.

    Attributes:
        total_prompts: Distinct prompts evaluated
        total_models: Distinct (provider, model) pairs evaluated
        responses_with_zero_accuracy: Responses scoring 0
        responses_with_75_accuracy: Responses scoring exactly 0.75
        responses_with_100_accuracy: Responses scoring 1
        average_accuracy: Mean accuracy over all responses
        responses_improved: Responses scoring above their baseline
        responses_regressed: Responses scoring below their baseline
    """
    __test__ = False

    total_prompts: int = 0
    total_models: int = 0
    responses_with_zero_accuracy: int = 0
    responses_with_75_accuracy: int = 0
    responses_with_100_accuracy: int = 0
    average_accuracy: float = 0.0
    responses_improved: int = 0
    responses_regressed: int = 0
    report_generated_on: str = ""
    result_created_on: str = ""


# =============================================================================
# Comparison
# =============================================================================


def _format_timestamp(epoch_ms: int | None = None) -> str:
    moment = datetime.fromtimestamp(epoch_ms / 1000) if epoch_ms is not None else datetime.now()
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def build_comparable_result(
    run: AccuracyResult,
    baseline: AccuracyResult | None = None,
) -> list[PromptAndModelResponse]:
    """Flatten a run into one row per (prompt, model) with baseline accuracy.

    A baseline response is matched on the same prompt text and the same
    provider and requested model.
    """
    rows = []
    for prompt_result in run.prompt_results:
        baseline_prompt = baseline.get_prompt_result(prompt_result.prompt) if baseline else None

        for response in prompt_result.model_responses:
            baseline_accuracy = None
            if baseline_prompt is not None:
                for baseline_response in baseline_prompt.model_responses:
                    if (
                        baseline_response.provider == response.provider
                        and baseline_response.requested_model == response.requested_model
                    ):
                        baseline_accuracy = baseline_response.tool_calling_accuracy
                        break

            rows.append(
                PromptAndModelResponse(
                    **response.model_dump(exclude={"llm_tool_calls"}),
                    llm_tool_calls=response.llm_tool_calls,
                    prompt=prompt_result.prompt,
                    expected_tool_calls=prompt_result.expected_tool_calls,
                    baseline_tool_accuracy=baseline_accuracy,
                )
            )
    return rows


def get_test_summary(run: AccuracyResult, responses: list[PromptAndModelResponse]) -> TestSummary:
    """Calculate aggregate statistics over flattened responses."""
    accuracies = [r.tool_calling_accuracy for r in responses]
    with_baseline = [r for r in responses if r.baseline_tool_accuracy is not None]

    return TestSummary(
        total_prompts=len({r.prompt for r in responses}),
        total_models=len({r.provider_model for r in responses}),
        responses_with_zero_accuracy=sum(1 for a in accuracies if a == 0),
        responses_with_75_accuracy=sum(1 for a in accuracies if a == 0.75),
        responses_with_100_accuracy=sum(1 for a in accuracies if a == 1),
        average_accuracy=sum(accuracies) / len(accuracies) if accuracies else 0.0,
        responses_improved=sum(
            1 for r in with_baseline if r.tool_calling_accuracy > r.baseline_tool_accuracy
        ),
        responses_regressed=sum(
            1 for r in with_baseline if r.tool_calling_accuracy < r.baseline_tool_accuracy
        ),
        report_generated_on=_format_timestamp(),
        result_created_on=_format_timestamp(run.created_on),
    )


# =============================================================================
# Formatting
# =============================================================================


def format_accuracy(accuracy: float) -> str:
    return f"{accuracy * 100:.1f}%"


def accuracy_class(accuracy: float) -> str:
    if accuracy == 1:
        return "chip perfect"
    if accuracy >= config.HALLUCINATION_CAP:
        return "chip good"
    return "chip poor"


def accuracy_trend(response: PromptAndModelResponse) -> str:
    """Arrow comparing a response's accuracy with its baseline."""
    if response.baseline_tool_accuracy is None:
        return ""
    if response.tool_calling_accuracy > response.baseline_tool_accuracy:
        return "↗"
    if response.tool_calling_accuracy < response.baseline_tool_accuracy:
        return "↘"
    return "→"


def format_tool_call_name(call: ExpectedToolCall | LLMToolCall) -> str:
    """Tool name, in parentheses when the call is optional."""
    if isinstance(call, ExpectedToolCall) and call.optional:
        return f"({call.tool_name})"
    return call.tool_name


def format_tool_call_parameters(call: ExpectedToolCall | LLMToolCall) -> str:
    return json.dumps(call.model_dump(mode="json")["parameters"], indent=2)


HTML_REPORT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Accuracy Test Summary - {{ run.commit_sha }}</title>
<style>
body { font-family: sans-serif; margin: 2rem; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #ddd; padding: 0.4rem; vertical-align: top; }
.chip { padding: 0.1rem 0.4rem; border-radius: 0.6rem; }
.perfect { background: #c8f7c5; }
.good { background: #fff3b0; }
.poor { background: #f7c5c5; }
.details-row { display: none; }
.details-row.open { display: table-row; }
pre { white-space: pre-wrap; }
</style>
<script>
function toggleDetails(index) {
  document.getElementById("details-" + index).classList.toggle("open");
}
</script>
</head>
<body>
<h1>Accuracy Test Summary</h1>
<table>
<tr><th>Commit SHA</th><td>{{ run.commit_sha }}</td></tr>
<tr><th>Run ID</th><td>{{ run.run_id }}</td></tr>
<tr><th>Run Status</th><td><span class="{{ run.run_status.value | status_class }}">{{ run.run_status.value }}</span></td></tr>
<tr><th>Created On</th><td>{{ summary.result_created_on }}</td></tr>
<tr><th>Report Generated On</th><td>{{ summary.report_generated_on }}</td></tr>
<tr><th>Total Prompts</th><td>{{ summary.total_prompts }}</td></tr>
<tr><th>Total Models</th><td>{{ summary.total_models }}</td></tr>
<tr><th>Responses with 0% Accuracy</th><td>{{ summary.responses_with_zero_accuracy }}</td></tr>
<tr><th>Average Accuracy</th><td>{{ summary.average_accuracy | accuracy }}</td></tr>
<tr><th>Baseline Commit</th><td>{{ baseline.commit_sha if baseline else "-" }}</td></tr>
<tr><th>Baseline Run ID</th><td>{{ baseline.run_id if baseline else "-" }}</td></tr>
<tr><th>Baseline Run Status</th><td>{{ baseline.run_status.value if baseline else "-" }}</td></tr>
<tr><th>Baseline Created On</th><td>{{ baseline.created_on if baseline else "-" }}</td></tr>
<tr><th>Responses Improved</th><td>{{ summary.responses_improved if baseline else "-" }}</td></tr>
<tr><th>Responses Regressed</th><td>{{ summary.responses_regressed if baseline else "-" }}</td></tr>
</table>
<h2>Results</h2>
<table>
<tr>
<th>Prompt</th><th>Model</th><th>Expected Tool Calls</th><th>LLM Tool Calls</th>
<th>Accuracy</th><th>Baseline Accuracy</th><th>Response Time (ms)</th><th>Total Tokens</th>
</tr>
{% for response in responses %}
<tr class="test-row" onclick="toggleDetails({{ loop.index0 }})">
<td>{{ response.prompt }}</td>
<td>{{ response.provider }} - {{ response.requested_model }}</td>
<td>{% for call in response.expected_tool_calls %}<span title="{{ call | tool_parameters }}">{{ call | tool_name }}</span>{% if not loop.last %}, {% endif %}{% endfor %}</td>
<td>{% for call in response.llm_tool_calls %}<span title="{{ call | tool_parameters }}">{{ call | tool_name }}</span>{% if not loop.last %}, {% endif %}{% endfor %}</td>
<td><span class="{{ response.tool_calling_accuracy | accuracy_class }}">{{ response.tool_calling_accuracy | accuracy }} {{ response | trend }}</span></td>
<td>{{ response.baseline_tool_accuracy | accuracy if response.baseline_tool_accuracy is not none else "N/A" }}</td>
<td>{{ "%.2f" | format(response.llm_response_time) }}</td>
<td>{{ response.tokens_used.total_tokens or "-" }}</td>
</tr>
<tr class="details-row" id="details-{{ loop.index0 }}">
<td colspan="8">
<h4>LLM Response</h4>
<pre>{{ response.text or "N/A" }}</pre>
<h4>Conversation Messages</h4>
<pre>{% for message in response.messages %}{{ message | tojson(indent=2) }}

{% endfor %}</pre>
</td>
</tr>
{% endfor %}
</table>
</body>
</html>
"""


def _status_class(status: str) -> str:
    if status == AccuracyRunStatus.DONE.value:
        return "chip run-status perfect"
    return "chip run-status poor"


def _report_environment() -> Environment:
    env = Environment(loader=BaseLoader(), autoescape=True)
    env.filters["accuracy"] = format_accuracy
    env.filters["accuracy_class"] = accuracy_class
    env.filters["trend"] = accuracy_trend
    env.filters["tool_name"] = format_tool_call_name
    env.filters["tool_parameters"] = format_tool_call_parameters
    env.filters["status_class"] = _status_class
    return env


def generate_html_report(
    run: AccuracyResult,
    responses: list[PromptAndModelResponse],
    summary: TestSummary,
    baseline: BaselineRunInfo | None = None,
) -> str:
    """Render the full HTML report."""
    template = _report_environment().from_string(HTML_REPORT_TEMPLATE)
    return template.render(run=run, responses=responses, summary=summary, baseline=baseline)


def generate_markdown_brief(
    run: AccuracyResult,
    summary: TestSummary,
    baseline: BaselineRunInfo | None = None,
    html_report_path: Path | None = None,
) -> str:
    """Render a short Markdown brief, suitable for a pull request comment."""
    lines = [
        "# 📊 Accuracy Test Results",
        "## 📈 Summary",
        "| Metric | Value |",
        "|--------|-------|",
        f"| **Commit SHA** | `{run.commit_sha}` |",
        f"| **Run ID** | `{run.run_id}` |",
        f"| **Status** | {run.run_status.value} |",
        f"| **Total Prompts Evaluated** | {summary.total_prompts} |",
        f"| **Models Tested** | {summary.total_models} |",
        f"| **Average Accuracy** | {format_accuracy(summary.average_accuracy)} |",
        f"| **Responses with 0% Accuracy** | {summary.responses_with_zero_accuracy} |",
        f"| **Responses with 75% Accuracy** | {summary.responses_with_75_accuracy} |",
        f"| **Responses with 100% Accuracy** | {summary.responses_with_100_accuracy} |",
        "",
    ]

    if baseline:
        lines.extend([
            "## 📊 Baseline Comparison",
            "| Metric | Value |",
            "|--------|-------|",
            f"| **Baseline Commit** | `{baseline.commit_sha}` |",
            f"| **Baseline Run ID** | `{baseline.run_id}` |",
            f"| **Baseline Run Status** | `{baseline.run_status.value}` |",
            f"| **Responses Improved** | {summary.responses_improved} |",
            f"| **Responses Regressed** | {summary.responses_regressed} |",
            "",
        ])

    server_url = os.getenv("GITHUB_SERVER_URL")
    repository = os.getenv("GITHUB_REPOSITORY")
    github_run_id = os.getenv("GITHUB_RUN_ID")
    if server_url and repository and github_run_id:
        run_url = f"{server_url}/{repository}/actions/runs/{github_run_id}"
        report_link = (
            f"📎 **[Download Full HTML Report]({run_url})** - Look for the "
            "`accuracy-test-summary` artifact for detailed results."
        )
    else:
        report_link = f"📎 **Full HTML Report**: `{html_report_path or config.HTML_SUMMARY_FILE}`"

    lines.extend(["---", report_link, "", f"*Report generated on: {summary.report_generated_on}*"])
    return "\n".join(lines)


def generate_test_summary(
    storage: DiskResultStorage,
    commit_sha: str,
    run_id: str | None = None,
    baseline_commit: str | None = None,
    html_path: Path | None = None,
    markdown_path: Path | None = None,
) -> TestSummary:
    """Load a run, compare it with a baseline and write both reports.

    Args:
        storage: Where results are stored.
        commit_sha: Commit of the run to summarise.
        run_id: Run to summarise; the commit's latest done run if omitted.
        baseline_commit: Commit whose latest done run is the baseline.
        html_path: Output path of the HTML report.
        markdown_path: Output path of the Markdown brief.

    Returns:
        The calculated TestSummary.

    Raises:
        AccuracyResultNotFoundError: If the run has no stored result.
    """
    html_path = html_path or config.HTML_SUMMARY_FILE
    markdown_path = markdown_path or config.MARKDOWN_BRIEF_FILE

    run = storage.get_accuracy_result(commit_sha, run_id)
    if run is None:
        raise AccuracyResultNotFoundError(
            f"No accuracy run result found for commit {commit_sha}, run {run_id}"
        )

    baseline_run = storage.get_accuracy_result(baseline_commit) if baseline_commit else None
    baseline_info = None
    if baseline_commit and baseline_run:
        baseline_info = BaselineRunInfo(
            commit_sha=baseline_commit,
            run_id=baseline_run.run_id,
            run_status=baseline_run.run_status,
            created_on=_format_timestamp(baseline_run.created_on),
        )
    elif baseline_commit:
        logger.warning(f"No done accuracy run found for baseline commit {baseline_commit}")

    logger.info(f"Generating test summary for accuracy run {run.run_id}")
    responses = build_comparable_result(run, baseline_run)
    summary = get_test_summary(run, responses)

    html_path.parent.mkdir(parents=True, exist_ok=True)
    html_path.write_text(
        generate_html_report(run, responses, summary, baseline_info), encoding="utf-8"
    )
    logger.info(f"HTML report generated: {html_path}")

    markdown_path.parent.mkdir(parents=True, exist_ok=True)
    markdown_path.write_text(
        generate_markdown_brief(run, summary, baseline_info, html_path), encoding="utf-8"
    )
    logger.info(f"Markdown brief generated: {markdown_path}")

    return summary

