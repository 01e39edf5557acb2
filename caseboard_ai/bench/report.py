"""
Benchmark report building and it does:
- Rolls rows up by provider, provider+model and prompt+provider+model
- Lists failures individually (capped) for reproduction
- Renders the Markdown summary and writes both report files

Main purpose:
One machine-readable and one human-readable report per run.
"""


import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from caseboard_ai.bench.runner import BenchmarkRow

DEFAULT_FAILURE_CAP = 25
COMPLEX_CATEGORY = "complex"


def timestamp_slug(moment: Optional[datetime] = None) -> str:
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y%m%d-%H%M%SZ")


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _percent(part: int, total: int) -> float:
    return (part / total) * 100 if total else 0.0


class _Bucket:
    def __init__(self, **labels: Any):
        self.labels = labels
        self.requests = 0
        self.successes = 0
        self.failures = 0
        self.latencies: List[float] = []
        self.tool_calls: List[float] = []
        self.accuracies: List[float] = []

    def add(self, row: BenchmarkRow) -> None:
        self.requests += 1
        self.latencies.append(row.latency_ms)
        self.tool_calls.append(row.tool_call_count)
        self.accuracies.append(row.accuracy_score)
        if row.success:
            self.successes += 1
        else:
            self.failures += 1

    def stats(self) -> Dict[str, Any]:
        return {
            **self.labels,
            "requests": self.requests,
            "successes": self.successes,
            "failures": self.failures,
            "successRate": _percent(self.successes, self.requests),
            "avgLatencyMs": _average(self.latencies),
            "avgToolCalls": _average(self.tool_calls),
            "avgAccuracyScore": _average(self.accuracies),
        }


def summarize_results(rows: Iterable[BenchmarkRow], failure_cap: int = DEFAULT_FAILURE_CAP) -> Dict[str, Any]:
    by_provider: Dict[str, _Bucket] = {}
    by_provider_model: Dict[str, _Bucket] = {}
    by_prompt: Dict[str, _Bucket] = {}
    failures: List[Dict[str, Any]] = []
    total = 0

    for row in rows:
        total += 1
        provider = row.provider or "unknown"
        model = row.model or "unknown"

        by_provider.setdefault(provider, _Bucket()).add(row)
        by_provider_model.setdefault(
            f"{provider}:{model}", _Bucket(provider=provider, model=model)
        ).add(row)
        by_prompt.setdefault(
            f"{row.prompt_id}:{provider}:{model}",
            _Bucket(promptId=row.prompt_id, category=row.category, provider=provider, model=model),
        ).add(row)

        if not row.success:
            failures.append(
                {
                    "round": row.round,
                    "boardId": row.board_id,
                    "promptId": row.prompt_id,
                    "provider": row.provider,
                    "model": row.model,
                    "status": row.status,
                    "error": row.error,
                }
            )

    prompt_stats = {key: bucket.stats() for key, bucket in by_prompt.items()}
    return {
        "totalRequests": total,
        "totalSuccesses": total - len(failures),
        "totalFailures": len(failures),
        "providers": {key: bucket.stats() for key, bucket in by_provider.items()},
        "providerModels": {key: bucket.stats() for key, bucket in by_provider_model.items()},
        "promptProviderModels": prompt_stats,
        "complexPromptProviderModels": {
            key: stats for key, stats in prompt_stats.items() if stats["category"] == COMPLEX_CATEGORY
        },
        "failures": failures[: max(0, failure_cap)],
    }


def _escape_cell(value: Any) -> str:
    return str(value or "").replace("|", "\\|")


def format_markdown_report(report: Dict[str, Any]) -> str:
    config = report.get("config", {})
    summary = report["summary"]
    lines = [
        "# AI Provider/Model Benchmark Report",
        "",
        f"- Generated at (UTC): {report.get('generatedAt', '')}",
        f"- Base URL: {config.get('baseUrl', '')}",
        f"- Auth source: {config.get('authSource', '')}",
        f"- User ID: {config.get('userId', '')}",
        f"- Board IDs tested: {len(config.get('boardIds', []))}",
        f"- Auto-created boards: {config.get('autoCreatedBoardCount', 0)}",
        f"- Prompt count: {config.get('promptCount', 0)}",
        f"- Model matrix size: {len(config.get('modelMatrix', []))}",
        f"- Rounds: {config.get('rounds', 0)}",
        f"- Total requests: {summary['totalRequests']}",
        "",
        "## Provider Summary",
        "",
        "| Provider | Requests | Success | Failure | Avg Latency (ms) | Avg Tool Calls | Avg Accuracy |",
        "|---|---:|---:|---:|---:|---:|---:|",
    ]
    for provider, s in sorted(summary["providers"].items()):
        lines.append(
            f"| {provider} | {s['requests']} | {s['successes']} | {s['failures']} | "
            f"{s['avgLatencyMs']:.1f} | {s['avgToolCalls']:.2f} | {s['avgAccuracyScore']:.2f} |"
        )

    lines += [
        "",
        "## Provider + Model Summary",
        "",
        "| Provider | Model | Requests | Success % | Avg Latency (ms) | Avg Tool Calls | Avg Accuracy |",
        "|---|---|---:|---:|---:|---:|---:|",
    ]
    for s in sorted(summary["providerModels"].values(), key=_provider_model_key):
        lines.append(
            f"| {s['provider']} | {s['model']} | {s['requests']} | {s['successRate']:.1f} | "
            f"{s['avgLatencyMs']:.1f} | {s['avgToolCalls']:.2f} | {s['avgAccuracyScore']:.2f} |"
        )

    lines += [
        "",
        "## Prompt-Level Provider/Model Performance",
        "",
        "| Prompt ID | Category | Provider | Model | Requests | Success % | Avg Latency (ms) | Avg Tool Calls | Avg Accuracy |",
        "|---|---|---|---|---:|---:|---:|---:|---:|",
    ]
    for s in sorted(summary["promptProviderModels"].values(), key=lambda s: (s["promptId"], *_provider_model_key(s))):
        lines.append(
            f"| {s['promptId']} | {s['category']} | {s['provider']} | {s['model']} | {s['requests']} | "
            f"{s['successRate']:.1f} | {s['avgLatencyMs']:.1f} | {s['avgToolCalls']:.2f} | {s['avgAccuracyScore']:.2f} |"
        )

    lines += ["", "## Failures", ""]
    if not summary["failures"]:
        lines.append("No failed requests recorded.")
    else:
        lines += [
            "| Round | Board ID | Prompt ID | Provider | Model | Status | Error |",
            "|---:|---|---|---|---|---:|---|",
        ]
        for f in summary["failures"]:
            lines.append(
                f"| {f['round']} | {f['boardId']} | {f['promptId']} | {f['provider'] or 'unknown'} | "
                f"{f['model'] or 'unknown'} | {f['status']} | {_escape_cell(f['error'])} |"
            )

    lines.append("")
    return "\n".join(lines) + "\n"


def _provider_model_key(stats: Dict[str, Any]) -> Tuple[str, str]:
    return stats["provider"], stats["model"]


def write_reports(report: Dict[str, Any], output_dir: str, slug: str) -> Tuple[Path, Path]:
    out = Path(output_dir).expanduser()
    out.mkdir(parents=True, exist_ok=True)
    json_path = out / f"ab-report-{slug}.json"
    md_path = out / f"ab-report-{slug}.md"
    json_path.write_text(json.dumps(report, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    md_path.write_text(format_markdown_report(report), encoding="utf-8")
    return json_path, md_path
