import argparse
import asyncio
import os
import sys
from typing import List, Optional

import httpx

from caseboard_ai.bench.orchestrator import BenchmarkConfig, run_benchmark
from caseboard_ai.bench.report import timestamp_slug, write_reports
from caseboard_ai.bench.suite import DEFAULT_MODEL_MATRIX, parse_board_ids
from caseboard_ai.core.errors import BenchmarkSetupError, CaseboardError
from caseboard_ai.core.logging import get_logger

log = get_logger("bench.cli")

EXIT_FAILURES = 2
EXIT_FATAL = 1
DEFAULT_OUTPUT_DIR = "benchmark-results"
LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1", "0.0.0.0"}


def _env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        return int(raw) if raw else fallback
    except ValueError:
        return fallback


def _env_bool(name: str, fallback: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return fallback


def build_parser() -> argparse.ArgumentParser:
    env = os.environ.get
    ap = argparse.ArgumentParser(
        prog="caseboard-bench",
        description="Benchmark the AI planning endpoint across providers, models and prompts",
    )
    ap.add_argument("--base-url", default=env("AI_BASE_URL") or "http://127.0.0.1:8000")
    ap.add_argument("--token", default=env("AI_AUTH_TOKEN") or None)
    ap.add_argument("--user-id", default=env("BENCHMARK_USER_ID") or None)
    ap.add_argument("--board-ids", default=env("AB_BOARD_IDS") or "")
    ap.add_argument(
        "--auto-create-boards",
        type=int,
        default=_env_int("AB_AUTO_CREATE_BOARDS", 0),
        help="Create N boards in this process's DATABASE_URL; the target API must read the same database",
    )
    ap.add_argument("--board-prefix", default=env("AB_BOARD_PREFIX") or "ab-bench")
    ap.add_argument("--rounds", type=int, default=_env_int("AB_ROUNDS", 2))
    ap.add_argument("--matrix", default=env("AB_MODEL_MATRIX") or DEFAULT_MODEL_MATRIX)
    ap.add_argument("--concurrency", type=int, default=_env_int("AB_CONCURRENCY", 4))
    ap.add_argument("--prompt-suite", default=env("AB_PROMPT_SUITE") or None)
    ap.add_argument("--output-dir", default=env("AB_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR)
    ap.add_argument("--timeout-ms", type=int, default=_env_int("AB_TIMEOUT_MS", 45000))
    ap.add_argument("--delay-ms", type=int, default=_env_int("AB_DELAY_MS", 50))
    ap.add_argument("--max-requests", type=int, default=_env_int("AB_MAX_REQUESTS", 0))
    ap.add_argument("--wait-ready", action="store_true", default=_env_bool("AB_WAIT_READY"))
    ap.add_argument("--ready-timeout-ms", type=int, default=_env_int("AB_READY_TIMEOUT_MS", 600000))
    ap.add_argument("--ready-interval-ms", type=int, default=_env_int("AB_READY_INTERVAL_MS", 10000))
    return ap


def warn_if_boards_unreachable(config: BenchmarkConfig) -> bool:
    """
    Boards created by the CLI live in its own DATABASE_URL. A remote API only
    sees them when both processes share that database.
    """
    if config.auto_create_boards <= 0:
        return False
    host = httpx.URL(config.base_url).host
    if host in LOCAL_HOSTS:
        return False
    log.warning(
        f"Auto-created boards are written to the local DATABASE_URL but requests go to {host}; "
        f"unless that API shares the database every request will get 404"
    )
    return True


def config_from_args(args: argparse.Namespace) -> BenchmarkConfig:
    return BenchmarkConfig(
        base_url=args.base_url,
        token=args.token,
        user_id=args.user_id,
        board_ids=parse_board_ids(args.board_ids),
        auto_create_boards=max(0, args.auto_create_boards),
        board_prefix=args.board_prefix,
        rounds=max(1, args.rounds),
        matrix=args.matrix,
        concurrency=max(1, args.concurrency),
        prompt_suite=args.prompt_suite,
        timeout_ms=max(1000, args.timeout_ms),
        delay_ms=max(0, args.delay_ms),
        max_requests=max(0, args.max_requests),
        wait_ready=args.wait_ready,
        ready_timeout_ms=max(5000, args.ready_timeout_ms),
        ready_interval_ms=max(1000, args.ready_interval_ms),
    )


async def _run(config: BenchmarkConfig, output_dir: str) -> int:
    from caseboard_ai.db.session import dispose_engine, init_db

    slug = timestamp_slug()
    warn_if_boards_unreachable(config)
    try:
        if config.auto_create_boards > 0:
            await init_db()
        report = await run_benchmark(config)
    finally:
        await dispose_engine()
    json_path, md_path = write_reports(report, output_dir, slug)
    log.info(f"complete JSON: {json_path}")
    log.info(f"complete markdown: {md_path}")
    return EXIT_FAILURES if report["summary"]["totalFailures"] > 0 else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(config_from_args(args), args.output_dir))
    except (BenchmarkSetupError, CaseboardError, OSError) as e:
        log.error(f"fatal: {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
