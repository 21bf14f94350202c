"""
Command-line entry point.

    consensus-coder run REQUEST.json [--db PATH]
    consensus-coder batch REQUEST.json ROWS [--db PATH] [--max-concurrency N]
    consensus-coder runs [--db PATH] [--limit N]

Results are printed to stdout as JSON; logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog
from pydantic import ValidationError

from .batch import default_run_meta, run_batch
from .config import Settings, configure_logging, get_settings, settings
from .consensus import ConsensusError, ConsensusOrchestrator
from .models import ConsensusRequest
from .storage import InMemoryRunStore, RunRecorder, RunStore, SQLiteRunStore

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILED = 2


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def _print_error(message: str) -> None:
    print(json.dumps({"error": message}, ensure_ascii=False), file=sys.stderr)


def load_request(path: Path) -> ConsensusRequest:
    """Read a request file with camelCase or snake_case keys."""
    with open(path, encoding="utf-8") as f:
        return ConsensusRequest.model_validate(json.load(f))


def load_rows(path: Path) -> list[str]:
    """
    Read batch rows.

    A ``.json`` file must hold a list of strings; any other file is read as
    one row per non-blank line.
    """
    text = Path(path).read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        rows = json.loads(text)
        if not isinstance(rows, list) or not all(isinstance(r, str) for r in rows):
            raise ValueError(f"{path} must contain a JSON list of strings")
        return rows
    return [line.strip() for line in text.splitlines() if line.strip()]


def _settings_from_args(args: argparse.Namespace) -> Settings:
    """Global settings with strategy and prompt presets overridden from flags."""
    overrides = {
        field: getattr(args, field)
        for field in ("agreement_strategy", "worker_prompt_preset", "judge_prompt_preset")
        if getattr(args, field, None) is not None
    }
    return get_settings().model_copy(update=overrides)


async def _complete_run(store: RunStore, run_id: str) -> None:
    # The computed result is still printed if the store fails here
    try:
        await store.complete_run(run_id)
    except Exception as e:
        logger.warning("run_complete_failed", run_id=run_id, error=str(e))


async def cmd_run(args: argparse.Namespace) -> int:
    try:
        request = load_request(args.request)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        _print_error(f"Invalid request: {e}")
        return EXIT_FAILED

    recorder: Optional[RunRecorder] = None
    owned_run = False
    if args.db:
        recorder = RunRecorder(SQLiteRunStore(args.db))
        if request.run_id is None:
            run_id = await recorder.store.create_run(default_run_meta(request, 1, 1))
            request = request.model_copy(update={"run_id": run_id})
            owned_run = True

    orchestrator = ConsensusOrchestrator(
        recorder=recorder, settings=_settings_from_args(args)
    )
    try:
        result = await orchestrator.run_consensus(request)
    except ConsensusError as e:
        if recorder is not None and request.run_id:
            await recorder.record_failure(
                request.run_id, request.row_index, request.content, e
            )
        _print_error(str(e))
        return EXIT_FAILED
    finally:
        if owned_run:
            await _complete_run(recorder.store, request.run_id)

    response = result.to_response()
    if request.run_id:
        response["runId"] = request.run_id
    _print_json(response)
    return EXIT_OK


async def cmd_batch(args: argparse.Namespace) -> int:
    try:
        template = load_request(args.request)
        rows = load_rows(args.rows)
    except (OSError, ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        _print_error(f"Invalid input: {e}")
        return EXIT_FAILED

    store: RunStore = SQLiteRunStore(args.db) if args.db else InMemoryRunStore()
    report = await run_batch(
        ConsensusOrchestrator(
            recorder=RunRecorder(store), settings=_settings_from_args(args)
        ),
        template,
        rows,
        store,
        max_concurrency=args.max_concurrency,
    )

    _print_json({
        "runId": report.run_id,
        "succeeded": report.succeeded,
        "failed": report.failed,
        "rows": [
            {
                "rowIndex": outcome.row_index,
                **(
                    {"result": outcome.result.to_response()}
                    if outcome.result is not None
                    else {"error": outcome.error}
                ),
            }
            for outcome in report.outcomes
        ],
    })
    return EXIT_OK if report.failed == 0 else EXIT_FAILED


async def cmd_runs(args: argparse.Namespace) -> int:
    store = SQLiteRunStore(args.db or settings.database_path)
    runs, total = await store.list_runs(limit=args.limit)
    _print_json({
        "total": total,
        "runs": [run.to_response() for run in runs],
    })
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level", default=None, help=f"Log level (default: {settings.log_level})"
    )
    common.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines"
    )

    analysis = argparse.ArgumentParser(add_help=False)
    analysis.add_argument(
        "--agreement",
        dest="agreement_strategy",
        choices=["positional", "label_set"],
        default=None,
        help=f"Agreement strategy (default: {settings.agreement_strategy})",
    )
    analysis.add_argument(
        "--worker-preset",
        dest="worker_prompt_preset",
        choices=["default", "rigorous"],
        default=None,
        help="Packaged worker prompt used when the request has none",
    )
    analysis.add_argument(
        "--judge-preset",
        dest="judge_prompt_preset",
        choices=["default", "enhanced"],
        default=None,
        help="Packaged judge prompt used when the request has none",
    )

    parser = argparse.ArgumentParser(
        prog="consensus-coder",
        description="Multi-model consensus coding with a judge model",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run", parents=[common, analysis], help="Run one consensus request"
    )
    run_parser.add_argument("request", type=Path, help="Request JSON file")
    run_parser.add_argument("--db", type=Path, help="Record the result in this SQLite file")
    run_parser.set_defaults(handler=cmd_run)

    batch_parser = subparsers.add_parser(
        "batch",
        parents=[common, analysis],
        help="Run a request template once per input row",
    )
    batch_parser.add_argument("request", type=Path, help="Request template JSON file")
    batch_parser.add_argument(
        "rows", type=Path, help="Text file (one row per line) or JSON list of strings"
    )
    batch_parser.add_argument("--db", type=Path, help="Record the run in this SQLite file")
    batch_parser.add_argument(
        "--max-concurrency",
        "-c",
        type=int,
        default=None,
        help=f"Rows in flight at once (default: {settings.batch_max_concurrency})",
    )
    batch_parser.set_defaults(handler=cmd_batch)

    runs_parser = subparsers.add_parser(
        "runs", parents=[common], help="List stored runs"
    )
    runs_parser.add_argument(
        "--db", type=Path, help=f"SQLite file (default: {settings.database_path})"
    )
    runs_parser.add_argument("--limit", type=int, default=50, help="Runs to show")
    runs_parser.set_defaults(handler=cmd_runs)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        level=args.log_level or settings.log_level,
        json_output=args.json_logs or settings.log_json,
    )
    logger.debug("cli_command", command=args.command)
    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
