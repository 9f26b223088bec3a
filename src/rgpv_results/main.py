"""
RGPV result connector - command line entry point.

Usage:
    rgpv-results --single --rollno 0818CS231001 --semester 3
    rgpv-results --batch --prefix 0818CS23 --start 1001 --end 1234 --semester 4
"""
import argparse
import asyncio
import re
import signal
import sys
import time
from datetime import datetime
from typing import List, Optional

from .batch.orchestrator import BatchOrchestrator
from .config.logger import configure_logging, logger
from .config.settings import ScraperConfig, load_config
from .connectors.rgpv.interfaces import RecordOutcome, StudentRecord
from .context import RunContext, create_context
from .ocr.pool import OCRPoolInitializationError
from .storage.json_store import JsonResultStore

ROLL_NUMBER_PATTERN = re.compile(r"^(.+?)(\d{4})$")
REPORT_INTERVAL = 30.0
REPORT_EVERY = 10

log = logger.bind(component="cli")


class ProgressReporter:
    """Logs batch progress every few outcomes and on a timer."""

    def __init__(self, total: int, context: RunContext):
        self.total = total
        self.context = context
        self.outcomes: List[RecordOutcome] = []
        self.started = time.monotonic()

    def on_outcome(self, outcome: RecordOutcome) -> None:
        self.outcomes.append(outcome)
        if len(self.outcomes) % REPORT_EVERY == 0:
            self.report()

    def report(self) -> None:
        completed = len(self.outcomes)
        if not completed:
            return

        elapsed = time.monotonic() - self.started
        successful = sum(1 for outcome in self.outcomes if outcome.success)
        speed = completed / elapsed if elapsed > 0 else 0.0
        remaining = self.total - completed

        log.info(
            "progress_report",
            elapsed_s=round(elapsed, 1),
            progress=f"{completed}/{self.total}",
            percent=round(completed / self.total * 100, 1),
            success_rate=round(successful / completed * 100, 1),
            speed_per_s=round(speed, 2),
            eta_s=round(remaining / speed) if speed else None,
            ocr=self.context.solver.get_stats(),
        )

    async def periodic(self, interval: float = REPORT_INTERVAL) -> None:
        while True:
            await asyncio.sleep(interval)
            self.report()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="RGPV result scraper")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--single", dest="mode", action="store_const", const="single",
                      help="Process a single student (default when --rollno is used)")
    mode.add_argument("--batch", dest="mode", action="store_const", const="batch",
                      help="Process a range of students (default)")

    parser.add_argument("--rollno", help="Full roll number, e.g. 0818CS231001")
    parser.add_argument("--prefix", help="Roll number prefix (default: 0818CS23)")
    parser.add_argument("--start", help="First 4-digit suffix (default: 1001)")
    parser.add_argument("--end", help="Last 4-digit suffix (default: 1234)")
    parser.add_argument("--semester", help="Semester (default: 3)")
    parser.add_argument("--concurrency", type=int, help="Parallel pipelines (default: 12)")
    parser.add_argument("--ocr-concurrency", type=int, help="OCR workers (default: 2)")
    parser.add_argument("--max-retries", type=int, help="Attempts per roll number (default: 3)")
    parser.add_argument("--results-dir", help="Directory for result files (default: results)")
    parser.add_argument("--force", action="store_true", default=None,
                        help="Fetch roll numbers that already have a result file")
    parser.add_argument("--debug", dest="debug", action="store_true", default=None,
                        help="Enable debug logging")
    parser.add_argument("--no-debug", dest="debug", action="store_false",
                        help="Disable debug logging")

    args = parser.parse_args(argv)

    if args.rollno:
        match = ROLL_NUMBER_PATTERN.match(args.rollno)
        if not match:
            parser.error(
                f"Invalid roll number format: {args.rollno} "
                "(expected [prefix][4-digit-number], e.g. 0818CS231001)"
            )
        args.prefix, args.start = match.group(1), match.group(2)
        args.mode = args.mode or "single"

    for name in ("concurrency", "ocr_concurrency", "max_retries"):
        value = getattr(args, name)
        if value is not None and value < 1:
            parser.error(f"--{name.replace('_', '-')} must be a positive integer")

    args.mode = args.mode or "batch"
    return args


def build_config(args: argparse.Namespace) -> ScraperConfig:
    config = load_config(
        prefix=args.prefix,
        start=args.start,
        end=args.end,
        semester=args.semester,
        concurrency=args.concurrency,
        ocr_concurrency=args.ocr_concurrency,
        max_retries=args.max_retries,
        results_dir=args.results_dir,
        force_reprocess=args.force,
        debug=args.debug,
    )
    if args.mode == "single":
        config = config.with_overrides(end=config.start)
    return config


def print_single_result(outcome: RecordOutcome) -> None:
    print("\nResult:")
    print("=" * 41)
    if outcome.success and outcome.data:
        data = outcome.data
        print(f"Student: {data['student']['name']}")
        print(f"Roll Number: {outcome.roll_number}")
        print(f"SGPA: {data['results']['sgpa']}")
        print(f"CGPA: {data['results']['cgpa']}")
        print("Subjects:")
        for subject in data.get("subjects") or []:
            print(f"   - {subject['subject']}: {subject['grade']}")
        if not data.get("subjects"):
            print("   - No subject data available")
    else:
        print(f"Failed to get result for {outcome.roll_number}")
        print(f"Error: {outcome.message}")
    print("=" * 41)


def print_summary(outcomes: List[RecordOutcome], duration: float) -> None:
    successful = sum(1 for outcome in outcomes if outcome.success)
    cached = sum(1 for outcome in outcomes if outcome.from_cache)
    total = len(outcomes)

    print(f"\nBatch processing complete in {duration:.2f} seconds.")
    print(f"Successful: {successful}/{total} ({cached} from cache)")
    print(f"Failed: {total - successful}/{total}")
    if total:
        print(f"Average processing time: {duration / total:.2f} seconds per student")


async def main(args: argparse.Namespace) -> int:
    config = build_config(args)
    records = [
        StudentRecord(roll_number, config.semester, config.force_reprocess)
        for roll_number in config.roll_numbers()
    ]

    async with create_context(config) as context:
        orchestrator = BatchOrchestrator(context)
        reporter = ProgressReporter(len(records), context)
        started = time.monotonic()

        if args.mode == "single":
            log.info("single_started", roll_number=records[0].roll_number)
            outcomes = await orchestrator.run(records, concurrency=1)
            print_single_result(outcomes[0])
            return 0 if outcomes[0].success else 1

        log.info(
            "batch_range",
            first=records[0].roll_number if records else None,
            last=records[-1].roll_number if records else None,
            count=len(records),
            concurrency=config.concurrency,
            ocr_concurrency=config.ocr_concurrency,
        )

        periodic = asyncio.create_task(reporter.periodic())
        try:
            outcomes = await orchestrator.run(records, progress_callback=reporter.on_outcome)
        finally:
            periodic.cancel()

        duration = time.monotonic() - started
        if isinstance(context.store, JsonResultStore):
            name = f"batch_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            await context.store.save_batch_results(outcomes, name)

        print_summary(outcomes, duration)
        return 0


async def _run_with_signals(args: argparse.Namespace) -> int:
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
        except (NotImplementedError, RuntimeError):
            pass

    try:
        return await main(args)
    except asyncio.CancelledError:
        log.warning("shutdown_requested")
        return 130


def run() -> None:
    """Entry point for ``rgpv-results``."""
    args = parse_args()
    debug = args.debug if args.debug is not None else load_config().debug
    configure_logging(debug=debug, json_logs=False)

    try:
        exit_code = asyncio.run(_run_with_signals(args))
    except OCRPoolInitializationError as e:
        log.error("ocr_pool_initialization_failed", error=str(e))
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    run()
