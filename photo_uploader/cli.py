"""CLI entry point for uploading local image folders to Google Photos."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import time
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from photo_uploader.auth import authorized_session, load_credentials
from photo_uploader.clients.gphotos import GooglePhotosClient
from photo_uploader.config import UploaderConfig
from photo_uploader.dedup_store import DedupStore
from photo_uploader.exceptions import UploaderError
from photo_uploader.pipeline import JobOutcome, RunResult, UploadPipeline, format_size
from photo_uploader.scanner import iter_image_files

logger = logging.getLogger(__name__)


def _build_parser(config: UploaderConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Upload every image under the given folders to Google Photos, once."
    )
    parser.add_argument(
        "dirs",
        nargs="+",
        metavar="DIR",
        help="Root folder(s) to scan for images",
    )
    parser.add_argument(
        "-c", "--workers",
        type=int,
        default=config.workers,
        help=f"Number of concurrent uploads (default: {config.workers})",
    )
    parser.add_argument(
        "--db",
        default=config.db_path,
        help=f"SQLite database of uploaded fingerprints (default: {config.db_path})",
    )
    parser.add_argument(
        "--credentials",
        default=config.credentials_file,
        help="OAuth client secrets file (default: credentials.json)",
    )
    parser.add_argument(
        "--token",
        default=config.token_file,
        help=f"Cached OAuth token file (default: {config.token_file})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=config.request_timeout,
        help="Per-request timeout in seconds, 0 to wait forever "
             f"(default: {config.request_timeout:g})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report which files are new without uploading anything",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output and progress bars",
    )
    return parser


def _setup_logging(
    verbose: bool,
    console: Console,
    log_filename: str,
) -> None:
    """Configure dual logging: rich console + plain-text log file."""
    log_level = logging.DEBUG if verbose else logging.INFO
    plain_format = "%(asctime)s  %(levelname)-8s  %(threadName)s  %(message)s"

    root = logging.getLogger()
    root.setLevel(log_level)

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(log_level)
    root.addHandler(rich_handler)

    # no ANSI in log files
    file_handler = logging.FileHandler(log_filename, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(plain_format, datefmt="%H:%M:%S"))
    root.addHandler(file_handler)


def _print_summary(
    console: Console, result: RunResult, elapsed: float, log_filename: str, dry_run: bool
) -> None:
    """Print a rich summary panel at the end of an upload run."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if dry_run:
        table.add_row("New", f"[green]{len(result.pending)}[/green]")
    else:
        table.add_row("Uploaded", f"[green]{len(result.recorded)}[/green]")
    table.add_row("Skipped", str(len(result.skipped)))
    failed_style = "red bold" if result.failed else "green"
    table.add_row("Failed", f"[{failed_style}]{len(result.failed)}[/{failed_style}]")
    if result.total_bytes:
        table.add_row("Total data", format_size(result.total_bytes))
    table.add_row("Elapsed", f"{elapsed:.1f}s")

    panel_style = "green" if result.all_ok else "red"
    title = "Upload Complete" if result.all_ok else "Upload Complete (with errors)"
    if dry_run:
        title = "Dry Run"
    console.print()
    console.print(Panel(table, title=title, border_style=panel_style, padding=(1, 2)))

    if result.failed:
        console.print()
        console.print(Text("Failed files:", style="red bold"))
        for f in result.failed:
            console.print(f"  - {f}", style="red")
        console.print(
            "Re-run the same command to retry them; uploaded files are skipped.",
            style="dim",
        )

    console.print(f"\nFull log saved to: {log_filename}", style="dim")


def _run_pipeline(pipeline: UploadPipeline, dirs: list[str], console: Console | None) -> RunResult:
    """Feed the scanner into the pipeline, with a live counter when *console* is set."""
    if console is None:
        return pipeline.run(iter_image_files(dirs))

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )
    with progress:
        task = progress.add_task("Uploading", total=0)
        found = [0]

        def discovered():
            for path in iter_image_files(dirs):
                found[0] += 1
                progress.update(task, total=found[0])
                yield path

        def on_job_done(path: str, outcome: JobOutcome) -> None:
            progress.advance(task)

        pipeline.on_job_done = on_job_done
        return pipeline.run(discovered())


def main(argv: list[str] | None = None) -> int:
    try:
        config = UploaderConfig.from_env()
    except UploaderError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    args = _build_parser(config).parse_args(argv)

    # ── console setup ────────────────────────────────────────────────
    use_color = sys.stdout.isatty() and not args.no_color and not os.getenv("NO_COLOR")
    console = Console(force_terminal=use_color, no_color=not use_color)

    # ── logging setup ────────────────────────────────────────────────
    os.makedirs(config.log_dir, exist_ok=True)
    log_filename = os.path.join(
        config.log_dir, f"upload_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )
    _setup_logging(args.verbose, console, log_filename)
    logging.info("Log file: %s", log_filename)

    try:
        config.workers = args.workers
        config.request_timeout = args.timeout
        config.validate()
    except UploaderError as e:
        logging.error("Invalid option: %s", e)
        return 1

    # ── build collaborators ──────────────────────────────────────────
    try:
        store = DedupStore(args.db)
    except UploaderError as e:
        logging.error("Startup failed: %s", e)
        return 1

    client = None
    if not args.dry_run:
        try:
            creds = load_credentials(args.credentials, args.token)
        except UploaderError as e:
            logging.error("Startup failed: %s", e)
            store.close()
            return 1
        client = GooglePhotosClient(authorized_session(creds), timeout=config.timeout)

    pipeline = UploadPipeline(
        store,
        client,
        workers=config.workers,
        queue_size=config.queue_size,
        dry_run=args.dry_run,
    )

    def _handle_interrupt(sig, frame):  # noqa: ANN001
        if not pipeline.cancel_event.is_set():
            logging.warning("Interrupt received, finishing in-flight uploads …")
            pipeline.cancel_event.set()

    signal.signal(signal.SIGINT, _handle_interrupt)

    # ── run ──────────────────────────────────────────────────────────
    mode = "dry run" if args.dry_run else "upload"
    console.print(Panel(f"Google Photos {mode}", style="bold blue", padding=(0, 2)))
    for d in args.dirs:
        logging.info("Root  : %s", d)
    logging.info("DB    : %s (%d recorded)", store.path, store.count())
    logging.info("Workers: %d", config.workers)

    start = time.monotonic()
    try:
        result = _run_pipeline(pipeline, args.dirs, console if use_color else None)
    finally:
        store.close()
    elapsed = time.monotonic() - start

    _print_summary(console, result, elapsed, log_filename, args.dry_run)

    return 0 if result.all_ok else 1


if __name__ == "__main__":
    sys.exit(main())
