"""
Page Harvester - CLI Entry Point

Runs an extraction plan from a JSON file and exports the records.
"""

import asyncio
import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from harvester.config import config
from harvester.controller import CrawlController
from harvester.errors import ConfigurationError
from harvester.fetchers.http_fetcher import FetchClient
from harvester.fetchers.relay import HttpxRelay
from harvester.models import ExtractionPlan, record_columns
from harvester.pipeline.exporters import create_exporter
from harvester.state import CrawlEvent, EventKind, RunHistory, RunPhase, RunSnapshot


console = Console()

EXAMPLE_PLAN = """\
{
  "address": "https://quotes.toscrape.com/page/1/",
  "selectors": [
    {"name": "quote", "kind": "structural", "expression": "div.quote span.text", "multiple": true},
    {"name": "author", "kind": "structural", "expression": "small.author", "multiple": true}
  ],
  "pagination": {"enabled": true, "mode": "next-control", "expression": "li.next a", "max_pages": 3},
  "rate_limit": {"request_delay_ms": 1000, "timeout_ms": 30000, "retries": 3}
}"""


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with rich handler."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def load_plan(filepath: str) -> ExtractionPlan:
    """Load an extraction plan from a JSON file."""
    path = Path(filepath)
    if not path.exists():
        console.print(f"[red]Plan file not found: {filepath}[/red]")
        sys.exit(1)

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            console.print(f"[red]Plan file is not valid JSON: {e}[/red]")
            sys.exit(1)

    return ExtractionPlan.from_dict(data)


def render_preview(snapshot: RunSnapshot, limit: int) -> Optional[Table]:
    """Build a table with the first records of a run."""
    if limit <= 0 or not snapshot.records:
        return None

    records = list(snapshot.records)
    table = Table(title=f"First {min(limit, len(records))} of {len(records)} records")
    columns = record_columns(records)
    for column in columns:
        table.add_column(column, overflow="fold", max_width=60)

    for record in records[:limit]:
        cells = []
        for column in columns:
            value = record.get(column)
            if value is None:
                cells.append("[dim]-[/dim]")
            elif isinstance(value, list):
                cells.append(json.dumps(value, ensure_ascii=False))
            else:
                cells.append(value)
        table.add_row(*cells)

    return table


async def main_async(args: argparse.Namespace) -> int:
    """Async main function. Returns the process exit code."""
    setup_logging(args.log_level)

    try:
        plan = load_plan(args.plan)
        if args.url:
            plan = plan.model_copy(update={"address": args.url})
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    relay_url = args.relay or config.fetch.relay_url
    controller = CrawlController(
        fetch_client=FetchClient(relay=HttpxRelay(relay_url=relay_url)),
        history=RunHistory(),
    )

    console.print(f"\n[bold blue]Page Harvester[/bold blue]")
    console.print(f"Address: {plan.address}")
    console.print(f"Selectors: {', '.join(s.name for s in plan.selectors) or '-'}")
    console.print(f"Relay: {relay_url or 'direct'}")
    console.print(f"Export format: {args.format}")
    console.print()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, controller.stop)
    except (NotImplementedError, RuntimeError):
        pass

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed} pages"),
        console=console,
    ) as progress:
        task = progress.add_task("Harvesting...", total=None)

        def on_event(event: CrawlEvent) -> None:
            snap = event.snapshot
            description = f"{snap.phase.value}: {snap.progress.record_count} records"
            progress.update(
                task,
                completed=snap.progress.current,
                total=snap.progress.total,
                description=description,
            )
            if event.kind is EventKind.PHASE and snap.phase is RunPhase.PAUSED:
                console.print("[yellow]Paused[/yellow]")

        controller.subscribe(on_event)

        try:
            snapshot = await controller.run(plan)
        except ConfigurationError as e:
            console.print(f"[red]{e}[/red]")
            return 1

    try:
        loop.remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError):
        pass

    if snapshot.phase is RunPhase.FAILED:
        console.print(f"\n[red]Run failed: {snapshot.error}[/red]")
    elif snapshot.phase is RunPhase.IDLE:
        console.print("\n[yellow]Run stopped before completion[/yellow]")
    else:
        console.print("\n[bold]Harvest Complete![/bold]")

    preview = render_preview(snapshot, args.preview)
    if preview is not None:
        console.print(preview)

    if snapshot.records:
        export_path = await create_exporter(args.format).export(
            snapshot.records,
            filename=args.output,
        )
        console.print(f"\n[green]Records exported to: {export_path}[/green]")

    console.print("\n[bold]Final Statistics:[/bold]")
    for key, value in controller.get_stats()["progress"].items():
        console.print(f"  {key}: {value}")

    return 1 if snapshot.phase is RunPhase.FAILED else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Page Harvester - plan-driven structured extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  %(prog)s --plan plan.json
  %(prog)s --plan plan.json --url https://example.com/page/1 --format csv
  %(prog)s --plan plan.json --relay http://localhost:8000/proxy

Plan file example:
{EXAMPLE_PLAN}
        """,
    )

    parser.add_argument(
        "--plan", "-p",
        required=True,
        help="JSON file describing the extraction plan",
    )
    parser.add_argument(
        "--url", "-u",
        help="Override the plan's start address",
    )
    parser.add_argument(
        "--relay",
        help="Relay endpoint called as <relay>?url=<address> (default: direct)",
    )

    # Output options
    parser.add_argument(
        "--format",
        choices=["json", "jsonl", "csv", "sqlite"],
        default="json",
        help="Export format (default: json)",
    )
    parser.add_argument(
        "--output", "-o",
        help="Output filename (auto-generated if not specified)",
    )
    parser.add_argument(
        "--preview",
        type=int,
        default=10,
        help="Number of records to show after the run (default: 10, 0 = none)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.log_level,
        help="Logging level (default: INFO)",
    )

    args = parser.parse_args()

    sys.exit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    main()
