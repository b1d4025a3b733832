#!/usr/bin/env python3
"""Main entry point for Newsletter Studio."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import Database, init_database
from newsletter_studio.infrastructure.error_handling import NewsletterStudioError
from newsletter_studio.infrastructure.logging import setup_logging, get_logger
from newsletter_studio.models.newsletter import NewsletterRecord, NewsletterStatus
from newsletter_studio.services.generation import GenerationService
from newsletter_studio.services.spreadsheet_import import SpreadsheetImporter
from newsletter_studio.services.status_poller import StatusPoller

console = Console()
logger = get_logger(__name__)

_STATUS_STYLES = {
    NewsletterStatus.DRAFT.value: "white",
    NewsletterStatus.GENERATING.value: "yellow",
    NewsletterStatus.FINAL.value: "green",
    NewsletterStatus.ERROR.value: "red",
}


def _print_newsletter(record: NewsletterRecord) -> None:
    style = _STATUS_STYLES.get(record.status, "white")
    table = Table(title=f"Newsletter {record.id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Title", record.title)
    table.add_row("Status", f"[{style}]{record.status}[/{style}]")
    if record.generation_id:
        table.add_row("Generation", record.generation_id)
    if record.error_message:
        table.add_row("Error", f"[red]{record.error_message}[/red]")
    if record.html_content:
        table.add_row("HTML", f"{len(record.html_content)} characters")
    if record.text_content:
        table.add_row("Text", f"{len(record.text_content)} characters")
    console.print(table)


class StudioCLI:
    """Command-line interface for Newsletter Studio."""

    def __init__(self, config: ApplicationConfig):
        self.config = config
        self.database: Optional[Database] = None
        self.service: Optional[GenerationService] = None

    async def __aenter__(self) -> "StudioCLI":
        self.database = await init_database(self.config)
        self.service = GenerationService(self.database, self.config)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.database is not None:
            await self.database.close()
        return False

    async def _watch(self, newsletter_id: str) -> NewsletterRecord:
        with console.status("[bold blue]Waiting for generation to finish..."):
            async with StatusPoller(self.database, newsletter_id, interval=self.config.poll_interval) as poller:
                return await poller.wait()

    async def _run_and_watch(self, newsletter_id: str, generation_id: str) -> NewsletterRecord:
        """Run the workflow while polling; the run is reaped before returning.

        The poller may settle first (a cancel from another process), in
        which case the still-running workflow is cancelled and awaited so
        it never outlives the database engine.
        """
        run_task = asyncio.create_task(self.service.run_generation(newsletter_id, generation_id))
        watch_task = asyncio.create_task(self._watch(newsletter_id))
        try:
            done, _ = await asyncio.wait({run_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)
            if run_task in done:
                run_task.result()
                return await watch_task
            return watch_task.result()
        finally:
            for task in (run_task, watch_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(run_task, watch_task, return_exceptions=True)

    async def generate(self, newsletter_id: str, wait: bool = False) -> bool:
        """Generate a newsletter.

        Without ``--wait`` the workflow runs to completion in this process.
        With it, the workflow runs in the background while the status is
        polled, so results delivered later through the callback endpoint
        are picked up too.
        """
        if wait:
            generation_id = await self.service.request_generation(newsletter_id)
            console.print(f"[dim]Generation {generation_id} started[/dim]")
            record = await self._run_and_watch(newsletter_id, generation_id)
        else:
            with console.status("[bold green]Generating newsletter..."):
                await self.service.generate(newsletter_id)
            record = await self.service.get_newsletter(newsletter_id)

        if record.status == NewsletterStatus.GENERATING.value:
            console.print(Panel.fit(
                "[yellow]The backend accepted the job and will deliver the result "
                "through the callback endpoint.[/yellow]\n"
                f"[bold]newsletter-studio watch {newsletter_id}[/bold]",
                title="Pending",
                border_style="yellow"
            ))
        _print_newsletter(record)
        return record.status in (NewsletterStatus.FINAL.value, NewsletterStatus.GENERATING.value)

    async def cancel(self, newsletter_id: str) -> bool:
        record = await self.service.cancel(newsletter_id)
        console.print("[yellow]Generation cancelled.[/yellow]")
        _print_newsletter(record)
        return True

    async def status(self, newsletter_id: str) -> bool:
        _print_newsletter(await self.service.get_newsletter(newsletter_id))
        return True

    async def watch(self, newsletter_id: str) -> bool:
        record = await self.service.get_newsletter(newsletter_id)
        if record.is_generating:
            record = await self._watch(newsletter_id)
        _print_newsletter(record)
        return record.status != NewsletterStatus.ERROR.value

    async def import_file(self, spreadsheet_id: str, path: Path) -> bool:
        importer = SpreadsheetImporter(self.database, self.config.type_sample_size)
        with console.status(f"[bold blue]Importing {path.name}..."):
            summary = await importer.import_file(spreadsheet_id, path.name, path.read_bytes())

        table = Table(title=f"Imported {summary.row_count} rows")
        table.add_column("#", style="dim")
        table.add_column("Column", style="cyan")
        table.add_column("Type", style="green")
        for column in summary.columns:
            table.add_row(str(column.column_order), column.name, column.column_type.value)
        console.print(table)
        return True


async def serve(config: ApplicationConfig) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from newsletter_studio.api import create_app

    server = uvicorn.Server(uvicorn.Config(
        create_app(config=config),
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    ))
    await server.serve()


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Newsletter Studio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  newsletter-studio init-db
  newsletter-studio serve
  newsletter-studio generate <newsletter-id> --wait
  newsletter-studio import <spreadsheet-id> contacts.csv
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("serve", help="Run the HTTP API")

    generate_parser = subparsers.add_parser("generate", help="Generate a newsletter")
    generate_parser.add_argument("newsletter_id", help="Newsletter ID")
    generate_parser.add_argument(
        "--wait",
        action="store_true",
        help="Poll the status until generation settles"
    )

    for name, help_text in (
        ("cancel", "Cancel a running generation"),
        ("status", "Show a newsletter's status"),
        ("watch", "Poll a generating newsletter until it settles"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument("newsletter_id", help="Newsletter ID")

    import_parser = subparsers.add_parser("import", help="Import a CSV or Excel file into a spreadsheet")
    import_parser.add_argument("spreadsheet_id", help="Spreadsheet ID")
    import_parser.add_argument("file", type=Path, help="CSV, XLSX or XLS file")

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser


async def main():
    """Main application entry point."""
    parser = create_parser()
    args = parser.parse_args()

    config = ApplicationConfig()
    setup_logging(level="DEBUG" if args.verbose else config.log_level, format_type=config.log_format)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "serve":
            await serve(config)
            return

        if args.command == "init-db":
            database = await init_database(config)
            await database.close()
            console.print(f"[bold green]Database ready:[/bold green] {config.database_url}")
            return

        async with StudioCLI(config) as cli:
            if args.command == "generate":
                success = await cli.generate(args.newsletter_id, wait=args.wait)
            elif args.command == "cancel":
                success = await cli.cancel(args.newsletter_id)
            elif args.command == "status":
                success = await cli.status(args.newsletter_id)
            elif args.command == "watch":
                success = await cli.watch(args.newsletter_id)
            else:
                success = await cli.import_file(args.spreadsheet_id, args.file)
        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except NewsletterStudioError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        sys.exit(1)
    except Exception as e:
        logger.error("Application error", error=str(e), exc_info=True)
        console.print(f"[bold red]Unexpected error:[/bold red] {e}")
        sys.exit(1)


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
