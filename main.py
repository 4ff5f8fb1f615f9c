# main.py
"""Command-line entry point for converting and validating stories.

Commands:
    convert   Convert a classic story (JSON file or portal item) into a graph.
    validate  Run the structural validator over an existing graph JSON file.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.table import Table

from core.conversion_service import conversion_service
from core.exceptions import ConversionCancelledError, ConverterCoreError
from core.http_client_service import HTTPClientService, MediaDownloader, PortalClient
from core.logging_config import setup_converter_logging
from core.structural_validator import format_report, structural_validator
from core.trace import TraceRecorder
from models.conversion_models import ConversionOptions, Diagnostics, ProgressEvent, ProgressStage
from models.graph_models import Graph
from utils.file_io import read_json_file, write_text_file, write_yaml_file

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storygraph",
        description="Convert classic story JSON into a node/resource/action graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    convert_parser = subparsers.add_parser("convert", help="Convert a classic story")
    source = convert_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("input", nargs="?", help="Path to a classic story JSON file")
    source.add_argument("--item-id", help="Fetch the classic story from the portal by item id")
    convert_parser.add_argument(
        "--theme",
        choices=("auto", "summit", "obsidian"),
        default=None,
        help="Target theme (default: DEFAULT_THEME_ID)",
    )
    convert_parser.add_argument("--output", "-o", help="Write the graph JSON here (default: stdout)")
    convert_parser.add_argument("--report", help="Write diagnostics as YAML here")
    convert_parser.add_argument("--download-media", metavar="DIR", help="Download remote media into DIR")
    convert_parser.add_argument("--no-enrich", action="store_true", help="Skip webmap enrichment")
    convert_parser.add_argument("--trace", action="store_true", help="Include a step trace in the report")
    convert_parser.add_argument(
        "--fail-on-warning",
        action="store_true",
        help="Exit non-zero when validation reports warnings",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a graph JSON file")
    validate_parser.add_argument("graph", help="Path to a graph JSON file")
    validate_parser.add_argument(
        "--fail-on-warning",
        action="store_true",
        help="Exit non-zero when validation reports warnings",
    )
    return parser


def _log_progress(event: ProgressEvent) -> None:
    logger.info(event.message, stage=event.stage.value, current=event.current, total=event.total)


def _summary_table(diagnostics: Diagnostics, graph: Graph) -> Table:
    table = Table(title=f"Converted {diagnostics.format}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Nodes", str(len(graph.nodes)))
    table.add_row("Resources", str(len(graph.resources)))
    table.add_row("Actions", str(len(graph.actions)))
    table.add_row("Errors", str(len(diagnostics.errors)))
    table.add_row("Warnings", str(len(diagnostics.warnings)))
    table.add_row("Notes", str(len(diagnostics.notes)))
    table.add_row("Transferred media", str(sum(1 for o in diagnostics.transfers.values() if o.transferred)))
    return table


def _exit_code(errors: list[str], warnings: list[str], fail_on_warning: bool) -> int:
    if errors or (fail_on_warning and warnings):
        return 1
    return 0


async def command_convert(args: argparse.Namespace, console: Console) -> int:
    http_client: HTTPClientService | None = None
    needs_portal = bool(args.item_id) or not args.no_enrich
    if needs_portal or args.download_media:
        http_client = HTTPClientService()
    try:
        portal = PortalClient(http_client) if http_client is not None and needs_portal else None
        if args.item_id and portal is not None:
            _log_progress(ProgressEvent(stage=ProgressStage.FETCH, message=f"Fetching classic item {args.item_id}"))
            document: Any = await portal.fetch_classic_document(args.item_id)
        else:
            document = read_json_file(args.input)

        options = ConversionOptions(
            theme_id=args.theme,
            progress=_log_progress,
            classic_item_id=args.item_id,
            enrich_maps=False if args.no_enrich else None,
            enrich_scenes=False if args.no_enrich else None,
            item_data_fetcher=portal.fetch_webmap_data if portal is not None and not args.no_enrich else None,
            uploader=MediaDownloader(http_client, args.download_media)
            if http_client is not None and args.download_media
            else None,
            trace=TraceRecorder() if args.trace else None,
        )
        result = await conversion_service.convert(document, options)
    finally:
        if http_client is not None:
            await http_client.aclose()

    graph_json = result.graph.to_json()
    if args.output:
        write_text_file(args.output, graph_json + "\n")
        logger.info("Wrote graph", path=str(Path(args.output)))
    else:
        console.print_json(graph_json)

    diagnostics = result.diagnostics
    if args.report:
        write_yaml_file(args.report, diagnostics.model_dump(mode="json", exclude_none=True))
        logger.info("Wrote diagnostics", path=str(Path(args.report)))

    err_console = Console(stderr=True)
    err_console.print(_summary_table(diagnostics, result.graph))
    for message in diagnostics.errors:
        err_console.print(f"[bold red]error[/bold red] {message}")
    for message in diagnostics.warnings:
        err_console.print(f"[yellow]warning[/yellow] {message}")
    return _exit_code(diagnostics.errors, diagnostics.warnings, args.fail_on_warning)


def command_validate(args: argparse.Namespace, console: Console) -> int:
    payload = read_json_file(args.graph)
    report = structural_validator.validate(payload)
    console.print(format_report(report), markup=False)
    return _exit_code(report.errors, report.warnings, args.fail_on_warning)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_converter_logging()
    console = Console()

    try:
        if args.command == "convert":
            return asyncio.run(command_convert(args, console))
        return command_validate(args, console)
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130
    except ConversionCancelledError:
        logger.info("Conversion cancelled")
        return 130
    except ConverterCoreError as e:
        logger.error("Conversion failed", error=str(e), error_type=type(e).__name__)
        return 2
    except (OSError, ValueError) as e:
        logger.error("Could not read input", error=str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
