"""
FeedEnricher command line interface.

Usage:
    feedenricher --help                       # Show all commands
    feedenricher parse URL                    # Enrich every item of a feed
    feedenricher parse URL --json -o out.json # Write records as JSON
    feedenricher extract URL [--fallback]     # Run article extraction on one page
    feedenricher sanitize [FILE]              # Sanitize HTML from a file or stdin
    feedenricher check-config                 # Show effective configuration
"""

import sys
import json
import asyncio
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .config.settings import FeedEnricherSettings, get_settings
from .ingestion.content_cleaner import sanitize_html
from .processing.article_extractor import ArticleExtractor
from .processing.http import create_session
from .processing.pipeline import EnrichmentPipeline
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedEnricherError, get_user_friendly_message, handle_exception

console = Console(stderr=True)
logger = get_logger_for_component("cli")


def _with_overrides(settings: FeedEnricherSettings, **processing) -> FeedEnricherSettings:
    """Copy of ``settings`` with processing options replaced."""
    updates = {k: v for k, v in processing.items() if v is not None}
    if not updates:
        return settings
    return settings.model_copy(
        update={"processing": settings.processing.model_copy(update=updates)}
    )


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """FeedEnricher - concurrent syndication feed enrichment."""
    ctx.ensure_object(dict)

    try:
        settings = get_settings()
    except FeedEnricherError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    configure_application_logging(
        settings.logging, level="DEBUG" if debug else settings.get_effective_log_level()
    )
    ctx.obj['settings'] = settings

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument('url')
@click.option('--json', 'as_json', is_flag=True, help='Print records as JSON')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), help='Write JSON records to a file')
@click.option('--concurrency', type=click.IntRange(1, 100), help='Maximum concurrent article fetches')
@click.option('--no-extended', is_flag=True, help='Do not fetch linked article pages')
@click.pass_context
def parse(ctx, url, as_json, output, concurrency, no_extended):
    """Enrich every item of the feed at URL."""
    settings = _with_overrides(
        ctx.obj['settings'],
        max_concurrent_fetches=concurrency,
        fetch_extended=False if no_extended else None,
    )

    try:
        result = asyncio.run(EnrichmentPipeline(settings).run_detailed(url))
    except Exception as e:
        error = handle_exception(e, logger, "feed enrichment")
        console.print(f"[bold red]❌ {get_user_friendly_message(error)}[/bold red]")
        sys.exit(1)

    payload = [record.to_dict() for record in result.records]

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        console.print(f"[bold green]✅ Wrote {len(payload)} records to {output}[/bold green]")

    if as_json:
        click.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    table = Table(title=f"{result.feed_title or url} ({result.total_items} items)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Id", style="cyan", overflow="fold", max_width=24)
    table.add_column("Title", style="bold")
    table.add_column("Extended", justify="right")
    table.add_column("Image", justify="center")

    for index, record in enumerate(result.records, 1):
        table.add_row(
            str(index),
            record.id,
            record.item_title or "(untitled)",
            str(len(record.item_extended_body)),
            "✅" if record.item_image else "-",
        )

    console.print(table)

    counts = result.outcome_counts
    metrics = result.efficiency_metrics
    console.print(
        f"Enriched: {counts['enriched']}  Failed: {counts['failed']}  "
        f"No link: {counts['no_link']}  Time: {result.processing_time_seconds:.2f}s"
    )
    console.print(
        f"Success rate: {metrics['enrichment_success_rate']:.1f}%  "
        f"Throughput: {metrics['items_per_second']:.1f} items/s"
    )


@cli.command()
@click.argument('url')
@click.option('--fallback', is_flag=True, help='Use the largest <article> element instead of boilerplate removal')
@click.pass_context
def extract(ctx, url, fallback):
    """Extract the main article of a single page."""
    settings = ctx.obj['settings']

    async def run_extract():
        extractor = ArticleExtractor(settings)
        async with create_session(settings) as session:
            if fallback:
                return await extractor.extract_from_markup(url, session), ""
            content = await extractor.enrich(url, session)
            return sanitize_html(content.main_text), content.top_image

    try:
        body, image = asyncio.run(run_extract())
    except FeedEnricherError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    if image:
        console.print(f"🖼  Top image: {image}")
    click.echo(body)


@cli.command()
@click.argument('source', type=click.File('r', encoding='utf-8'), default='-')
def sanitize(source):
    """Sanitize HTML read from SOURCE (default: stdin)."""
    click.echo(sanitize_html(source.read()))


@cli.command()
@click.pass_context
def check_config(ctx):
    """Show the effective configuration."""
    settings = ctx.obj['settings']

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for section in ("processing", "limits", "logging"):
        values = getattr(settings, section).model_dump(mode="json")
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))

    table.add_row("user_agent", settings.get_user_agent())
    console.print(table)


def main(argv: Optional[list] = None) -> None:
    try:
        cli(args=argv)
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Interrupted by user[/yellow]")
        sys.exit(130)
