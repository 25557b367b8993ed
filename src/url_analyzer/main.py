"""CLI entry point."""

import asyncio
import logging

import click

from .config import Config
from .errors import AnalyzerError
from .notify.email import default_subject, format_email
from .pipeline import AnalysisContext, AnalysisOptions, AnalysisPipeline
from .storage.models import AnalysisRecord, AnalysisStatus, ContentType, SummaryLength

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

LENGTH_CHOICES = click.Choice([s.value for s in SummaryLength])


def _context(config: str) -> AnalysisContext:
    return AnalysisContext.from_config(Config.from_yaml(config))


def _echo_record(record: AnalysisRecord) -> None:
    click.echo(f"[#{record.id}] {record.title or record.url}")
    click.echo(f"  URL:     {record.url}")
    click.echo(f"  Status:  {record.status.value}")
    if record.error_message:
        click.echo(f"  Error:   {record.error_message}")
    if record.content_type:
        click.echo(f"  Type:    {record.content_type.value}")
    if record.word_count is not None:
        click.echo(f"  Words:   {record.word_count}")
    if record.summary:
        click.echo(f"  Summary: {record.summary}")


@click.group()
def cli() -> None:
    """URL Analyzer - Fetch, summarize, and tag web pages."""
    pass


@cli.command()
@click.argument("url")
@click.option("--config", "-c", default="config.yaml", help="Config file path")
@click.option("--summary-length", "-l", type=LENGTH_CHOICES, default="medium")
@click.option("--tags/--no-tags", default=True, help="Store generated tags")
@click.option("--email", help="Email the analysis to this address")
@click.option("--full-content", is_flag=True, help="Include a content excerpt in the email")
def analyze(
    url: str,
    config: str,
    summary_length: str,
    tags: bool,
    email: str | None,
    full_content: bool,
) -> None:
    """Analyze a single URL."""
    ctx = _context(config)
    options = AnalysisOptions(
        generate_tags=tags, summary_length=SummaryLength(summary_length)
    )

    try:
        record = asyncio.run(AnalysisPipeline(ctx).analyze(url, options))
    except AnalyzerError as e:
        raise click.ClickException(f"Analysis failed: {e}")

    _echo_record(record)
    tag_names = [t.tag for t in ctx.db.get_tags(record.id)]
    if tag_names:
        click.echo(f"  Tags:    {', '.join(tag_names)}")

    if email:
        if ctx.notifier is None:
            raise click.ClickException("Email functionality not configured (set RESEND_API_KEY)")
        html = format_email(record, tag_names, include_full_content=full_content)
        result = asyncio.run(ctx.notifier.send(email, default_subject(record), html))
        if not result.success:
            raise click.ClickException(f"Email failed: {result.error}")
        click.echo(f"Emailed to {email} (id {result.id})")


@cli.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--config", "-c", default="config.yaml", help="Config file path")
@click.option("--summary-length", "-l", type=LENGTH_CHOICES, default="medium")
def batch(urls: tuple[str, ...], config: str, summary_length: str) -> None:
    """Analyze up to ten URLs in sequence."""
    ctx = _context(config)
    options = AnalysisOptions(
        generate_tags=True, summary_length=SummaryLength(summary_length)
    )

    try:
        items = asyncio.run(AnalysisPipeline(ctx).analyze_batch(list(urls), options))
    except AnalyzerError as e:
        raise click.ClickException(str(e))

    for i, item in enumerate(items):
        status = "OK" if item.success else f"FAILED: {item.error}"
        click.echo(f"  [{i+1}/{len(items)}] {item.url[:60]} -> {status}")


@cli.command()
@click.option("--config", "-c", default="config.yaml", help="Config file path")
@click.option("--status", type=click.Choice([s.value for s in AnalysisStatus]))
@click.option("--content-type", type=click.Choice([c.value for c in ContentType]))
@click.option("--limit", "-n", default=20, help="Max results")
def summaries(config: str, status: str | None, content_type: str | None, limit: int) -> None:
    """List stored analyses, newest first."""
    ctx = _context(config)
    records, total = ctx.db.list_records(
        per_page=limit,
        status=AnalysisStatus(status) if status else None,
        content_type=ContentType(content_type) if content_type else None,
    )

    if not records:
        click.echo("No analyses found.")
        return

    click.echo(f"Showing {len(records)} of {total} analyses:\n")
    for record in records:
        _echo_record(record)
        click.echo()


@cli.command()
@click.argument("query")
@click.option("--config", "-c", default="config.yaml", help="Config file path")
@click.option("--limit", "-n", default=10, help="Max results")
def search(query: str, config: str, limit: int) -> None:
    """Search completed analyses for a phrase."""
    ctx = _context(config)
    results, _ = ctx.db.list_records(
        per_page=limit, status=AnalysisStatus.COMPLETED, search=query
    )

    if not results:
        click.echo("No results found.")
        return

    click.echo(f"Found {len(results)} results:\n")
    for record in results:
        click.echo(f"[#{record.id}] {record.title or record.url}")
        click.echo(f"  {record.url}")
        if record.summary:
            click.echo(f"  Summary: {record.summary[:100]}...")
        click.echo()


@cli.command()
@click.argument("analysis_id", type=int)
@click.option("--config", "-c", default="config.yaml", help="Config file path")
def show(analysis_id: int, config: str) -> None:
    """Show one analysis with its tags."""
    ctx = _context(config)
    record = ctx.db.get_by_id(analysis_id)
    if not record:
        raise click.ClickException(f"Analysis {analysis_id} not found")

    _echo_record(record)
    tags = ctx.db.get_tags(analysis_id)
    if tags:
        click.echo("  Tags:    " + ", ".join(f"{t.tag} ({t.confidence})" for t in tags))


@cli.command()
@click.argument("analysis_id", type=int)
@click.option("--config", "-c", default="config.yaml", help="Config file path")
def delete(analysis_id: int, config: str) -> None:
    """Delete an analysis so its URL can be analyzed again."""
    ctx = _context(config)
    if not ctx.db.delete_record(analysis_id):
        raise click.ClickException(f"Analysis {analysis_id} not found")
    click.echo(f"Deleted analysis {analysis_id}")


@cli.command()
@click.option("--config", "-c", default="config.yaml", help="Config file path")
@click.option("--min-confidence", default=0.0, type=float)
@click.option("--limit", "-n", default=50, help="Max tags")
def tags(config: str, min_confidence: float, limit: int) -> None:
    """List tags with counts."""
    ctx = _context(config)
    counts = ctx.db.get_tag_counts(min_confidence=min_confidence, limit=limit)

    if not counts:
        click.echo("No tags found.")
        return

    click.echo("Tags:\n")
    for name, count in counts:
        click.echo(f"  {name}: {count} analyses")


@cli.command()
@click.option("--config", "-c", default="config.yaml", help="Config file path")
def stats(config: str) -> None:
    """Show database statistics."""
    ctx = _context(config)
    s = ctx.db.get_stats()

    click.echo("Database Statistics:")
    click.echo(f"  Total:      {s['total']}")
    click.echo(f"  Completed:  {s['completed']}")
    click.echo(f"  Pending:    {s['pending']}")
    click.echo(f"  Failed:     {s['failed']}")
    click.echo(f"  Tagged:     {s['tagged']}")


@cli.command()
@click.option("--config", "-c", default="config.yaml", help="Config file path")
@click.option("--host", default="127.0.0.1", help="Host to bind")
@click.option("--port", "-p", default=5001, type=int, help="Port to bind")
@click.option("--debug/--no-debug", default=False, help="Enable debug mode")
def web(config: str, host: str, port: int, debug: bool) -> None:
    """Start the HTTP API and MCP endpoint."""
    from .web.app import create_app

    app = create_app(config)
    click.echo(f"Starting URL analyzer at http://{host}:{port}")
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    cli()
