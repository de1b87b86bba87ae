"""CLI interface for coverline."""

import asyncio
import logging
from pathlib import Path
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from coverline.config import CoverlineConfig

app = typer.Typer(
    name="coverline",
    help="Structure insurance policy PDFs into policies and coverages",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    # Suppress noisy libraries
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _money(value) -> str:
    return f"${value:,.2f}" if value is not None else "-"


def _print_run(run) -> None:
    policy = run.policy
    table = Table(title="Policy", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Policy ID", str(run.policy_id))
    table.add_row("Document Type", run.classification.document_type)
    table.add_row("Policy Number", policy.policy_number or "-")
    table.add_row("Quote Number", policy.quote_number or "-")
    table.add_row("Insured", policy.insured_name or "-")
    table.add_row("Carrier", policy.carrier_name or "-")
    table.add_row("Term", f"{policy.effective_date or '?'} → {policy.expiration_date or '?'}")
    table.add_row("Total Premium", _money(policy.total_premium))
    table.add_row("Confidence", f"{run.validation.adjusted_confidence:.2f}")
    table.add_row("Needs Review", "yes" if run.needs_human_review else "no")
    console.print(table)

    if run.coverages:
        coverages = Table(title="Coverages", show_header=True, header_style="bold cyan")
        coverages.add_column("Type", style="green")
        coverages.add_column("Each Occurrence", justify="right")
        coverages.add_column("Aggregate", justify="right")
        coverages.add_column("Deductible", justify="right")
        coverages.add_column("Premium", justify="right")
        coverages.add_column("Confidence", justify="right")
        for c in run.coverages:
            coverages.add_row(
                c.coverage_type,
                _money(c.each_occurrence_limit),
                _money(c.aggregate_limit),
                _money(c.deductible),
                _money(c.premium),
                f"{c.confidence:.2f}",
            )
        console.print(coverages)
    else:
        console.print("[yellow]No coverages extracted[/yellow]")

    for issue in run.validation.errors:
        console.print(f"  [red]{issue.code}[/red] {issue.field}: {issue.message}")
    for issue in run.validation.warnings:
        console.print(f"  [yellow]{issue.code}[/yellow] {issue.field}: {issue.message}")


# ============================================================================
# Commands
# ============================================================================


@app.command()
def process(
    pdf: str = typer.Argument(..., help="Insurance PDF to structure"),
    tenant: str | None = typer.Option(None, help="Tenant UUID that owns the created records"),
    model: str = typer.Option(None, help="LLM model (e.g. anthropic/claude-sonnet-4-20250514)"),
    db: str | None = typer.Option(None, "--db", help="SQLAlchemy async database URL"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Extract a policy and its coverages from a PDF and store them."""
    from coverline.extract.llm_client import LLMClient
    from coverline.pipeline import DEFAULT_TENANT_ID, process_pdf

    _setup_logging(verbose)
    config = CoverlineConfig()
    if model:
        config.default_model = model
    if db:
        config.database_url = db

    path = Path(pdf)
    if not path.is_file():
        console.print(f"[red]Error:[/red] Not a file: {pdf}")
        raise typer.Exit(1)

    try:
        tenant_id = UUID(tenant) if tenant else DEFAULT_TENANT_ID
        config.validate_api_keys(config.default_model)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(f"[cyan]Document:[/cyan] {path.name}")
    console.print(f"[cyan]Model:[/cyan] {config.default_model}")
    console.print()

    llm = LLMClient(
        model=config.default_model,
        max_tokens=config.max_output_tokens,
        max_retries=config.max_retries,
        rpm=config.rpm,
        timeout=config.llm_timeout,
    )
    try:
        run = asyncio.run(process_pdf(path, config, tenant_id, gateway=llm))
    except (RuntimeError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if not run.succeeded:
        console.print(f"[red]Error:[/red] Extraction failed: {run.error}")
        raise typer.Exit(1)

    _print_run(run)
    console.print()
    console.print("[green]Extraction complete![/green]")
    console.print(f"  LLM calls: {llm.usage.calls}")
    console.print(f"  Total cost: ${llm.usage.cost_usd:.4f}")
    console.print(f"  Database: {config.database_url}")


@app.command()
def inspect(
    pdf: str = typer.Argument(..., help="PDF to inspect"),
    target_tokens: int = typer.Option(None, "--target-tokens", help="Preferred chunk size in tokens"),
    max_tokens: int = typer.Option(None, "--max-tokens", help="Hard chunk size limit in tokens"),
    overlap_tokens: int = typer.Option(None, "--overlap-tokens", help="Tokens repeated between chunks"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Show text quality and chunking for a PDF without calling an LLM."""
    from coverline.ingest.chunker import chunk_pages
    from coverline.ingest.pdf_extractor import PdfTextExtractor

    _setup_logging(verbose)
    config = CoverlineConfig()
    options = config.chunking_options()
    if target_tokens is not None:
        options.target_tokens = target_tokens
    if max_tokens is not None:
        options.max_tokens = max_tokens
    if overlap_tokens is not None:
        options.overlap_tokens = overlap_tokens

    path = Path(pdf)
    if not path.is_file():
        console.print(f"[red]Error:[/red] Not a file: {pdf}")
        raise typer.Exit(1)

    result = PdfTextExtractor(config.scanned_threshold).extract(path.read_bytes(), path.name)
    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)

    console.print(f"[cyan]Pages:[/cyan] {result.page_count}")
    console.print(f"[cyan]Quality:[/cyan] {result.quality_score}/100")
    if result.appears_scanned:
        console.print(
            f"[yellow]Appears scanned:[/yellow] {result.scanned_page_count} pages "
            f"({result.scanned_page_percent:.0f}%) below threshold"
        )
    elif result.is_hybrid_document:
        console.print(f"[yellow]Hybrid document:[/yellow] {result.scanned_page_count} scanned pages")

    try:
        chunks = chunk_pages(result.page_texts, options)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title=f"{len(chunks)} Chunks", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Pages")
    table.add_column("Tokens", justify="right")
    table.add_column("Section", style="green")
    table.add_column("Preview", style="dim")
    for chunk in chunks:
        pages = str(chunk.page_start) if chunk.page_start == chunk.page_end else f"{chunk.page_start}-{chunk.page_end}"
        preview = " ".join(chunk.text.split())[:60]
        table.add_row(str(chunk.index), pages, str(chunk.estimated_tokens), chunk.section_type or "-", preview)
    console.print(table)


@app.command()
def policies(
    db: str | None = typer.Option(None, "--db", help="SQLAlchemy async database URL"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of policies to show"),
) -> None:
    """List the most recently stored policies."""
    from coverline.storage.database import create_engine, create_session_factory, init_db
    from coverline.storage.repositories import PolicyRepository

    config = CoverlineConfig()
    url = db or config.database_url

    async def _load():
        engine = create_engine(url)
        try:
            await init_db(engine)
            async with create_session_factory(engine)() as session:
                repo = PolicyRepository(session)
                return await repo.list_recent(limit), await repo.count_all()
        finally:
            await engine.dispose()

    rows, total = asyncio.run(_load())
    if not rows:
        console.print("[yellow]No policies stored yet.[/yellow]")
        console.print("Run [cyan]coverline process <pdf>[/cyan] first.")
        raise typer.Exit(0)

    table = Table(title=f"Policies ({len(rows)} of {total})", show_header=True, header_style="bold cyan")
    table.add_column("Policy Number", style="green")
    table.add_column("Insured")
    table.add_column("Carrier")
    table.add_column("Term")
    table.add_column("Status")
    table.add_column("Coverages", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Review")
    for p in rows:
        table.add_row(
            p.policy_number or p.quote_number or "-",
            p.insured_name or "-",
            p.carrier_name or "-",
            f"{p.effective_date or '?'} → {p.expiration_date or '?'}",
            p.policy_status,
            str(len(p.coverages)),
            f"{p.extraction_confidence:.2f}",
            "[yellow]yes[/yellow]" if p.needs_human_review else "no",
        )
    console.print(table)


@app.command()
def info() -> None:
    """Display configuration and supported coverage types."""
    from coverline.extract.coverage.families import COVERAGE_FAMILIES

    try:
        config = CoverlineConfig()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title="coverline Configuration", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Default Model", config.default_model)
    table.add_row("Database", config.database_url)
    table.add_row("Storage Root", str(config.storage_root))
    table.add_row(
        "Chunking",
        f"target {config.target_tokens} / max {config.max_chunk_tokens} / overlap {config.overlap_tokens} tokens",
    )
    table.add_row(
        "Confidence Weights",
        f"classification {config.classification_weight:.2f}, policy {config.policy_weight:.2f}, "
        f"coverage {config.coverage_weight:.2f}",
    )
    table.add_row("Review Threshold", f"{config.review_threshold:.2f}")
    table.add_row(
        "Scanned Documents",
        f"{'blocked' if config.block_scanned_documents else 'flagged'} (page score < {config.scanned_threshold})",
    )
    table.add_row("Coverage Concurrency", str(config.coverage_concurrency))

    coverage_types = sorted(t for family in COVERAGE_FAMILIES for t in family.coverage_types)
    table.add_row("Coverage Types", f"{len(coverage_types)} specialized + generic fallback")
    console.print(table)


if __name__ == "__main__":
    app()
