"""Console rendering for ctxopt commands."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from ctxopt.models.context import CodebaseAnalysis, OptimizationResult


def render_optimization(console: Console, result: OptimizationResult, show_content: bool = False) -> None:
    """Render an optimization result summary."""
    partition = result.partition

    console.print(f"[bold]Strategy:[/bold] {result.strategy}")
    console.print(
        f"  Tokens: {result.tokens_used:,} used of {result.original_tokens:,} original"
    )
    console.print(f"  Cost saved: [green]{result.cost_saved_pct:.1f}%[/green]")
    console.print(f"  Quality: {result.quality_score:.2f}")
    console.print(
        f"  Units: {len(partition.full)} full, {len(partition.summarized)} summarized, "
        f"{len(partition.excluded)} excluded (of {partition.total_units})"
    )

    if result.chunks:
        table = Table(title="Chunks")
        table.add_column("Source", style="cyan")
        table.add_column("Form")
        table.add_column("Tokens", justify="right")
        table.add_column("Relevance", justify="right")
        for chunk in result.chunks:
            table.add_row(
                chunk.source,
                chunk.form.value,
                str(chunk.tokens),
                f"{chunk.relevance:.2f}",
            )
        console.print(table)

    if partition.excluded:
        console.print("[dim]Excluded:[/dim]")
        for path in partition.excluded:
            console.print(f"  [dim]{path}[/dim]")

    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    if show_content:
        for message in result.messages:
            console.print(f"\n[bold]{message.role}[/bold]")
            console.print(message.content, markup=False, highlight=False)


def render_analysis(console: Console, analysis: CodebaseAnalysis) -> None:
    """Render tier breakdown of a candidate pool."""
    console.print(
        f"[bold]{analysis.total_units} units, {analysis.total_tokens:,} tokens[/bold]"
    )

    table = Table(title="Tiers")
    table.add_column("Tier")
    table.add_column("Units", justify="right")
    table.add_column("Tokens", justify="right")
    counts = analysis.tier_counts()
    tokens = analysis.tier_tokens()
    for tier, count in counts.items():
        table.add_row(tier, str(count), f"{tokens[tier]:,}")
    console.print(table)

    if analysis.entry_points:
        console.print("[bold]Entry points:[/bold]")
        for path in analysis.entry_points:
            console.print(f"  {path}")

    if analysis.dependencies:
        console.print("[bold]Dependencies:[/bold]")
        for path, deps in analysis.dependencies.items():
            console.print(f"  {path} -> {', '.join(deps)}")


def render_strategies(console: Console, strategies: list[str], default: str) -> None:
    for name in strategies:
        marker = " [green](default)[/green]" if name == default else ""
        console.print(f"  {name}{marker}")
