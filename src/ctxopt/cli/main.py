"""ctxopt command-line interface."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ctxopt.config.loader import load_config
from ctxopt.config.schema import CtxoptConfig
from ctxopt.context import ContextOptimizer, StrategyRegistry, UnknownStrategyError
from ctxopt.models.context import OptimizeRequest
from ctxopt.sources import load_units
from ctxopt.ui import console as ui_console

app = typer.Typer(
    name="ctxopt",
    help="Fit source files and documents into an LLM token budget",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a ctxopt.toml config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    try:
        config = load_config(config_path)
    except FileNotFoundError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = config


def _build_optimizer(config: CtxoptConfig, strategy: Optional[str]) -> ContextOptimizer:
    optimizer_config = config.optimizer
    if strategy:
        optimizer_config = optimizer_config.model_copy(update={"strategy": strategy})
    try:
        return ContextOptimizer(optimizer_config)
    except UnknownStrategyError as exc:
        raise typer.BadParameter(str(exc), param_hint="--strategy") from exc


def _load(path: Path, config: CtxoptConfig, include: list[str], exclude: list[str]):
    try:
        return load_units(path, include=include, exclude=exclude, config=config.sources)
    except FileNotFoundError as exc:
        raise typer.BadParameter(str(exc), param_hint="PATH") from exc


@app.command("optimize")
def optimize(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Directory or file to build context from"),
    query: str = typer.Option("", "--query", "-q", help="Task or question the context is for"),
    budget: Optional[int] = typer.Option(None, "--budget", "-b", help="Token budget"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="Allocation strategy"),
    include: Optional[list[str]] = typer.Option(None, "--include", "-i", help="Glob of files to consider (repeatable)"),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", "-x", help="Glob of files to skip (repeatable)"),
    preserve: Optional[list[str]] = typer.Option(None, "--preserve", "-p", help="Path to keep as critical (repeatable)"),
    extra_context: str = typer.Option("", "--extra", help="Extra leading context"),
    show_content: bool = typer.Option(False, "--show", help="Print assembled messages"),
    as_json: bool = typer.Option(False, "--json", help="Emit the result as JSON"),
) -> None:
    """Allocate the token budget over the files under PATH."""
    config: CtxoptConfig = ctx.obj
    optimizer = _build_optimizer(config, strategy)
    units = _load(path, config, include or [], exclude or [])

    request = OptimizeRequest(
        query=query,
        units=units,
        preserve_units=preserve or [],
        extra_context=extra_context,
        target_tokens=budget,
    )
    result = asyncio.run(optimizer.optimize(request))

    if as_json:
        console.print_json(data=result.to_dict())
        return
    ui_console.render_optimization(console, result, show_content=show_content)


@app.command("analyze")
def analyze(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Directory or file to analyze"),
    query: str = typer.Option("", "--query", "-q", help="Task or question for tiering"),
    include: Optional[list[str]] = typer.Option(None, "--include", "-i", help="Glob of files to consider (repeatable)"),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", "-x", help="Glob of files to skip (repeatable)"),
    preserve: Optional[list[str]] = typer.Option(None, "--preserve", "-p", help="Path to keep as critical (repeatable)"),
) -> None:
    """Show how files under PATH would be tiered."""
    config: CtxoptConfig = ctx.obj
    optimizer = _build_optimizer(config, None)
    units = _load(path, config, include or [], exclude or [])

    analysis = optimizer.analyze(units, query=query, preserve_units=preserve or [])
    ui_console.render_analysis(console, analysis)


@app.command("strategies")
def strategies(ctx: typer.Context) -> None:
    """List available allocation strategies."""
    config: CtxoptConfig = ctx.obj
    ui_console.render_strategies(
        console, StrategyRegistry.list_strategies(), config.optimizer.strategy
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
