"""CLI entry point for the intrinsic dimensions optimizer."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from intrinsic_dimensions.models.config import DimensionsConfig
from intrinsic_dimensions.orchestrator import Orchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> DimensionsConfig:
    try:
        return DimensionsConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'intrinsic-dimensions init' to create a default config.")
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Supply width/height to IMG and VIDEO tags from captured intrinsic dimensions."""
    setup_logging(verbose)


@cli.command()
@click.option("--target", "-t", prompt="Target URL", help="Page URL to optimize")
def init(target: str) -> None:
    """Create a default configuration file."""
    config_path = Path("dimensions-config.json")
    if config_path.exists():
        if not click.confirm("dimensions-config.json already exists. Overwrite?"):
            return

    cfg = DimensionsConfig(target_url=target)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="HTML file to optimize")
@click.option("--output", "-o", default=None, help="Write optimized HTML here (default: stdout)")
@click.option("--url", "-u", default=None, help="Page URL the markup belongs to")
@click.option("--config", "-c", default="dimensions-config.json", help="Config file path")
def optimize(input_file: str, output: Optional[str], url: Optional[str], config: str) -> None:
    """Apply stored measurements to server-rendered markup."""
    cfg = _load_config(config)
    markup = Path(input_file).read_text(encoding="utf-8")
    result = Orchestrator(cfg).run_optimize(markup, url)

    if output:
        Path(output).write_text(result.html, encoding="utf-8")
        console.print(
            f"[green]Optimized:[/green] {len(result.tracked_paths)} tracked, "
            f"{len(result.applied)} given dimensions → [blue]{output}[/blue]"
        )
    else:
        click.echo(result.html, nl=False)


@cli.command()
@click.option("--url", "-u", default=None, help="Page URL to visit")
@click.option("--html", "html_file", default=None, help="Serve this HTML file as the page")
@click.option("--optimize/--no-optimize", default=True, help="Optimize --html before serving it")
@click.option("--config", "-c", default="dimensions-config.json", help="Config file path")
def capture(url: Optional[str], html_file: Optional[str], optimize: bool, config: str) -> None:
    """Visit a page in a browser and store the intrinsic dimensions of its media."""
    cfg = _load_config(config)
    orchestrator = Orchestrator(cfg)

    if html_file and optimize:
        markup = Path(html_file).read_text(encoding="utf-8")
        result, visit = orchestrator.run_cycle(markup, url)
        console.print(
            f"[green]Optimized:[/green] {len(result.applied)} of "
            f"{len(result.tracked_paths)} tracked elements given dimensions"
        )
    else:
        markup = Path(html_file).read_text(encoding="utf-8") if html_file else None
        visit = orchestrator.run_capture_only(url, markup)

    console.print(f"[green]Capture complete:[/green] {len(visit.elements)} elements measured")


@cli.command()
@click.option("--config", "-c", default="dimensions-config.json", help="Config file path")
def samples(config: str) -> None:
    """Show stored measurement counts per page."""
    cfg = _load_config(config)
    rows = Orchestrator(cfg).get_samples_summary()
    if not rows:
        console.print("[yellow]No measurements stored[/yellow]")
        return

    table = Table(title="Stored Measurements")
    table.add_column("Page", style="bold")
    table.add_column("Visits")
    table.add_column("Elements")
    table.add_column("Last Captured")
    for row in rows:
        table.add_row(row["url"], str(row["visits"]), str(row["elements"]), row["last_captured"])
    console.print(table)


@cli.command()
def schema() -> None:
    """Print the JSON schema of the per-element data contribution."""
    cfg = DimensionsConfig()
    click.echo(json.dumps(Orchestrator(cfg).get_schema(), indent=2))


@cli.command()
@click.option("--config", "-c", default="dimensions-config.json", help="Config file path")
def reset(config: str) -> None:
    """Delete all stored measurements."""
    cfg = _load_config(config)
    Orchestrator(cfg).reset_store()
    console.print("[green]Measurement store reset[/green]")


if __name__ == "__main__":
    cli()
