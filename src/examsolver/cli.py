"""Exam Solver CLI - examsolver command line tool."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from examsolver import __version__
from examsolver.app import ExamSolverApp
from examsolver.common.errors import ConfigurationError
from examsolver.config import Config, load_config, require_llm_settings

app = typer.Typer(
    name="examsolver",
    help="Exam Solver for AI glasses",
    no_args_is_help=True,
)
console = Console()


def get_config(config_path: Path | None = None) -> Config:
    """Get configuration."""
    return load_config(config_path)


def _mask(secret: str | None) -> str:
    if not secret:
        return "(not set)"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}"


@app.command()
def run(
    mock: bool = typer.Option(False, "--mock", help="Run with mock glasses and chat service"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
):
    """Run the auto-capture loop until interrupted."""
    cfg = get_config(config_path)
    if mock:
        cfg.mock_mode = True

    try:
        require_llm_settings(cfg)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"Model: [cyan]{cfg.llm.model}[/]\n"
            f"Interval: {cfg.timing.capture_interval:g}s "
            f"(retry {cfg.timing.invalid_retry_delay:g}s)\n"
            f"Memory: {cfg.history.max_rounds} rounds\n"
            f"Mock Mode: {cfg.mock_mode}",
            title="Exam Solver",
        )
    )

    ExamSolverApp(cfg).run_forever()


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]Exam Solver[/] v{__version__}")


@app.command()
def config(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    json_output: bool = False,
):
    """Show configuration."""
    cfg = get_config(config_path)

    if json_output:
        data = cfg.model_dump()
        data["llm"]["api_key"] = _mask(cfg.llm.api_key)
        print(json.dumps(data, indent=2, default=str))
        return

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Device", cfg.device.name)
    table.add_row("Mode", cfg.device.mode)
    table.add_row("Mock Mode", str(cfg.mock_mode))
    table.add_row("Glasses", cfg.glasses.endpoint)
    table.add_row("LLM Base URL", cfg.llm.base_url)
    table.add_row("LLM Model", cfg.llm.model)
    table.add_row("LLM API Key", _mask(cfg.llm.api_key))
    table.add_row("Initial Delay", f"{cfg.timing.initial_delay:g}s")
    table.add_row("Capture Interval", f"{cfg.timing.capture_interval:g}s")
    table.add_row("Invalid Retry", f"{cfg.timing.invalid_retry_delay:g}s")
    table.add_row("Max Rounds", str(cfg.history.max_rounds))

    console.print(table)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
