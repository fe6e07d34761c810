"""CLI for inspecting a safeio write policy."""

from __future__ import annotations

from datetime import UTC, datetime
import os
from pathlib import Path

import humanize
from rich.console import Console
from rich.table import Table
import typer

from safeio import directory
from safeio.config import build_policy, load_config
from safeio.observability import setup_logging
from safeio.paths import normalize_path, sanitize_name

app = typer.Typer(
    name="safeio",
    help="Inspect the safeio write policy",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

_config_option = typer.Option(
    None, "--config", "-c", help="Path to safeio.toml (default: auto-detect)"
)


def _load(config_path: Path | None):
    try:
        cfg = load_config(config_path)
    except (ValueError, OSError) as e:
        console.print(f"[red]✗[/] Invalid configuration: {e}")
        raise typer.Exit(2)
    setup_logging(cfg.logging)
    return cfg


@app.command()
def check(
    path: str = typer.Argument(..., help="Path to evaluate"),
    is_directory: bool = typer.Option(False, "--dir", "-d", help="Evaluate as a directory"),
    config_path: Path = _config_option,
) -> None:
    """Show whether PATH may be written, and which rule decides."""
    policy = build_policy(_load(config_path))
    decision = policy.explain(path, is_directory)

    if decision.allowed:
        console.print(f"[green]✓[/] {decision.path}: writable")
        return
    console.print(f"[red]✗[/] {decision.path}: denied ({decision.rule})")
    console.print(f"  {decision.reason}")
    raise typer.Exit(1)


@app.command("policy")
def show_policy(config_path: Path = _config_option) -> None:
    """Print the effective policy."""
    cfg = _load(config_path)
    policy = build_policy(cfg)

    mode = "production" if policy.production else "development"
    console.print(f"[bold]Build mode:[/] {mode}" + (" (headless)" if cfg.headless else ""))

    table = Table(title="Roots")
    table.add_column("Kind", style="cyan")
    table.add_column("Path")
    for protected in policy.resolved_protected_dirs():
        table.add_row("protected", protected)
    for root in policy.resolved_trusted_roots():
        table.add_row("trusted", root)
    console.print(table)

    console.print(
        "[bold]Denied extensions:[/] " + " ".join(sorted(policy.denied_extensions))
    )


@app.command()
def sanitize(
    name: str = typer.Argument(..., help="File name to sanitize"),
    placeholder: str = typer.Option("-", "--placeholder", "-p", help="Replacement character"),
) -> None:
    """Replace characters that are invalid in file names on any platform."""
    try:
        typer.echo(sanitize_name(name, placeholder))
    except ValueError as e:
        console.print(f"[red]✗[/] {e}")
        raise typer.Exit(2)


@app.command("ls")
def list_entries(
    path: str = typer.Argument(".", help="Directory to list"),
    pattern: str = typer.Option("*", "--pattern", help="Wildcard filter"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Descend into subdirectories"),
    config_path: Path = _config_option,
) -> None:
    """List a directory with the policy decision for each entry."""
    policy = build_policy(_load(config_path))

    if not directory.exists(path):
        console.print(f"[red]✗[/] Not a directory: {normalize_path(path)}")
        raise typer.Exit(1)

    table = Table(title=normalize_path(path))
    table.add_column("Name")
    table.add_column("Type", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    table.add_column("Writable")

    entries = [(p, True) for p in directory.enumerate_directories(path, pattern, recursive)]
    entries += [(p, False) for p in directory.enumerate_files(path, pattern, recursive)]
    for entry, is_dir in sorted(entries):
        st = os.stat(entry)
        modified = datetime.fromtimestamp(st.st_mtime, tz=UTC)
        writable = policy.can_write(entry, is_dir)
        table.add_row(
            os.path.relpath(entry, path),
            "dir" if is_dir else "file",
            "" if is_dir else humanize.naturalsize(st.st_size, binary=True),
            humanize.naturaltime(datetime.now(tz=UTC) - modified),
            "[green]yes[/]" if writable else "[red]no[/]",
        )
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
