from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .build import build_modules
from .config import ImageGenConfig, find_config, load_config, resolve_host, resolve_presets
from .errors import ConfigError
from .identity import identify, stable_json
from .image import OUTPUT_FORMATS
from .io import read_manifest
from .plugin import ImagePlugin
from .scaffolding import render_config_scaffold

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(config_path: Optional[Path]) -> tuple[Path, ImageGenConfig]:
    path = config_path or find_config()
    try:
        return path, load_config(path)
    except ConfigError as e:
        console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=2) from e


def _plugin(cfg: ImageGenConfig) -> ImagePlugin:
    try:
        return ImagePlugin.from_config(cfg)
    except ConfigError as e:
        console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=2) from e


@app.command()
def build(
    ids: Optional[list[str]] = typer.Argument(None, help="Module ids, e.g. images/photo.png?preset=hero"),
    manifest: Optional[Path] = typer.Option(None, "--manifest", "-m", exists=True, dir_okay=False),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to imagegen.toml"),
    root: Optional[Path] = typer.Option(None, "--root"),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir"),
    base: Optional[str] = typer.Option(None, "--base", help="Public base path for asset URLs"),
):
    """Generate every variant referenced by the given modules and emit them."""
    module_ids = list(ids or [])
    if manifest is not None:
        try:
            module_ids.extend(read_manifest(manifest))
        except ValueError as e:
            console.print(f"[bold red]Manifest error:[/bold red] {e}")
            raise typer.Exit(code=2) from e
    if not module_ids:
        console.print("[bold red]No module ids given[/bold red] (pass ids or --manifest)")
        raise typer.Exit(code=2)

    path, cfg = _load(config_path)
    plugin = _plugin(cfg)
    host = resolve_host(cfg, path.parent, is_build=True, root=root, out_dir=out_dir, base=base)
    plugin.config_resolved(host)

    console.print(f"[bold]Building[/bold] {len(module_ids)} modules into {host.out_dir}")
    result = asyncio.run(build_modules(plugin, module_ids, host.out_dir))

    for sr in result.stage_results:
        status = "[green]✓[/green]" if sr.success else "[red]✗[/red]"
        console.print(f"  {status} {sr.name} ({sr.duration_sec:.2f}s): {sr.message}")

    if result.skipped:
        console.print("[bold yellow]Skipped (no preset parameter):[/bold yellow]")
        for s in result.skipped:
            console.print(f"  - {s}")

    if result.errors:
        console.print("[bold red]Errors:[/bold red]")
        for e in result.errors:
            console.print(f"  - {e}")
        raise typer.Exit(code=2)

    table = Table(title="Emitted assets")
    table.add_column("Assets")
    table.add_column("Purged")
    table.add_row(str(len(result.assets)), str(len(result.purged)))
    console.print(table)
    console.print(f"[bold green]Build complete[/bold green] {result.output_path}")


@app.command()
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to imagegen.toml"),
    root: Optional[Path] = typer.Option(None, "--root"),
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(5173, "--port", min=1, max=65535),
):
    """Serve image modules and variants on demand."""
    from .server import DevServer

    path, cfg = _load(config_path)
    plugin = _plugin(cfg)
    plugin.config_resolved(resolve_host(cfg, path.parent, is_build=False, root=root))

    console.print(f"[bold]Serving[/bold] on http://{host}:{port}")
    DevServer(plugin).run(host=host, port=port)


@app.command()
def presets(
    name: Optional[str] = typer.Argument(None, help="Only show this preset"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to imagegen.toml"),
    source: Optional[Path] = typer.Option(None, "--source", help="Show identities for this source image"),
):
    """List the variants each preset expands to."""
    _, cfg = _load(config_path)
    try:
        resolved = resolve_presets(cfg)
    except ConfigError as e:
        console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=2) from e

    if name is not None:
        if name not in resolved:
            console.print(f"[bold red]Unknown preset:[/bold red] {name}. Available: {sorted(resolved)}")
            raise typer.Exit(code=2)
        resolved = {name: resolved[name]}

    table = Table(title="Presets")
    table.add_column("Preset")
    table.add_column("Condition")
    table.add_column("Type")
    table.add_column("Args")
    if source is not None:
        table.add_column("Identity")
    for preset_name, preset in resolved.items():
        for spec in preset.specs:
            row = [preset_name, spec.condition or "(original)", preset.type or "original", stable_json(spec.args.canonical())]
            if source is not None:
                row.append(identify(os.path.abspath(source), spec.args))
            table.add_row(*row)
    console.print(table)


@app.command()
def init(
    project_dir: Path = typer.Argument(Path("."), file_okay=False),
    fmt: str = typer.Option("webp", "--format", help="Output format for the example presets"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
):
    """Create a starter imagegen.toml."""
    if fmt not in OUTPUT_FORMATS:
        console.print(f"[bold red]Unknown format:[/bold red] {fmt}. Choose one of: {', '.join(OUTPUT_FORMATS)}")
        raise typer.Exit(code=2)

    try:
        result = render_config_scaffold(project_dir, fmt=fmt, force=force)
    except FileExistsError as e:
        console.print(f"[bold red]{e}[/bold red]")
        console.print("Use --force to overwrite.")
        raise typer.Exit(code=2) from e

    console.print(f"[bold green]Created[/bold green] {', '.join(result.files_created)} in {result.project_dir}")
