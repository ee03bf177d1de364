"""Project scaffolding using Jinja templates."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jinja2 import Environment, PackageLoader, StrictUndefined

from .config import CONFIG_FILENAME, PluginOptions


@dataclass
class ScaffoldResult:
    """Result of scaffold generation."""

    project_dir: Path
    files_created: list[str]


def _create_template_env(template_dir: Optional[Path] = None) -> Environment:
    """Create Jinja environment with StrictUndefined.

    Args:
        template_dir: Optional custom template directory. If None, uses package templates.
    """
    if template_dir:
        from jinja2 import FileSystemLoader

        return Environment(
            loader=FileSystemLoader(str(template_dir)),
            undefined=StrictUndefined,
        )
    return Environment(
        loader=PackageLoader("imagegen", "templates"),
        undefined=StrictUndefined,
    )


def render_config_scaffold(
    project_dir: Path,
    widths: Optional[list[int]] = None,
    densities: Optional[list[float]] = None,
    fmt: str = "webp",
    template_dir: Optional[Path] = None,
    force: bool = False,
) -> ScaffoldResult:
    """Render a starter ``imagegen.toml`` and an example module manifest.

    Args:
        project_dir: Directory to write into (created if missing).
        widths: Widths for the example width preset.
        densities: Densities for the example density preset.
        fmt: Output format used by the example presets.
        template_dir: Optional custom template directory.
        force: If True, overwrite existing files.

    Returns:
        ScaffoldResult with the directory and created files.

    Raises:
        FileExistsError: If the config already exists and force=False.
    """
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists() and not force:
        raise FileExistsError(f"Config already exists: {config_path}")

    env = _create_template_env(template_dir)
    defaults = PluginOptions()
    params = {
        "widths": widths or [480, 960, 1440],
        "densities": densities or [1, 2, 3],
        "format": fmt,
        "options": defaults.model_dump(),
    }

    project_dir.mkdir(parents=True, exist_ok=True)
    files_created = []

    config_path.write_text(env.get_template("imagegen.toml.j2").render(**params), encoding="utf-8")
    files_created.append(CONFIG_FILENAME)

    manifest_path = project_dir / "modules.yaml"
    if force or not manifest_path.exists():
        manifest_path.write_text(env.get_template("modules.yaml.j2").render(**params), encoding="utf-8")
        files_created.append("modules.yaml")

    return ScaffoldResult(project_dir=project_dir, files_created=files_created)
