"""CLI tests using typer's runner."""

from __future__ import annotations

import json
from pathlib import Path

from PIL import Image
from typer.testing import CliRunner

from imagegen.build import MODULES_FILENAME
from imagegen.cli import app
from imagegen.config import CONFIG_FILENAME

runner = CliRunner()

CONFIG = """
[presets.thumb]
strategy = "width"
widths = [100, 200]
format = { webp = {} }
"""


def _project(tmp_path: Path) -> Path:
    config = tmp_path / CONFIG_FILENAME
    config.write_text(CONFIG)
    (tmp_path / "images").mkdir()
    Image.new("RGB", (400, 300), (10, 120, 200)).save(tmp_path / "images" / "photo.png")
    return config


class TestInit:
    def test_creates_config(self, tmp_path: Path):
        result = runner.invoke(app, ["init", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / CONFIG_FILENAME).exists()

    def test_rejects_unknown_format(self, tmp_path: Path):
        result = runner.invoke(app, ["init", str(tmp_path), "--format", "foo"])
        assert result.exit_code == 2
        assert "Unknown format" in result.output
        assert not (tmp_path / CONFIG_FILENAME).exists()

    def test_generated_config_uses_format(self, tmp_path: Path):
        result = runner.invoke(app, ["init", str(tmp_path), "--format", "png"])
        assert result.exit_code == 0, result.output
        assert "png = {}" in (tmp_path / CONFIG_FILENAME).read_text()

    def test_refuses_overwrite(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("")
        result = runner.invoke(app, ["init", str(tmp_path)])
        assert result.exit_code == 2
        assert "--force" in result.output


class TestPresets:
    def test_lists_conditions(self, tmp_path: Path):
        config = _project(tmp_path)
        result = runner.invoke(app, ["presets", "--config", str(config)])
        assert result.exit_code == 0, result.output
        assert "100w" in result.output
        assert "200w" in result.output

    def test_unknown_name(self, tmp_path: Path):
        config = _project(tmp_path)
        result = runner.invoke(app, ["presets", "nope", "--config", str(config)])
        assert result.exit_code == 2

    def test_missing_config(self, tmp_path: Path):
        result = runner.invoke(app, ["presets", "--config", str(tmp_path / CONFIG_FILENAME)])
        assert result.exit_code == 2
        assert "Config error" in result.output


class TestBuild:
    def test_builds_modules(self, tmp_path: Path):
        config = _project(tmp_path)
        out_dir = tmp_path / "out"

        result = runner.invoke(
            app,
            ["build", "images/photo.png?preset=thumb", "--config", str(config), "--out-dir", str(out_dir)],
        )

        assert result.exit_code == 0, result.output
        modules = json.loads((out_dir / MODULES_FILENAME).read_text())
        srcset = modules["images/photo.png?preset=thumb"]["srcset"]
        assert srcset.endswith("200w")
        assert len(list((out_dir / "assets" / "images").glob("photo.*.webp"))) == 2
        assert len(list((tmp_path / ".imagegen" / "cache").iterdir())) == 2

    def test_builds_from_manifest(self, tmp_path: Path):
        config = _project(tmp_path)
        manifest = tmp_path / "modules.yaml"
        manifest.write_text("modules:\n  - images/photo.png?preset=thumb\n")

        result = runner.invoke(
            app,
            ["build", "--manifest", str(manifest), "--config", str(config), "--out-dir", str(tmp_path / "out")],
        )

        assert result.exit_code == 0, result.output

    def test_unknown_preset_fails(self, tmp_path: Path):
        config = _project(tmp_path)
        result = runner.invoke(
            app,
            ["build", "images/photo.png?preset=nope", "--config", str(config), "--out-dir", str(tmp_path / "out")],
        )
        assert result.exit_code == 2
        assert not (tmp_path / "out" / MODULES_FILENAME).exists()

    def test_requires_ids(self, tmp_path: Path):
        config = _project(tmp_path)
        result = runner.invoke(app, ["build", "--config", str(config)])
        assert result.exit_code == 2
