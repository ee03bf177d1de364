from __future__ import annotations

import json
from pathlib import Path

import pytest

from imagegen.build import MODULES_FILENAME, build_modules
from imagegen.config import HostConfig
from imagegen.plugin import ImagePlugin
from imagegen.presets import width_preset


def _plugin(tmp_path: Path) -> ImagePlugin:
    plugin = ImagePlugin({"w": width_preset([100, 200], {"webp": {}})})
    plugin.config_resolved(HostConfig(root=tmp_path, out_dir=tmp_path / "dist"))
    return plugin


class TestBuildModules:
    @pytest.mark.asyncio
    async def test_writes_assets_and_modules(self, tmp_path: Path, make_image) -> None:
        make_image("photo.png")
        out_dir = tmp_path / "dist"

        result = await build_modules(_plugin(tmp_path), ["photo.png?preset=w", "style.css"], out_dir)

        assert result.success
        assert result.skipped == ["style.css"]
        assert [s.name for s in result.stage_results] == ["resolve", "emit"]
        assert len(result.assets) == 2
        for file_name in result.assets:
            assert (out_dir / file_name).is_file()
        modules = json.loads((out_dir / MODULES_FILENAME).read_text())
        assert modules["photo.png?preset=w"]["_type"] == "img"
        assert result.output_path == out_dir / MODULES_FILENAME

    @pytest.mark.asyncio
    async def test_errors_stop_before_emit(self, tmp_path: Path, make_image) -> None:
        make_image("photo.png")
        out_dir = tmp_path / "dist"

        result = await build_modules(
            _plugin(tmp_path), ["photo.png?preset=w", "missing.png?preset=w"], out_dir
        )

        assert not result.success
        assert len(result.errors) == 1
        assert result.errors[0].startswith("missing.png?preset=w:")
        assert [s.name for s in result.stage_results] == ["resolve"]
        assert not out_dir.exists()
