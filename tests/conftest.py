from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from imagegen.config import Config, HostConfig, PluginOptions
from imagegen.presets import ResolvedPreset


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    def _make(
        name: str = "photo.png",
        size: tuple[int, int] = (1200, 800),
        color: tuple[int, ...] = (200, 30, 30),
        mode: str = "RGB",
    ) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new(mode, size, color).save(path)
        return path

    return _make


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., Config]:
    def _make(presets: dict[str, ResolvedPreset], is_build: bool = True, base: str = "/", **options) -> Config:
        return Config(
            presets=presets,
            options=PluginOptions(**options),
            host=HostConfig(root=tmp_path, out_dir=tmp_path / "dist", base=base, is_build=is_build),
        )

    return _make
