"""Tests for imagegen.toml loading and preset resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from imagegen.config import (
    CONFIG_FILENAME,
    ImageGenConfig,
    find_config,
    load_config,
    resolve_host,
    resolve_presets,
)
from imagegen.errors import ConfigError
from imagegen.presets import DensityArgs, WidthArgs

VALID = """
[options]
assets_dir = "img"
url_param = "variant"

[host]
base = "/static"

[presets.thumb]
strategy = "width"
widths = [320, 160]
format = { webp = { quality = 70 } }
infer_dimensions = true

[presets.hero]
strategy = "density"
density = [2, 1]
base_width = 600
format = "original"
resize_options = { fit = "contain", kernel = "bicubic" }
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / CONFIG_FILENAME
    path.write_text(text)
    return path


class TestLoadConfig:
    def test_valid_config(self, tmp_path: Path):
        cfg = load_config(_write(tmp_path, VALID))

        assert cfg.options.assets_dir == "img"
        assert cfg.options.url_param == "variant"
        assert cfg.options.purge_cache is True
        assert cfg.host.base == "/static/"
        assert set(cfg.presets) == {"thumb", "hero"}

    def test_missing_file_mentions_init(self, tmp_path: Path):
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path / CONFIG_FILENAME)
        assert "imagegen init" in str(exc_info.value)

    def test_invalid_toml(self, tmp_path: Path):
        with pytest.raises(ConfigError) as exc_info:
            load_config(_write(tmp_path, "[options\n"))
        assert "Failed to parse TOML" in str(exc_info.value)

    def test_unknown_format_rejected(self, tmp_path: Path):
        text = '[presets.x]\nstrategy = "width"\nwidths = [100]\nformat = { bmp = {} }\n'
        with pytest.raises(ConfigError) as exc_info:
            load_config(_write(tmp_path, text))
        assert "bmp" in str(exc_info.value)

    def test_unknown_strategy_rejected(self, tmp_path: Path):
        text = '[presets.x]\nstrategy = "height"\nwidths = [100]\nformat = "original"\n'
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, text))

    def test_unknown_option_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigError):
            load_config(_write(tmp_path, "[options]\ncache = 'x'\n"))

    def test_empty_config_uses_defaults(self, tmp_path: Path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg.options.cache_dir == ".imagegen/cache"
        assert cfg.options.assets_dir == "assets/images"
        assert cfg.presets == {}


class TestResolvePresets:
    def test_expands_in_order(self, tmp_path: Path):
        resolved = resolve_presets(load_config(_write(tmp_path, VALID)))

        thumb = resolved["thumb"]
        assert [s.condition for s in thumb.specs] == ["160w", "320w"]
        assert isinstance(thumb.specs[0].args, WidthArgs)
        assert thumb.type == "image/webp"
        assert thumb.infer_dimensions is True

        hero = resolved["hero"]
        assert [s.condition for s in hero.specs] == ["1x", "2x"]
        assert isinstance(hero.specs[0].args, DensityArgs)
        assert hero.specs[0].args.resize_options == {"fit": "contain", "kernel": "bicubic"}
        assert hero.type is None

    def test_hook_override(self, tmp_path: Path):
        def hook(image, args):
            return None

        resolved = resolve_presets(load_config(_write(tmp_path, VALID)), hooks={"thumb": hook})
        assert len(resolved["thumb"].specs) == 2

    def test_bad_hook_names_preset(self, tmp_path: Path):
        text = VALID + '\n[presets.broken]\nstrategy = "width"\nwidths = [1]\nformat = "original"\nwith_image = "no_such_module_xyz:fn"\n'
        with pytest.raises(ConfigError) as exc_info:
            resolve_presets(load_config(_write(tmp_path, text)))
        assert "Preset 'broken'" in str(exc_info.value)


class TestResolveHost:
    def test_defaults_relative_to_config(self, tmp_path: Path):
        host = resolve_host(ImageGenConfig(), tmp_path, is_build=True)
        assert host.root == tmp_path.resolve()
        assert host.out_dir == tmp_path.resolve() / "dist"
        assert host.base == "/"
        assert host.is_build is True

    def test_overrides(self, tmp_path: Path):
        host = resolve_host(
            ImageGenConfig(),
            tmp_path,
            is_build=False,
            root=tmp_path / "site",
            out_dir=tmp_path / "out",
            base="/cdn",
        )
        assert host.root == (tmp_path / "site").resolve()
        assert host.out_dir == tmp_path / "out"
        assert host.base == "/cdn/"
        assert host.is_build is False


class TestFindConfig:
    def test_walks_up(self, tmp_path: Path):
        path = _write(tmp_path, "")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == path.resolve()

    def test_falls_back_to_start_dir(self, tmp_path: Path):
        nested = tmp_path / "empty"
        nested.mkdir()
        # a config higher up the real filesystem would be found first
        found = find_config(nested)
        assert found.name == CONFIG_FILENAME
