from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigError
from .presets import ImageHook, PresetDefinition, ResolvedPreset, resolve_preset

CONFIG_FILENAME = "imagegen.toml"
DEV_PREFIX = "/@imagegen/"


class PluginOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")
    assets_dir: str = "assets/images"
    cache_dir: str = ".imagegen/cache"
    url_param: str = "preset"
    purge_cache: bool = True
    write_to_bundle: bool = True

    @field_validator("url_param")
    @classmethod
    def validate_url_param(cls, v: str) -> str:
        if not v:
            raise ValueError("url_param cannot be empty")
        return v


class HostSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")
    root: str = "."
    out_dir: str = "dist"
    base: str = "/"

    @field_validator("base")
    @classmethod
    def validate_base(cls, v: str) -> str:
        return v if v.endswith("/") else v + "/"


class ImageGenConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    options: PluginOptions = PluginOptions()
    host: HostSettings = HostSettings()
    presets: dict[str, PresetDefinition] = Field(default_factory=dict)


@dataclass(frozen=True)
class HostConfig:
    root: Path
    out_dir: Path
    base: str = "/"
    is_build: bool = True


@dataclass(frozen=True)
class Config:
    presets: dict[str, ResolvedPreset]
    options: PluginOptions
    host: HostConfig

    @property
    def is_build(self) -> bool:
        return self.host.is_build

    @property
    def root(self) -> Path:
        return self.host.root

    @property
    def base(self) -> str:
        return self.host.base

    @property
    def url_param(self) -> str:
        return self.options.url_param

    @property
    def assets_dir(self) -> str:
        return self.options.assets_dir

    @property
    def cache_dir(self) -> Path:
        return self.host.root / self.options.cache_dir


def resolve_presets(
    config: ImageGenConfig,
    hooks: Optional[dict[str, ImageHook]] = None,
) -> dict[str, ResolvedPreset]:
    """Expand every configured preset up front so shape errors surface at startup."""
    hooks = hooks or {}
    resolved: dict[str, ResolvedPreset] = {}
    for name, definition in config.presets.items():
        try:
            resolved[name] = resolve_preset(definition, with_image=hooks.get(name))
        except ConfigError as e:
            raise ConfigError(f"Preset '{name}': {e}") from e
    return resolved


def resolve_host(
    config: ImageGenConfig,
    base_dir: Path,
    is_build: bool,
    root: Optional[Path] = None,
    out_dir: Optional[Path] = None,
    base: Optional[str] = None,
) -> HostConfig:
    root_path = (root or base_dir / config.host.root).resolve()
    out_path = out_dir or root_path / config.host.out_dir
    if base is not None:
        base = HostSettings(base=base).base
    return HostConfig(
        root=root_path,
        out_dir=Path(out_path),
        base=base or config.host.base,
        is_build=is_build,
    )


def load_config(config_path: Path) -> ImageGenConfig:
    if not config_path.exists():
        raise ConfigError(
            f"Config file not found: {config_path}\n"
            "Run 'imagegen init' to create one",
            path=config_path,
        )

    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore

    try:
        text = config_path.read_text()
        data = tomllib.loads(text)
    except Exception as e:
        raise ConfigError(f"Failed to parse TOML: {e}", path=config_path) from e

    try:
        return ImageGenConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}", path=config_path) from e


def find_config(start_dir: Optional[Path] = None) -> Path:
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()
    while current != current.parent:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        current = current.parent

    return start_dir / CONFIG_FILENAME
