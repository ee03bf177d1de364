"""Host-facing hooks: module loading, dev requests and bundle finalization."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .cache import OutputAsset
from .config import DEV_PREFIX, Config, HostConfig, ImageGenConfig, PluginOptions, resolve_presets
from .descriptor import SourceSetDescriptor, to_module
from .errors import ImageGenError
from .pipeline import GenerationPipeline
from .presets import ImageHook, ResolvedPreset
from .request import parse_id

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000, immutable"


@dataclass(frozen=True)
class DevResponse:
    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BundleResult:
    assets: list[OutputAsset]
    purged: list[str]


def write_asset(out_dir: Path, asset: OutputAsset) -> Path:
    out = Path(out_dir) / asset.file_name
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(asset.source)
    return out


class ImagePlugin:
    name = "image-gen"

    def __init__(self, presets: dict[str, ResolvedPreset], options: Optional[PluginOptions] = None):
        self.presets = presets
        self.options = options or PluginOptions()
        self._config: Optional[Config] = None
        self._pipeline: Optional[GenerationPipeline] = None

    @classmethod
    def from_config(
        cls,
        config: ImageGenConfig,
        hooks: Optional[dict[str, ImageHook]] = None,
    ) -> "ImagePlugin":
        return cls(resolve_presets(config, hooks), config.options)

    @property
    def config(self) -> Config:
        if self._config is None:
            raise RuntimeError("config_resolved() must be called before using the plugin")
        return self._config

    @property
    def pipeline(self) -> GenerationPipeline:
        if self._pipeline is None:
            raise RuntimeError("config_resolved() must be called before using the plugin")
        return self._pipeline

    def config_resolved(self, host: HostConfig) -> None:
        """Start a new session; any previous in-memory state is dropped."""
        self._config = Config(presets=self.presets, options=self.options, host=host)
        self._pipeline = GenerationPipeline(self._config, dev_prefix=DEV_PREFIX)
        mode = "build" if host.is_build else "serve"
        logger.debug(f"{self.name}: {len(self.presets)} presets, {mode} mode, root {host.root}")

    async def resolve(self, id: str) -> Optional[SourceSetDescriptor]:
        """Source set for a module id, or None when the id carries no preset parameter."""
        request = parse_id(id)
        if self.options.url_param not in request.query:
            return None
        return await self.pipeline.generate_image(request)

    async def load(self, id: str) -> Optional[str]:
        descriptor = await self.resolve(id)
        if descriptor is None:
            return None
        return to_module(descriptor)

    async def dev_request(self, url: str) -> Optional[DevResponse]:
        if not url.startswith(DEV_PREFIX):
            return None
        id = url[len(DEV_PREFIX):].split("?", 1)[0]
        try:
            body, content_type = await self.pipeline.serve_image(id)
        except ImageGenError as e:
            logger.warning(f"{self.name}: cannot serve {url}: {e}")
            return DevResponse(status=404)
        return DevResponse(
            status=200,
            body=body,
            headers={"Content-Type": content_type, "Cache-Control": CACHE_CONTROL},
        )

    async def generate_bundle(self, emit: Optional[Callable[[OutputAsset], object]] = None) -> BundleResult:
        """Emit every generated asset, then purge cache files the build did not reference."""
        assets = await self.pipeline.get_images()
        if self.options.write_to_bundle and emit is not None:
            for asset in assets:
                emit(asset)
        purged = await self.pipeline.purge_cache(assets)
        return BundleResult(assets=assets, purged=purged)
