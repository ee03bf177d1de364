"""Generation pipeline: presets -> identities -> single-flight tasks -> cache -> source sets."""

from __future__ import annotations

import asyncio
import logging
import os
import posixpath
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TypeVar
from urllib.parse import quote, unquote

from .cache import DiskCache, OutputAsset, cache_filename
from .config import DEV_PREFIX, Config
from .descriptor import SourceSetDescriptor, SourceSetEntry, build_descriptor
from .errors import (
    ImageGenError,
    MissingPresetParameter,
    SourceUnavailable,
    TransformFailure,
    UnknownPreset,
    UnknownVariant,
)
from .flight import RequestCache
from .identity import asset_hash, identify
from .image import ImageHandle, format_for, load
from .presets import VariantSpec, mime_type_for
from .request import ParsedRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

# characters left untouched by JavaScript's encodeURI
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"


def encode_uri(url: str) -> str:
    return quote(url, safe=_URI_SAFE)


class GenerationPipeline:
    """Coordinates variant generation for one build or dev session.

    All session state lives in the request caches owned by the instance;
    nothing is shared between pipelines.
    """

    def __init__(self, config: Config, dev_prefix: str = DEV_PREFIX):
        self.config = config
        self.dev_prefix = dev_prefix
        self.disk_cache = DiskCache(config.cache_dir)
        self._images: RequestCache[ImageHandle] = RequestCache("images")
        self._assets: RequestCache[OutputAsset] = RequestCache("assets")
        self._source_hashes: RequestCache[str] = RequestCache("source-hashes")
        self._dev_bytes: RequestCache[bytes] = RequestCache("dev-bytes")

    async def generate_image(self, request: ParsedRequest) -> SourceSetDescriptor:
        preset_name = request.query.get(self.config.url_param)
        if not preset_name:
            raise MissingPresetParameter(request.path, self.config.url_param)
        preset = self.config.presets.get(preset_name)
        if preset is None:
            raise UnknownPreset(preset_name, list(self.config.presets))

        source_path = self.source_path(request.path)
        if not await asyncio.to_thread(Path(source_path).is_file):
            raise SourceUnavailable(request.path)

        source_set: list[SourceSetEntry] = list(
            await asyncio.gather(*(self._source_entry(source_path, spec) for spec in preset.specs))
        )

        width = height = None
        if preset.infer_dimensions and not preset.is_background_image and preset.specs:
            width, height = await self._dimensions(source_path, preset.specs[-1])

        return build_descriptor(
            request.path,
            source_set,
            is_background_image=preset.is_background_image,
            width=width,
            height=height,
        )

    async def get_image(self, id: Optional[str]) -> ImageHandle:
        if not id:
            raise UnknownVariant("<empty id>")
        task = self._images.get(id)
        if task is None:
            raise UnknownVariant(id)
        return await asyncio.shield(task)

    async def get_images(self) -> list[OutputAsset]:
        """Wait for every asset materialized so far in this session."""
        tasks = [self._assets.get(id) for id in list(self._assets)]
        return list(await asyncio.gather(*(asyncio.shield(t) for t in tasks if t is not None)))

    async def serve_image(self, id: str) -> tuple[bytes, str]:
        """Render a registered variant on demand, returning its bytes and content type."""
        image = await self.get_image(id)
        path = str(image.path)
        data = await self._dev_bytes.run(id, lambda: self._blocking(path, id, image.to_bytes))
        fmt = await self._output_format(path, id, image)
        return data, mime_type_for(fmt)

    async def purge_cache(self, assets: Iterable[OutputAsset]) -> list[str]:
        if not self.config.options.purge_cache:
            return []
        return await self.disk_cache.purge(a.name for a in assets)

    def source_path(self, path: str) -> str:
        # decoded once here; absolute paths are kept, relative ones resolve against the root
        return os.path.normpath(os.path.join(self.config.root, unquote(path)))

    async def _source_entry(self, source_path: str, spec: VariantSpec) -> SourceSetEntry:
        return encode_uri(await self._image_src(source_path, spec)), spec.condition

    async def _image_src(self, source_path: str, spec: VariantSpec) -> str:
        id = identify(source_path, spec.args)
        image = await self._variant(source_path, id, spec)

        if self.config.is_build:
            asset = await self._assets.run(id, lambda: self._materialize(id, source_path, image))
            return self.config.base + asset.file_name

        return self.dev_prefix + id

    async def _variant(self, source_path: str, id: str, spec: VariantSpec) -> ImageHandle:
        return await self._images.run(id, lambda: self._transform(source_path, id, spec))

    async def _transform(self, source_path: str, id: str, spec: VariantSpec) -> ImageHandle:
        logger.debug(f"generating {id} ({spec.condition or 'original'}) from {source_path}")
        return await self._blocking(source_path, id, spec.generate, load(source_path))

    async def _materialize(self, id: str, source_path: str, image: ImageHandle) -> OutputAsset:
        source_hash = await self._source_hashes.run(source_path, lambda: self._hash_source(source_path))
        fmt = await self._output_format(source_path, id, image)
        name = cache_filename(source_path, id, source_hash, fmt)

        def produce() -> bytes:
            try:
                return image.to_bytes()
            except ImageGenError:
                raise
            except Exception as e:
                raise TransformFailure(source_path, id, str(e)) from e

        data = await self.disk_cache.ensure(name, produce)
        return OutputAsset(file_name=posixpath.join(self.config.assets_dir, name), name=name, source=data)

    async def _hash_source(self, source_path: str) -> str:
        try:
            content = await asyncio.to_thread(Path(source_path).read_bytes)
        except OSError as e:
            raise SourceUnavailable(source_path) from e
        return asset_hash(content)

    async def _output_format(self, source_path: str, id: str, image: ImageHandle) -> str:
        fmt = await self._blocking(source_path, id, lambda: image.target_format)
        return format_for(fmt, image)

    async def _dimensions(self, source_path: str, spec: VariantSpec) -> tuple[int, int]:
        id = identify(source_path, spec.args)
        image = await self._variant(source_path, id, spec)
        meta = await self._blocking(source_path, id, image.metadata)
        return meta.width, meta.height

    async def _blocking(self, source_path: str, id: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except ImageGenError:
            raise
        except Exception as e:
            raise TransformFailure(source_path, id, str(e)) from e
