from __future__ import annotations

from .cache import DiskCache, OutputAsset
from .config import Config, HostConfig, ImageGenConfig, PluginOptions, load_config
from .descriptor import BackgroundAttr, ImageAttr, to_module
from .errors import (
    CacheIOError,
    ConfigError,
    FormatInferenceError,
    ImageGenError,
    MissingPresetParameter,
    SourceUnavailable,
    TransformFailure,
    UnknownPreset,
    UnknownVariant,
)
from .flight import RequestCache
from .identity import identify
from .pipeline import GenerationPipeline
from .plugin import ImagePlugin
from .presets import density_preset, expand, width_preset
from .request import ParsedRequest, parse_id

__all__ = [
    "BackgroundAttr",
    "CacheIOError",
    "Config",
    "ConfigError",
    "DiskCache",
    "FormatInferenceError",
    "GenerationPipeline",
    "HostConfig",
    "ImageAttr",
    "ImageGenConfig",
    "ImageGenError",
    "ImagePlugin",
    "MissingPresetParameter",
    "OutputAsset",
    "ParsedRequest",
    "PluginOptions",
    "RequestCache",
    "SourceUnavailable",
    "TransformFailure",
    "UnknownPreset",
    "UnknownVariant",
    "density_preset",
    "expand",
    "identify",
    "load_config",
    "parse_id",
    "to_module",
    "width_preset",
]
