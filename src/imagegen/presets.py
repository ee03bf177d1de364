"""Preset definitions and their expansion into ordered variant specs."""

from __future__ import annotations

import importlib
import math
from dataclasses import asdict, dataclass
from functools import partial
from typing import Annotated, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .image import OUTPUT_FORMATS, ImageHandle

FormatValue = Union[Literal["original"], dict[str, Optional[dict[str, Any]]]]


class ResizeOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")
    fit: Optional[Literal["cover", "contain", "fill", "inside", "outside"]] = None
    without_enlargement: Optional[bool] = None
    kernel: Optional[Literal["nearest", "bilinear", "bicubic", "lanczos"]] = None
    background: Optional[tuple[int, int, int, int]] = None


class _PresetBase(BaseModel):
    model_config = ConfigDict(extra="forbid")
    format: FormatValue
    resize_options: Optional[ResizeOptions] = None
    with_image: Optional[str] = None
    infer_dimensions: bool = False
    is_background_image: bool = False

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: FormatValue) -> FormatValue:
        if v == "original":
            return v
        if not isinstance(v, dict) or len(v) != 1:
            raise ValueError("format must be 'original' or a table with exactly one format key")
        ((key, options),) = v.items()
        if key not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown format '{key}'. Allowed formats: {list(OUTPUT_FORMATS)}")
        return {key: dict(options or {})}

    @field_validator("with_image")
    @classmethod
    def validate_with_image(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and ":" not in v:
            raise ValueError("with_image must be an import path like 'package.module:function'")
        return v


class DensityPreset(_PresetBase):
    strategy: Literal["density"] = "density"
    density: list[float] = Field(min_length=1)
    base_width: Optional[int] = Field(default=None, gt=0)
    base_height: Optional[int] = Field(default=None, gt=0)

    @field_validator("density")
    @classmethod
    def validate_density(cls, v: list[float]) -> list[float]:
        if any(d <= 0 for d in v):
            raise ValueError("densities must be positive")
        return v


class WidthPreset(_PresetBase):
    strategy: Literal["width"] = "width"
    widths: Union[Literal["original"], list[int]]
    density: Optional[float] = Field(default=None, gt=0)

    @field_validator("widths")
    @classmethod
    def validate_widths(cls, v: Union[str, list[int]]) -> Union[str, list[int]]:
        if v == "original":
            return v
        if not v:
            raise ValueError("widths must not be empty")
        if any(w <= 0 for w in v):
            raise ValueError("widths must be positive")
        return v


PresetDefinition = Annotated[Union[DensityPreset, WidthPreset], Field(discriminator="strategy")]


@dataclass(frozen=True)
class FormatArgs:
    type: str
    options: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class DensityArgs:
    density: float
    format: FormatArgs
    base_width: Optional[int] = None
    base_height: Optional[int] = None
    resize_options: Optional[dict[str, Any]] = None
    preset: Literal["density"] = "density"

    def canonical(self) -> dict[str, Any]:
        return clean_object(asdict(self))


@dataclass(frozen=True)
class WidthArgs:
    width: Union[int, Literal["original"]]
    format: FormatArgs
    density: Optional[float] = None
    resize_options: Optional[dict[str, Any]] = None
    preset: Literal["width"] = "width"

    def canonical(self) -> dict[str, Any]:
        return clean_object(asdict(self))


VariantArgs = Union[DensityArgs, WidthArgs]
ImageHook = Callable[[ImageHandle, VariantArgs], Optional[ImageHandle]]
Transform = Callable[[ImageHandle, VariantArgs], ImageHandle]


@dataclass(frozen=True)
class VariantSpec:
    condition: str
    args: VariantArgs
    transform: Transform

    def generate(self, image: ImageHandle) -> ImageHandle:
        return self.transform(image, self.args)


@dataclass(frozen=True)
class ResolvedPreset:
    specs: tuple[VariantSpec, ...]
    type: Optional[str] = None
    infer_dimensions: bool = False
    is_background_image: bool = False


def clean_object(obj: dict[str, Any]) -> dict[str, Any]:
    """Recursively drop keys whose value is None."""
    cleaned: dict[str, Any] = {}
    for key, value in obj.items():
        if value is None:
            continue
        cleaned[key] = clean_object(value) if isinstance(value, dict) else value
    return cleaned


def mime_type_for(fmt: str) -> Optional[str]:
    if fmt == "original":
        return None
    if fmt in ("jpg", "jpeg"):
        return "image/jpeg"
    if fmt == "tif":
        return "image/tiff"
    return f"image/{fmt}"


def import_hook(path: str) -> ImageHook:
    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
        hook = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot import with_image hook '{path}': {e}") from e
    if not callable(hook):
        raise ConfigError(f"with_image hook '{path}' is not callable")
    return hook


def _number(n: float) -> str:
    return str(int(n)) if float(n).is_integer() else str(n)


def _scale(quantity: float, n: Optional[int]) -> Optional[int]:
    return math.floor(quantity * n) if n else None


def _format_args(fmt: FormatValue) -> FormatArgs:
    if fmt == "original":
        return FormatArgs("original")
    ((key, options),) = fmt.items()
    return FormatArgs(key, dict(options or {}))


def _resize_dict(options: Optional[ResizeOptions]) -> Optional[dict[str, Any]]:
    if options is None:
        return None
    return options.model_dump(exclude_none=True) or None


def _apply_format(image: ImageHandle, fmt: FormatArgs) -> ImageHandle:
    if fmt.type == "original":
        return image
    return image.apply_format(fmt.type, fmt.options)


def _run_hook(hook: Optional[ImageHook], image: ImageHandle, args: VariantArgs) -> ImageHandle:
    if hook is None:
        return image
    result = hook(image, args)
    return image if result is None else result


def _transform_density(image: ImageHandle, args: DensityArgs, hook: Optional[ImageHook] = None) -> ImageHandle:
    image = _apply_format(image, args.format)
    if args.base_width or args.base_height:
        resize = {"without_enlargement": True, **(args.resize_options or {})}
        image = image.resize(
            width=_scale(args.density, args.base_width),
            height=_scale(args.density, args.base_height),
            **resize,
        )
    else:
        # scale relative to the intrinsic width, only known once the source is opened
        width = image.metadata().width
        image = image.resize(width=_scale(args.density, width))
    return _run_hook(hook, image, args)


def _transform_width(image: ImageHandle, args: WidthArgs, hook: Optional[ImageHook] = None) -> ImageHandle:
    image = _apply_format(image, args.format)
    if args.width != "original":
        resize = {"without_enlargement": True, **(args.resize_options or {})}
        image = image.resize(width=_scale(args.density or 1.0, args.width), **resize)
    return _run_hook(hook, image, args)


def _expand_density(preset: DensityPreset, hook: Optional[ImageHook]) -> list[VariantSpec]:
    densities = sorted(preset.density)
    if not densities:
        raise ConfigError("density preset requires at least one density")
    highest = densities[-1]
    has_base = bool(preset.base_width or preset.base_height)
    fmt = _format_args(preset.format)
    resize = _resize_dict(preset.resize_options)
    transform = partial(_transform_density, hook=hook)

    return [
        VariantSpec(
            condition=f"{_number(d)}x",
            args=DensityArgs(
                density=float(d / highest) if has_base else float(d),
                format=fmt,
                base_width=preset.base_width,
                base_height=preset.base_height,
                resize_options=resize,
            ),
            transform=transform,
        )
        for d in densities
    ]


def _expand_width(preset: WidthPreset, hook: Optional[ImageHook]) -> list[VariantSpec]:
    fmt = _format_args(preset.format)
    resize = _resize_dict(preset.resize_options)
    transform = partial(_transform_width, hook=hook)

    if preset.widths == "original":
        args = WidthArgs(width="original", format=fmt, resize_options=resize)
        return [VariantSpec(condition="", args=args, transform=transform)]

    widths = sorted(preset.widths)
    if not widths:
        raise ConfigError("width preset requires at least one width")
    density = float(preset.density if preset.density is not None else 1)
    return [
        VariantSpec(
            condition=f"{w}w",
            args=WidthArgs(width=w, format=fmt, density=density, resize_options=resize),
            transform=transform,
        )
        for w in widths
    ]


def expand(
    preset: Union[DensityPreset, WidthPreset],
    with_image: Optional[ImageHook] = None,
) -> list[VariantSpec]:
    """Expand a preset into variant specs sorted ascending by density or width."""
    if isinstance(preset, DensityPreset):
        return _expand_density(preset, with_image)
    if isinstance(preset, WidthPreset):
        return _expand_width(preset, with_image)
    raise ConfigError(f"Unsupported preset type: {type(preset).__name__}")


def resolve_preset(
    preset: Union[DensityPreset, WidthPreset],
    with_image: Optional[ImageHook] = None,
) -> ResolvedPreset:
    hook = with_image
    if hook is None and preset.with_image:
        hook = import_hook(preset.with_image)
    fmt = _format_args(preset.format)
    return ResolvedPreset(
        specs=tuple(expand(preset, hook)),
        type=mime_type_for(fmt.type),
        infer_dimensions=preset.infer_dimensions,
        is_background_image=preset.is_background_image,
    )


def _build(model: type[_PresetBase], hook: Union[ImageHook, str, None], **fields: Any) -> ResolvedPreset:
    callable_hook = hook if callable(hook) else None
    if isinstance(hook, str):
        fields["with_image"] = hook
    try:
        preset = model(**fields)
    except ValidationError as e:
        raise ConfigError(f"Invalid {model.__name__}: {e}") from e
    return resolve_preset(preset, with_image=callable_hook)


def density_preset(
    density: list[float],
    format: FormatValue,
    *,
    base_width: Optional[int] = None,
    base_height: Optional[int] = None,
    resize_options: Optional[dict[str, Any]] = None,
    with_image: Union[ImageHook, str, None] = None,
    infer_dimensions: bool = False,
    is_background_image: bool = False,
) -> ResolvedPreset:
    return _build(
        DensityPreset,
        with_image,
        density=density,
        format=format,
        base_width=base_width,
        base_height=base_height,
        resize_options=resize_options,
        infer_dimensions=infer_dimensions,
        is_background_image=is_background_image,
    )


def width_preset(
    widths: Union[list[int], Literal["original"]],
    format: FormatValue,
    *,
    density: Optional[float] = None,
    resize_options: Optional[dict[str, Any]] = None,
    with_image: Union[ImageHook, str, None] = None,
    infer_dimensions: bool = False,
    is_background_image: bool = False,
) -> ResolvedPreset:
    return _build(
        WidthPreset,
        with_image,
        widths=widths,
        format=format,
        density=density,
        resize_options=resize_options,
        infer_dimensions=infer_dimensions,
        is_background_image=is_background_image,
    )
