"""Pillow-backed image collaborator.

Handles are lazy: ``apply_format``, ``resize`` and ``pipe`` only record
operations, and pixels are decoded when the handle is rendered with
``to_bytes``/``to_file`` (or when ``metadata`` needs post-resize dimensions).
All methods are blocking; callers run them through ``asyncio.to_thread``.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, Union

from PIL import Image, ImageOps

from .errors import FormatInferenceError

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = ("avif", "gif", "heif", "jpeg", "jpg", "png", "tif", "tiff", "webp")

# heif is read as a source format only and re-encoded as avif
OUTPUT_FORMATS = tuple(f for f in ALLOWED_FORMATS if f != "heif")

PIL_FORMATS = {
    "avif": "AVIF",
    "gif": "GIF",
    "heif": "AVIF",
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
    "tif": "TIFF",
    "tiff": "TIFF",
    "webp": "WEBP",
}

KERNELS = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}

FITS = ("cover", "contain", "fill", "inside", "outside")


@dataclass(frozen=True)
class ImageMetadata:
    format: Optional[str]
    width: int
    height: int


@dataclass(frozen=True)
class _FormatOp:
    type: str
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _ResizeOp:
    width: Optional[int] = None
    height: Optional[int] = None
    fit: str = "cover"
    without_enlargement: bool = False
    kernel: str = "lanczos"
    background: Any = (0, 0, 0, 0)


@dataclass(frozen=True)
class _PipeOp:
    fn: Callable[[Image.Image], Image.Image]


_Op = Union[_FormatOp, _ResizeOp, _PipeOp]


class ImageHandle:
    def __init__(self, path: Union[str, Path], ops: tuple[_Op, ...] = ()):
        self.path = Path(path)
        self._ops = ops

    def __repr__(self) -> str:
        return f"ImageHandle({str(self.path)!r}, ops={len(self._ops)})"

    @property
    def ops(self) -> tuple[_Op, ...]:
        return self._ops

    def _with(self, op: _Op) -> "ImageHandle":
        return ImageHandle(self.path, self._ops + (op,))

    def apply_format(self, type: str, options: Optional[dict[str, Any]] = None) -> "ImageHandle":
        if type not in OUTPUT_FORMATS:
            raise ValueError(f"Unsupported output format: {type!r}")
        return self._with(_FormatOp(type, dict(options or {})))

    def resize(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        *,
        fit: str = "cover",
        without_enlargement: bool = False,
        kernel: str = "lanczos",
        background: Any = None,
    ) -> "ImageHandle":
        if fit not in FITS:
            raise ValueError(f"Unknown fit: {fit!r}. Expected one of {FITS}")
        if kernel not in KERNELS:
            raise ValueError(f"Unknown kernel: {kernel!r}. Expected one of {sorted(KERNELS)}")
        return self._with(
            _ResizeOp(
                width=width,
                height=height,
                fit=fit,
                without_enlargement=without_enlargement,
                kernel=kernel,
                background=(0, 0, 0, 0) if background is None else background,
            )
        )

    def pipe(self, fn: Callable[[Image.Image], Image.Image]) -> "ImageHandle":
        """Append an arbitrary Pillow operation to the pipeline."""
        return self._with(_PipeOp(fn))

    @property
    def target_format(self) -> Optional[str]:
        """Format the handle will encode to, without decoding pixels."""
        fmt = self._format_op()
        if fmt is not None:
            return fmt.type
        return self._source_format()

    def metadata(self) -> ImageMetadata:
        if not any(isinstance(op, (_ResizeOp, _PipeOp)) for op in self._ops):
            with Image.open(self.path) as im:
                width, height = im.size
            return ImageMetadata(self.target_format, width, height)
        im = self._process()
        return ImageMetadata(self.target_format, im.width, im.height)

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self._encode(buf)
        return buf.getvalue()

    def to_file(self, path: Union[str, Path]) -> ImageMetadata:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("wb") as f:
            im = self._encode(f)
        return ImageMetadata(self.target_format, im.width, im.height)

    def _format_op(self) -> Optional[_FormatOp]:
        for op in reversed(self._ops):
            if isinstance(op, _FormatOp):
                return op
        return None

    def _source_format(self) -> Optional[str]:
        with Image.open(self.path) as im:
            return im.format.lower() if im.format else None

    def _process(self) -> Image.Image:
        with Image.open(self.path) as src:
            im = src.copy()
        for op in self._ops:
            if isinstance(op, _ResizeOp):
                im = _resize(im, op)
            elif isinstance(op, _PipeOp):
                im = op.fn(im)
        return im

    def _encode(self, fp: BinaryIO) -> Image.Image:
        fmt = self.target_format
        pil_format = PIL_FORMATS.get(fmt or "")
        if pil_format is None:
            raise FormatInferenceError(fmt, self)
        fmt_op = self._format_op()
        options = fmt_op.options if fmt_op else {}
        im = self._process()
        if pil_format == "JPEG" and im.mode not in ("RGB", "L", "CMYK"):
            im = im.convert("RGB")
        im.save(fp, format=pil_format, **options)
        return im


def _resize(im: Image.Image, op: _ResizeOp) -> Image.Image:
    src_w, src_h = im.size
    width, height = op.width, op.height
    if width is None and height is None:
        return im
    method = KERNELS[op.kernel]

    if width is None or height is None:
        if width is None:
            width = max(1, round(src_w * height / src_h))
        else:
            height = max(1, round(src_h * width / src_w))
        if op.without_enlargement and (width > src_w or height > src_h):
            return im
        return im.resize((width, height), method)

    if op.without_enlargement:
        width, height = min(width, src_w), min(height, src_h)

    if op.fit == "fill":
        return im.resize((width, height), method)
    if op.fit == "cover":
        return ImageOps.fit(im, (width, height), method)
    if op.fit == "contain":
        if im.mode not in ("RGBA", "LA") and isinstance(op.background, tuple) and len(op.background) == 4:
            im = im.convert("RGBA")
        return ImageOps.pad(im, (width, height), method, color=op.background)
    if op.fit == "inside":
        scale = min(width / src_w, height / src_h)
    else:
        scale = max(width / src_w, height / src_h)
    size = (max(1, round(src_w * scale)), max(1, round(src_h * scale)))
    return im.resize(size, method)


def load(path: Union[str, Path]) -> ImageHandle:
    return ImageHandle(path)


def format_for(fmt: Optional[str], source: object = None) -> str:
    """Normalize an inferred format into the name used for output files."""
    if not fmt or fmt not in ALLOWED_FORMATS:
        logger.error(f"Could not infer image format for {source}")
        raise FormatInferenceError(fmt, source)
    if fmt == "heif":
        return "avif"
    return fmt
