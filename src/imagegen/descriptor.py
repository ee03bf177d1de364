"""Source-set descriptors returned to the host for each image module."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from .errors import SourceUnavailable

SourceSetEntry = tuple[str, str]


@dataclass(frozen=True)
class ImageAttr:
    src: str
    srcset: str
    width: Optional[int] = None
    height: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"_type": "img", "src": self.src, "srcset": self.srcset}
        if self.width is not None:
            data["width"] = self.width
        if self.height is not None:
            data["height"] = self.height
        return data


@dataclass(frozen=True)
class BackgroundAttr:
    src: str
    image_set: str

    def to_dict(self) -> dict[str, Any]:
        return {"_type": "bg", "src": self.src, "imageSet": self.image_set}


SourceSetDescriptor = Union[ImageAttr, BackgroundAttr]


def _entry(url: str, condition: str) -> str:
    return " ".join(part for part in (url, condition) if part)


def canonical_source(path: str, source_set: Sequence[SourceSetEntry]) -> str:
    """The last (largest) entry is the fallback ``src``."""
    if not source_set or not source_set[-1][0]:
        raise SourceUnavailable(path)
    return source_set[-1][0]


def build_descriptor(
    path: str,
    source_set: Sequence[SourceSetEntry],
    is_background_image: bool = False,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> SourceSetDescriptor:
    src = canonical_source(path, source_set)
    if is_background_image:
        image_set = ", ".join(_entry(f"url({url})", condition) for url, condition in source_set)
        return BackgroundAttr(src=f"url({src})", image_set=image_set)
    srcset = ", ".join(_entry(url, condition) for url, condition in source_set)
    return ImageAttr(src=src, srcset=srcset, width=width, height=height)


def to_module(descriptor: SourceSetDescriptor) -> str:
    return f"export default {json.dumps(descriptor.to_dict())};\n"
