from __future__ import annotations

from pathlib import Path
from typing import Optional


class ImageGenError(Exception):
    pass


class ConfigError(ImageGenError):
    def __init__(self, message: str, path: Optional[Path] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        if path:
            loc = f"{path}"
            if line:
                loc += f":{line}"
            message = f"{loc}: {message}"
        super().__init__(message)


class MissingPresetParameter(ImageGenError):
    def __init__(self, path: str, url_param: str):
        self.path = path
        self.url_param = url_param
        super().__init__(f"No preset was defined for {path} (expected ?{url_param}=<name>)")


class UnknownPreset(ImageGenError):
    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(f"Unknown image preset '{name}'. Available presets: {sorted(available)}")


class SourceUnavailable(ImageGenError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The image {path} doesn't seem to exist")


class FormatInferenceError(ImageGenError):
    def __init__(self, fmt: Optional[str], source: object = None):
        self.format = fmt
        where = f" for {source}" if source is not None else ""
        super().__init__(f"Could not infer image format{where} (got {fmt!r})")


class TransformFailure(ImageGenError):
    def __init__(self, path: str, identity: str, reason: str):
        self.path = path
        self.identity = identity
        super().__init__(f"Failed to generate {identity} from {path}: {reason}")


class CacheIOError(ImageGenError):
    def __init__(self, action: str, path: Path, reason: str):
        self.action = action
        self.path = path
        super().__init__(f"Cache {action} failed for {path}: {reason}")


class UnknownVariant(ImageGenError):
    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"{identity} not found in cache")
