from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from .presets import VariantArgs

ID_LENGTH = 8


def stable_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def asset_hash(content: Union[str, bytes], n: int = ID_LENGTH) -> str:
    """Short sha256 hex digest used in identities and cache file names."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()[:n]


def identify(source_path: str, args: VariantArgs) -> str:
    """Deterministic identity of a variant of ``source_path``.

    The digest covers the source path and the canonical form of ``args``
    (absent optional fields stripped, keys sorted); a ``.{format}`` suffix is
    appended when the variant converts to another format.
    """
    h = hashlib.sha256()
    h.update(str(source_path).encode("utf-8"))
    h.update(stable_json(args.canonical()).encode("utf-8"))
    base = h.hexdigest()[:ID_LENGTH]
    if args.format.type != "original":
        return f"{base}.{args.format.type}"
    return base
