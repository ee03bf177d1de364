from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import parse_qsl


@dataclass(frozen=True)
class ParsedRequest:
    path: str
    query: dict[str, str] = field(default_factory=dict)


def parse_id(id: str) -> ParsedRequest:
    """Split a module id at the first ``?`` into a path and its query parameters."""
    path, sep, query = id.partition("?")
    if not sep:
        return ParsedRequest(path=path)
    return ParsedRequest(path=path, query=dict(parse_qsl(query, keep_blank_values=True)))
