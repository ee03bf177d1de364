from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Optional

from .errors import ImageGenError
from .plugin import ImagePlugin, write_asset

MODULES_FILENAME = "imagegen-modules.json"


@dataclass
class StageResult:
    name: str
    success: bool
    duration_sec: float
    message: str = ""


@dataclass
class BuildResult:
    success: bool
    modules: dict[str, dict[str, Any]] = field(default_factory=dict)
    assets: list[str] = field(default_factory=list)
    purged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    output_path: Optional[Path] = None
    stage_results: list[StageResult] = field(default_factory=list)


async def build_modules(plugin: ImagePlugin, module_ids: list[str], out_dir: Path) -> BuildResult:
    """Resolve every module, emit the generated assets and reconcile the cache.

    Any per-request error fails the build before anything is emitted.
    """
    result = BuildResult(success=False)

    start = time.monotonic()
    outcomes = await asyncio.gather(*(plugin.resolve(id) for id in module_ids), return_exceptions=True)
    for id, outcome in zip(module_ids, outcomes):
        if isinstance(outcome, ImageGenError):
            result.errors.append(f"{id}: {outcome}")
        elif isinstance(outcome, BaseException):
            raise outcome
        elif outcome is None:
            result.skipped.append(id)
        else:
            result.modules[id] = outcome.to_dict()
    result.stage_results.append(
        StageResult("resolve", not result.errors, time.monotonic() - start, f"{len(result.modules)} modules")
    )
    if result.errors:
        return result

    start = time.monotonic()
    out_dir.mkdir(parents=True, exist_ok=True)
    bundle = await plugin.generate_bundle(emit=partial(write_asset, out_dir))
    result.assets = [a.file_name for a in bundle.assets]
    result.purged = bundle.purged
    result.stage_results.append(
        StageResult("emit", True, time.monotonic() - start, f"{len(bundle.assets)} assets, {len(bundle.purged)} purged")
    )

    result.output_path = out_dir / MODULES_FILENAME
    result.output_path.write_text(json.dumps(result.modules, indent=2), encoding="utf-8")

    result.success = True
    return result
