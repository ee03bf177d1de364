"""Bottle dev server streaming variants on demand.

Bottle handlers are synchronous, so the plugin runs on a private event loop in
a background thread and handlers submit coroutines to it.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Coroutine, TypeVar

from bottle import Bottle, HTTPResponse, abort, request

from .config import DEV_PREFIX
from .errors import ImageGenError
from .plugin import ImagePlugin

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DevServer:
    def __init__(self, plugin: ImagePlugin):
        self.plugin = plugin
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, name="imagegen-loop", daemon=True)
        self.app = Bottle()
        self.app.route(DEV_PREFIX + "<id>", callback=self.variant)
        self.app.route("/module", callback=self._module_route)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        if self._thread.is_alive():
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join()
        self.loop.close()

    def _call(self, coro: Coroutine[Any, Any, T]) -> T:
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()

    def variant(self, id: str) -> HTTPResponse:
        res = self._call(self.plugin.dev_request(DEV_PREFIX + id))
        if res is None or res.status != 200:
            abort(404, f"Unknown image: {id}")
        return HTTPResponse(body=res.body, status=200, headers=res.headers)

    def module_source(self, id: str) -> HTTPResponse:
        try:
            source = self._call(self.plugin.load(id))
        except ImageGenError as e:
            logger.warning(f"cannot load module {id}: {e}")
            abort(404, str(e))
        if source is None:
            abort(404, f"Not an image module: {id}")
        return HTTPResponse(
            body=source,
            status=200,
            headers={"Content-Type": "text/javascript; charset=utf-8"},
        )

    def _module_route(self) -> HTTPResponse:
        id = request.query.getunicode("id")
        if not id:
            abort(400, "Missing id parameter")
        return self.module_source(id)

    def run(self, host: str = "127.0.0.1", port: int = 5173) -> None:
        self.start()
        try:
            self.app.run(host=host, port=port, quiet=True)
        finally:
            self.stop()
