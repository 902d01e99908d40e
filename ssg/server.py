"""Live rebuild mode for ssg.

Serves the generated website and rebuilds it whenever the content, static
or template directories change:

- Three polling watchers, one per source directory, report changes.
- LiveRebuildLoop reads one result from every watcher per cycle and
  rebuilds when any of them saw a change.
- DevServer serves the output directory over HTTP, never lists
  directories, answers missing paths with 404.html when present and
  tells connected browsers to reload over a websocket after a rebuild.

Key classes:
- LiveRebuildLoop: Combines watcher results and triggers rebuilds.
- DevServer: Runs the HTTP and websocket servers and the rebuild loop.
- _ReloadHandler: HTTP request handler that injects the reload script.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import queue
import threading
from collections.abc import Callable, Sequence
from dataclasses import replace
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

import click
import websockets

from .build import build_site
from .config import Config, ContentDirUnsetError, OutputDirUnsetError
from .distribute import CancelScope
from .errors import Cancelled, SSGError
from .templates import DEFAULT_STATIC_DIR, DEFAULT_TEMPLATES_DIR
from .watcher import FSWatcher, WatchResult

logger = logging.getLogger(__name__)


class LiveRebuildLoop:
    """Rebuilds the website whenever a watcher reports a change.

    Each cycle takes exactly one result from every watcher, in order, so a
    cycle lasts as long as the slowest watcher's tick.

    Attributes:
        watchers: Result queues of the watchers.
        rebuild: Called to rebuild the website.
        on_rebuilt: Called after every successful rebuild.
        rebuilds: Number of successful rebuilds so far.
    """

    def __init__(
        self,
        watchers: Sequence[queue.Queue[WatchResult]],
        rebuild: Callable[[], Any],
        on_rebuilt: Callable[[], None] | None = None,
    ):
        self.watchers = list(watchers)
        self.rebuild = rebuild
        self.on_rebuilt = on_rebuilt
        self.rebuilds = 0

    def run_cycle(self) -> bool:
        """Take one result from every watcher and rebuild if needed.

        A failed rebuild is logged and does not end the loop.

        Returns:
            True if a rebuild was attempted.

        Raises:
            WatchError: If a watcher could not walk its directory.
            Cancelled: If a watcher was cancelled.
        """
        changed = False
        for results in self.watchers:
            result = results.get()
            if result.error is not None:
                raise result.error
            changed = changed or result.has_changed
        if not changed:
            return False

        logger.info("something has changed, rebuilding...")
        try:
            self.rebuild()
        except SSGError as exc:
            logger.error("rebuild failed: %s", exc)
            return True
        except Exception:
            logger.exception("rebuild failed")
            return True
        self.rebuilds += 1
        if self.on_rebuilt is not None:
            self.on_rebuilt()
        return True

    def run(self) -> None:
        """Run cycles until a watcher ends.

        Returns normally once the watchers are cancelled.

        Raises:
            WatchError: If a watcher could not walk its directory.
        """
        try:
            while True:
                self.run_cycle()
        except Cancelled:
            logger.debug("live rebuild loop cancelled")


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects a live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript connecting to the websocket server.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=10001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):
        return self._serve_404()

    def _send_html(self, content: str, status: int) -> None:
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        encoded = content.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html, when present, with a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.is_file():
            self._send_html(error_page.read_text(encoding="utf-8"), 404)
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path = Path(self.translate_path(self.path))
        if path.is_dir():
            path = path / "index.html"
        if not path.is_file():
            return self._serve_404()
        if path.suffix == ".html":
            self._send_html(path.read_text(encoding="utf-8"), 200)
            return None
        return super().send_head()


class DevServer:
    """Development server with live rebuild and browser reload.

    Links in the served website point at the local server instead of the
    configured base URL.

    Attributes:
        config: Site configuration.
        content_dir: Content directory, watched for changes.
        output_dir: Directory that is served.
        host: Host the HTTP server listens on.
        http_port: Port of the HTTP server.
        ws_port: Port of the websocket server.
        check_interval: Seconds between two watcher ticks.
    """

    def __init__(
        self,
        config: Config,
        host: str = "localhost",
        http_port: int = 10000,
        ws_port: int | None = None,
        check_interval: float = 1.0,
    ):
        if config.content_dir is None:
            raise ContentDirUnsetError()
        if config.output_dir is None:
            raise OutputDirUnsetError()
        self.host = host
        self.http_port = http_port
        self.ws_port = ws_port if ws_port is not None else http_port + 1
        self.check_interval = check_interval
        self.config = replace(config, base_url=f"http://{host}:{http_port}")
        self.content_dir = config.content_dir
        self.output_dir = config.output_dir
        self._reload_script = _ReloadHandler.reload_script_template.format(
            ws_port=self.ws_port
        )
        self._scope = CancelScope()
        self._httpd: ThreadingHTTPServer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._ws_stop: asyncio.Event | None = None

    def watched_dirs(self) -> list[Path]:
        """Return the content, static and template directories, in that order."""
        return [
            self.content_dir,
            self.config.static_dir or DEFAULT_STATIC_DIR,
            self.config.templates_dir or DEFAULT_TEMPLATES_DIR,
        ]

    def start(self) -> None:  # pragma: no cover - integration path
        """Serve the website and rebuild it on changes until interrupted.

        The first watcher cycle always reports a change, which triggers the
        initial build.
        """
        watchers = [
            FSWatcher(path, self.check_interval).watch(self._scope)
            for path in self.watched_dirs()
        ]
        self._httpd = self._create_http_server()
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        click.echo(f"Serving {self.output_dir} at http://{self.host}:{self.http_port}")

        loop = LiveRebuildLoop(watchers, self.rebuild, self._broadcast_reload)
        try:
            loop.run()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        self._scope.cancel()
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        if self._ws_stop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._ws_stop.set)

    def rebuild(self) -> None:
        result = build_site(self.config, parent=self._scope)
        click.echo(f"Rebuilt {len(result.pages)} pages into {self.output_dir}")

    def _create_http_server(self) -> ThreadingHTTPServer:
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        return ThreadingHTTPServer((self.host, self.http_port), handler)

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("websocket server failed to start (port %d): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        self._ws_stop = asyncio.Event()
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await self._ws_stop.wait()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
