"""Development server for Sitkin.

Serves the generated site while rebuilding it on every change:
- Builds once in dev mode (assets keep their names), then watches the project.
- Serves ``gen/`` with extensionless URLs mapped to ``.html`` files.
- Injects a reload script into HTML responses; the page reloads after each
  successful rebuild.
- Opens a browser window once the server answers.

A failed build is logged and the server keeps running, so a bad edit never
ends the session.

Key classes:
- DevServer: Main class for running the development server.
- _SiteHandler: HTTP request handler for the generated site.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import time
import urllib.error
import urllib.request
import webbrowser
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

import websockets

from .build import build_site
from .errors import SitkinError
from .project import OUTPUT_DIR
from .watcher import watch

logger = logging.getLogger(__name__)

REBUILD_DELAY = 0.5
BROWSER_WAIT = 1.0


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (host optional) into its parts.

    Examples:
        >>> parse_address("localhost:8080")
        ('localhost', 8080)

        >>> parse_address(":9000")
        ('', 9000)
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid address {address!r} (expected host:port)")
    return host.strip("[]"), int(port)


class _SiteHandler(SimpleHTTPRequestHandler):
    """Serves the generated site with live reload injected into pages.

    Attributes:
        reload_script: Script tag connecting to the reload websocket.
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
    reload_script = reload_script_template.format(ws_port=8081)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):
        self.send_error(404, "File not found")
        return None

    def translate_path(self, path: str) -> str:
        """Map ``/`` to index.html and extensionless paths to ``.html`` files."""
        url_path = urlsplit(path).path
        if url_path in ("", "/"):
            url_path = "/index.html"
        elif "." not in url_path.rsplit("/", 1)[-1]:
            url_path = url_path.rstrip("/") + ".html"
        return super().translate_path(url_path)

    def send_head(self):
        path = Path(self.translate_path(self.path))
        if not path.is_file():
            self.send_error(404, "File not found")
            return None
        if path.suffix != ".html":
            return super().send_head()
        content = path.read_text(encoding="utf-8")
        if "</body>" in content:
            content = content.replace("</body>", f"{self.reload_script}</body>")
        else:
            content += self.reload_script
        encoded = content.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(encoded)
        return None


class DevServer:
    """Development server with rebuild-on-change and live reload.

    Attributes:
        project_root: Root directory of the project.
        output_dir: Directory the site is served from.
        host: HTTP host.
        http_port: HTTP port.
        ws_port: Port for the reload websocket (HTTP port + 1).
        verbose: Passed through to every build.
        open_browser: Whether to open a browser window on start.
    """

    def __init__(
        self,
        project_root: Path,
        address: str = "localhost:8080",
        verbose: bool = False,
        open_browser: bool = True,
    ):
        self.project_root = project_root
        self.output_dir = project_root / OUTPUT_DIR
        self.host, self.http_port = parse_address(address)
        self.ws_port = self.http_port + 1
        self.verbose = verbose
        self.open_browser = open_browser
        self._reload_script = _SiteHandler.reload_script_template.format(
            ws_port=self.ws_port
        )
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._httpd: ThreadingHTTPServer | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host or 'localhost'}:{self.http_port}"

    def start(self) -> None:  # pragma: no cover - integration path
        self.rebuild()
        self._httpd = self._make_http_server()
        logger.info("Serving %s at %s", self.output_dir, self.url)
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        if self.open_browser:
            threading.Thread(target=self._open_browser, daemon=True).start()
        try:
            watch(self.project_root, REBUILD_DELAY, OUTPUT_DIR, self._rebuild_and_reload)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._httpd:
            self._httpd.shutdown()
            self._httpd = None
        self._loop.call_soon_threadsafe(self._loop.stop)

    def rebuild(self) -> bool:
        """Build the site in dev mode, logging instead of raising on failure.

        Returns:
            True if the build succeeded.
        """
        try:
            build_site(self.project_root, dev_mode=True, verbose=self.verbose)
        except (SitkinError, OSError) as exc:
            logger.error("Error building sitkin project: %s", exc)
            return False
        return True

    def _rebuild_and_reload(self) -> None:
        if self.rebuild():
            self._broadcast_reload()

    def _make_http_server(self) -> ThreadingHTTPServer:
        handler_cls = type(
            "_SiteHandlerWithPort",
            (_SiteHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        return ThreadingHTTPServer((self.host, self.http_port), handler)

    def _open_browser(self) -> None:
        deadline = time.monotonic() + BROWSER_WAIT
        delay = 0.001
        while time.monotonic() < deadline:
            try:
                with urllib.request.urlopen(self.url, timeout=BROWSER_WAIT) as resp:
                    if resp.status == 200:
                        webbrowser.open(self.url)
                        return
            except (urllib.error.URLError, OSError):
                pass
            time.sleep(delay)
            delay *= 2
        logger.warning("After waiting %ss, no content served at %s", BROWSER_WAIT, self.url)

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.warning("Reload server failed to start (port %s): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host or "0.0.0.0", self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        if not self._loop.is_running():
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)
