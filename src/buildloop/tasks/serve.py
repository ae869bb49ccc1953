"""Static file server for the dev loop.

Serves the build output directory with Flask on a background thread so the
pipeline can carry on (install, compile, watch) while the app is reachable.
"""

import threading
from pathlib import Path

from flask import Flask, abort, send_from_directory
from werkzeug.serving import make_server

from ..orchestrator import operation
from ..orchestrator.logging import get_logger


def create_app(base: Path) -> Flask:
    app = Flask(__name__, static_folder=None)
    root = str(base.resolve())

    @app.route("/", defaults={"filename": ""})
    @app.route("/<path:filename>")
    def static_files(filename: str):
        target = base / filename
        if filename == "" or target.is_dir():
            filename = f"{filename.rstrip('/')}/index.html".lstrip("/")
        if not (base / filename).is_file():
            abort(404)
        return send_from_directory(root, filename, max_age=0)

    return app


class StaticServer:
    def __init__(self, base: Path, hostname: str, port: int):
        self.base = base
        self._server = make_server(hostname, port, create_app(base), threaded=True)
        self.hostname = hostname
        self.port = self._server.server_port
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="buildloop-serve", daemon=True
        )

    @property
    def url(self) -> str:
        return f"http://{self.hostname}:{self.port}/"

    def start(self) -> "StaticServer":
        self._thread.start()
        return self

    def shutdown(self) -> None:
        if self._thread.is_alive():
            self._server.shutdown()
            self._thread.join(timeout=5)
        self._server.server_close()


@operation(kind="serve")
def serve(options, ctx):
    """Start serving `base` on `hostname:port` and return immediately.

    With `keepalive: true` the step blocks until the run is stopped.
    """
    logger = get_logger("buildloop.serve")
    base = ctx.path(options.get("base", "."))
    base.mkdir(parents=True, exist_ok=True)
    server = StaticServer(
        base, str(options.get("hostname", "localhost")), int(options.get("port", 8000))
    ).start()
    ctx.background.append(server)
    logger.info("Serving %s at %s", ctx.rel(base), server.url)
    if options.get("keepalive"):
        ctx.stop.wait()
