from __future__ import annotations

import argparse
import json
import logging
import sys
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any

# Allow running from repo root without installing.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
sys.path.insert(0, str(SRC_DIR))

from investor_leasing.api import handle  # noqa: E402
from investor_leasing.config import Settings, load_settings  # noqa: E402
from investor_leasing.logging_config import configure_logging  # noqa: E402
from investor_leasing.storage import ScenarioStore, create_store  # noqa: E402

logger = logging.getLogger("investor_leasing.server")


class App(BaseHTTPRequestHandler):
    store: ScenarioStore
    settings: Settings

    def _send_json(self, status: int, payload: Any) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(data)

    def _read_json_body(self) -> Any:
        n = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(n) if n > 0 else b""
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))

    def _dispatch(self) -> None:
        try:
            try:
                body = self._read_json_body() if self.command in ("POST", "PUT") else None
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                return self._send_json(HTTPStatus.BAD_REQUEST, {"error": f"Invalid JSON body: {e}"})
            status, payload = handle(self.command, self.path, body, store=self.store, settings=self.settings)
            return self._send_json(status, payload)
        except Exception as e:  # pragma: no cover
            logger.exception("unhandled error for %s %s", self.command, self.path)
            return self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": f"{type(e).__name__}: {e}"})

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        self._dispatch()

    def do_POST(self) -> None:  # noqa: N802
        self._dispatch()

    def do_PUT(self) -> None:  # noqa: N802
        self._dispatch()

    def do_DELETE(self) -> None:  # noqa: N802
        self._dispatch()

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


def main() -> int:
    settings = load_settings()
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--database-url", default=settings.database_url, help="SQLAlchemy URL for saved calculations.")
    ap.add_argument("--log-level", default=settings.log_level)
    args = ap.parse_args()

    configure_logging(args.log_level)

    # Bind handler class vars
    App.settings = settings
    App.store = create_store(args.database_url)

    httpd = ThreadingHTTPServer((args.host, args.port), App)
    logger.info("Serving API at http://%s:%d/ (database: %s)", args.host, args.port, args.database_url)
    httpd.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
