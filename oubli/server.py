from __future__ import annotations

import argparse
import json
import logging
import threading
import time
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

from .constants import (
    ANONYMOUS_VISITOR,
    DEFAULT_DIST_DIR,
    DEFAULT_HOST,
    DEFAULT_PORT,
    LOG_LEVEL,
    MAX_BODY_BYTES,
    MAX_VISITOR_ID_CHARS,
    SWEEP_INTERVAL_SECONDS,
    VISITOR_HEADER,
)
from .features import FEATURES_BY_PATH, ContributionRejected
from .metrics import process_snapshot
from .static import resolve_static
from .store import HouseStore
from .sweeper import SweepWorker

_LOGGER = logging.getLogger(__name__)

_BODY_TOO_LARGE = object()
_DRAIN_FACTOR = 16


def _json_compact(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class HouseHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    store: HouseStore
    dist_root: Path = Path(DEFAULT_DIST_DIR)
    started_monotonic: float = 0.0
    max_body_bytes: int = MAX_BODY_BYTES

    def _set_cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", f"Content-Type, {VISITOR_HEADER}")

    def _send_bytes(
        self,
        body: bytes,
        content_type: str,
        status: int = HTTPStatus.OK,
        *,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self.send_response(status)
        self._set_cors_headers()
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        if isinstance(extra_headers, dict):
            for key, value in extra_headers.items():
                self.send_header(str(key), str(value))
        self.end_headers()
        if body:
            try:
                self.wfile.write(body)
            except (
                BrokenPipeError,
                ConnectionResetError,
                ConnectionAbortedError,
                OSError,
            ):
                pass

    def _send_json(self, payload: Any, status: int = HTTPStatus.OK) -> None:
        self._send_bytes(
            _json_compact(payload).encode("utf-8"),
            "application/json; charset=utf-8",
            status=status,
        )

    def _send_error_json(self, error: str, status: int = HTTPStatus.BAD_REQUEST) -> None:
        self._send_json({"ok": False, "error": error}, status=status)

    def _read_raw_body(self) -> bytes | object:
        try:
            length = int(self.headers.get("Content-Length", "0"))
        except ValueError:
            length = 0
        if length > self.max_body_bytes:
            self._discard_body(length)
            return _BODY_TOO_LARGE
        if length <= 0:
            return b""
        return self.rfile.read(length)

    def _discard_body(self, length: int) -> None:
        # Oversized bodies are drained without buffering; past the drain
        # allowance the connection is simply dropped.
        if length > self.max_body_bytes * _DRAIN_FACTOR:
            self.close_connection = True
            return
        remaining = length
        while remaining > 0:
            chunk = self.rfile.read(min(remaining, 65536))
            if not chunk:
                self.close_connection = True
                return
            remaining -= len(chunk)

    @staticmethod
    def _decode_json(raw: bytes) -> dict[str, Any] | None:
        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError):
            return None
        return decoded if isinstance(decoded, dict) else None

    def _visitor_id(self) -> str:
        visitor = str(self.headers.get(VISITOR_HEADER, "") or "").strip()
        return visitor[:MAX_VISITOR_ID_CHARS] or ANONYMOUS_VISITOR

    def _serve_static(self) -> None:
        asset = resolve_static(self.dist_root, self.path)
        if asset is None:
            self._send_bytes(b"not found", "text/plain; charset=utf-8", HTTPStatus.NOT_FOUND)
            return
        try:
            body = asset.read()
        except OSError:
            _LOGGER.warning("static read failed for %s", asset.path)
            self._send_bytes(b"not found", "text/plain; charset=utf-8", HTTPStatus.NOT_FOUND)
            return
        self._send_bytes(
            body,
            asset.content_type,
            extra_headers={"Cache-Control": asset.cache_control},
        )

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self._set_cors_headers()
        self.send_header("Access-Control-Max-Age", "86400")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        path = parsed.path

        if path == "/api/seeds":
            params = parse_qs(parsed.query)
            room = str(params.get("room", [""])[0] or "")
            self._send_json(self.store.harvest_seeds(room or None, self._visitor_id()))
            return

        if path == "/api/pulse":
            self._send_json(self.store.pulse_snapshot())
            return

        if path == "/api/footprints":
            self._send_json(self.store.footprints_snapshot())
            return

        feature = FEATURES_BY_PATH.get(path)
        if feature is not None:
            self._send_json(self.store.gather(feature.name, self._visitor_id()))
            return

        if path == "/healthz":
            self._send_json(
                {
                    "ok": True,
                    "status": "alive",
                    "counts": self.store.counts(),
                    "process": process_snapshot(self.started_monotonic),
                }
            )
            return

        self._serve_static()

    def do_POST(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        path = parsed.path

        raw = self._read_raw_body()
        if raw is _BODY_TOO_LARGE:
            self._send_error_json(
                "body too large",
                status=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            )
            return

        feature = FEATURES_BY_PATH.get(path)
        if path not in {"/api/seeds", "/api/pulse", "/api/footprints"} and feature is None:
            self._serve_static()
            return

        req = self._decode_json(raw)
        if req is None:
            self._send_error_json("invalid JSON")
            return

        visitor = self._visitor_id()
        try:
            if path == "/api/seeds":
                total = self.store.plant_seed(req.get("room"), req.get("text"), visitor)
                self._send_json({"ok": True, "totalSeeds": total})
                return

            if path == "/api/pulse":
                self.store.record_pulse(req.get("room"))
                self._send_json({"ok": True})
                return

            if path == "/api/footprints":
                self.store.record_footprint(req.get("room"), req.get("from"), visitor)
                self._send_json({"ok": True})
                return

            self._send_json(self.store.contribute(feature.name, req, visitor))
        except ContributionRejected as exc:
            self._send_error_json(str(exc))

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        _LOGGER.info("%s - %s", self.address_string(), format % args)


def make_handler(
    store: HouseStore,
    dist_root: Path,
    *,
    started_monotonic: float | None = None,
    max_body_bytes: int = MAX_BODY_BYTES,
):
    class BoundHouseHandler(HouseHandler):
        pass

    BoundHouseHandler.store = store
    BoundHouseHandler.dist_root = Path(dist_root).resolve()
    BoundHouseHandler.started_monotonic = (
        time.monotonic() if started_monotonic is None else float(started_monotonic)
    )
    BoundHouseHandler.max_body_bytes = max(1, int(max_body_bytes))
    return BoundHouseHandler


def serve(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    dist_root: Path = DEFAULT_DIST_DIR,
    *,
    sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
) -> None:
    store = HouseStore()
    handler_class = make_handler(store, dist_root)
    server = ThreadingHTTPServer((host, port), handler_class)
    server.daemon_threads = True

    stop_event = threading.Event()
    sweeper = SweepWorker(
        store=store,
        stop_event=stop_event,
        interval_seconds=sweep_interval_seconds,
    )
    sweeper.start()

    _LOGGER.info("oubli server listening on http://%s:%d", host, server.server_port)
    _LOGGER.info("shared state is in-memory and resets on restart; serving %s", handler_class.dist_root)
    try:
        server.serve_forever(poll_interval=0.5)
    except KeyboardInterrupt:
        pass
    finally:
        stop_event.set()
        server.server_close()
        sweeper.join(timeout=3.0)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Shared memory server for the oubli house")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--dist-dir", type=Path, default=DEFAULT_DIST_DIR)
    parser.add_argument(
        "--sweep-interval",
        type=float,
        default=SWEEP_INTERVAL_SECONDS,
        help="Seconds between stale presence sweeps",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    serve(
        args.host,
        args.port,
        args.dist_dir,
        sweep_interval_seconds=args.sweep_interval,
    )
    return 0
