from __future__ import annotations

import argparse
import logging
import os
import socket
import tempfile
import threading
import time
import urllib.error
import urllib.request
from pathlib import Path

import uvicorn

from control_assurance import get_runtime_version
from control_assurance.catalog import load_catalog

HOST = "127.0.0.1"
PREFERRED_PORT = 56471
DB_FILENAME = "control_assurance.db"

logger = logging.getLogger(__name__)


def _port_is_free(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((HOST, int(port)))
        except OSError:
            return False
    return True


def pick_port(preferred: int = PREFERRED_PORT, span: int = 20) -> int:
    """First free port in ``preferred..preferred+span``, else one the OS hands out."""
    for port in range(preferred, preferred + span + 1):
        if _port_is_free(port):
            return port
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((HOST, 0))
        return int(sock.getsockname()[1])


def _runtime_dir_candidates(explicit: str) -> list[Path]:
    if explicit:
        return [Path(explicit).expanduser()]
    out: list[Path] = []
    configured = os.getenv("RUNTIME_DIR", "").strip()
    if configured:
        out.append(Path(configured).expanduser())
    local_appdata = os.getenv("LOCALAPPDATA", "").strip()
    if local_appdata:
        out.append(Path(local_appdata) / "ControlAssurance" / "data")
    out.append(Path.home() / ".control_assurance" / "data")
    out.append(Path(tempfile.gettempdir()) / "ControlAssurance" / "data")
    return out


def prepare_runtime(data_dir: str = "") -> Path:
    """Pick a writable data directory and point the service's settings at it.

    Explicit environment values for ``DATABASE_URL`` win over the derived SQLite path.
    """
    for candidate in _runtime_dir_candidates(data_dir):
        try:
            candidate.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.warning("Runtime dir not writable, trying next: %s", candidate)
            continue
        os.environ["RUNTIME_DIR"] = str(candidate)
        os.environ.setdefault("DATABASE_URL", f"sqlite:///{(candidate / DB_FILENAME).as_posix()}")
        return candidate
    raise RuntimeError("Unable to create a writable runtime data directory.")


def _report_when_healthy(health_url: str, timeout_seconds: float = 30.0) -> None:
    def _poll() -> None:
        deadline = time.time() + timeout_seconds
        while time.time() < deadline:
            try:
                with urllib.request.urlopen(health_url, timeout=2):
                    print(f"Ready: {health_url}", flush=True)
                    return
            except (urllib.error.URLError, OSError):
                time.sleep(0.35)
        logger.warning("Service did not report healthy within %.0fs (%s)", timeout_seconds, health_url)

    threading.Thread(target=_poll, daemon=True).start()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assurance-serve", description="Run the control assurance API locally.")
    parser.add_argument("--port", type=int, default=PREFERRED_PORT, help="Preferred port (next free one is used)")
    parser.add_argument("--data-dir", default="", help="Directory for the SQLite database (default: per-user dir)")
    parser.add_argument("--log-level", default="warning", help="uvicorn log level (default: warning)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    data_dir = prepare_runtime(args.data_dir)

    # Imported late so the settings pick up the runtime environment prepared above.
    from app.main import app as fastapi_app

    catalog = load_catalog()
    port = pick_port(args.port)
    base_url = f"http://{HOST}:{port}"
    print(f"Version: {get_runtime_version()}", flush=True)
    print(f"Template library: v{catalog.version} ({len(catalog.active_templates())} templates)", flush=True)
    print(f"Data dir: {data_dir.resolve()}", flush=True)
    print(f"API: {base_url}/api", flush=True)

    _report_when_healthy(base_url + "/healthz")
    uvicorn.run(fastapi_app, host=HOST, port=port, reload=False, access_log=False, log_level=args.log_level)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
