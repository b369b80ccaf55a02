#!/usr/bin/env python3
"""
Production entrypoint: release phase (migrations + seed), then exec gunicorn on app.wsgi:app.

Env:
  PORT              bind port (default 8080)
  WEB_CONCURRENCY   gunicorn workers (default 2)
  GUNICORN_TIMEOUT  worker timeout in seconds (default 60)

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _port() -> str:
    port = os.environ.get("PORT", "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        return "8080"
    if not port.isdigit() or not 1 <= int(port) <= 65535:
        print(f"ERROR: Invalid PORT value '{port}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)
    return port


def gunicorn_argv(port: str) -> list[str]:
    workers = os.environ.get("WEB_CONCURRENCY", "").strip() or "2"
    timeout = os.environ.get("GUNICORN_TIMEOUT", "").strip() or "60"
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", workers,
        "--timeout", timeout,
        # create_app() runs once in the master and disposes its pool in each forked worker.
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _port()

    print("=== QDMS release phase ===", flush=True)
    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    argv = gunicorn_argv(port)
    print(f"=== Starting gunicorn on 0.0.0.0:{port} ({' '.join(argv[4:8])}) ===", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
