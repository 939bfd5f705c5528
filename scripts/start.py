#!/usr/bin/env python3
"""
Container entrypoint: migrate, then hand the process over to gunicorn.

Environment:
    PORT             listen port (default 8080)
    WEB_CONCURRENCY  gunicorn worker count (default 2)

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

DEFAULT_PORT = 8080
DEFAULT_WORKERS = 2


def _int_env(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if not lo <= value <= hi:
        print(f"[start] {name}={raw!r} is not an integer in {lo}-{hi}", flush=True)
        sys.exit(1)
    return value


def gunicorn_argv(port: int, workers: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", "60",
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _int_env("PORT", DEFAULT_PORT, lo=1, hi=65535)
    workers = _int_env("WEB_CONCURRENCY", DEFAULT_WORKERS, lo=1, hi=64)

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"[start] release failed: {e}", flush=True)
        sys.exit(1)

    print(f"[start] gunicorn on :{port} with {workers} worker(s)", flush=True)
    # Replaces this process, so gunicorn receives container signals directly.
    os.execvp("gunicorn", gunicorn_argv(port, workers))


if __name__ == "__main__":
    main()
