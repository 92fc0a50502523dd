#!/usr/bin/env python3
"""
Container startup script.

1. Runs migrations + seed (release.py)
2. Starts gunicorn (replaces this process via os.execvp)

Usage:
    python scripts/start.py

Env:
    PORT              bind port (default 8080)
    WEB_CONCURRENCY   gunicorn workers (default 2)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    port = os.environ.get("PORT", "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        port = "8080"

    try:
        port_int = int(port)
        if port_int < 1 or port_int > 65535:
            raise ValueError("Port out of range")
    except ValueError:
        print(f"ERROR: Invalid PORT value '{port}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)

    workers = os.environ.get("WEB_CONCURRENCY", "").strip() or "2"
    print(f"PORT={port} validated", flush=True)

    print("=== Running release phase ===", flush=True)
    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print("=== Starting gunicorn ===", flush=True)
    print(f"Gunicorn binding to 0.0.0.0:{port} with {workers} workers", flush=True)

    # exec so gunicorn becomes PID 1 and receives signals directly
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", workers,
            "--timeout", "60",
            "--preload",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()
