"""Client for a remote media-generation service with sync and polled async modes.

Environment files next to the ``server`` directory are loaded on import so
``mediagen.config`` sees ``STABILITY_HOST``/``WORKER_TIMEOUT`` overrides.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

_SERVER_DIR = Path(__file__).resolve().parent.parent

for _env_file, _override in ((".env", False), (".env.local", True)):
    load_dotenv(_SERVER_DIR / _env_file, override=_override)
