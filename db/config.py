"""
db/config.py

Environment helpers shared by the catalog database and the sync settings loader.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILENAMES = (".env", ".env.local")
DATABASE_URL_VARIABLES = ("CATALOG_DATABASE_URL", "DATABASE_URL")


def load_env_files(project_root: Path | None = None) -> None:
    """
    Load KEY=VALUE pairs from `.env` then `.env.local` without overriding the process environment.
    """

    root = project_root or Path(__file__).resolve().parents[1]
    for filename in ENV_FILENAMES:
        env_path = root / filename
        if not env_path.is_file():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if line.startswith("export "):
                line = line[len("export ") :].strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if key and key not in os.environ:
                os.environ[key] = value.strip().strip('"').strip("'")


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite postgres URLs to the psycopg 3 driver form SQLAlchemy expects.
    """

    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme) :]
    return url


def resolve_database_url() -> str:
    """
    Return the catalog database URL.

    ``CATALOG_DATABASE_URL`` wins over ``DATABASE_URL`` so the catalog can live
    apart from other application databases.
    """

    load_env_files()

    for name in DATABASE_URL_VARIABLES:
        value = (os.getenv(name) or "").strip()
        if value:
            return normalize_postgres_url(value)

    raise RuntimeError(
        "No catalog database URL configured. Set CATALOG_DATABASE_URL or DATABASE_URL, "
        "or run with CATALOG_BACKEND=memory."
    )
