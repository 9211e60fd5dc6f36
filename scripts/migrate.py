#!/usr/bin/env python3
"""
Apply the audit database migrations.

Usage: scripts/migrate.py [DB_PATH]

DB_PATH defaults to TOKENPROXY_DATABASE_PATH, then data/tokenproxy.db. The
broker applies the same migrations itself when ``audit.sink = "sqlite"``;
this script is for preparing a database ahead of deployment.
"""

import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from tokenproxy.logging_config import configure_logging
from tokenproxy.persistence.schema import SchemaError, migrate

DEFAULT_DB_PATH = Path("data/tokenproxy.db")


def resolve_db_path(argv: Sequence[str]) -> Path:
    if argv:
        return Path(argv[0])
    return Path(os.getenv("TOKENPROXY_DATABASE_PATH", DEFAULT_DB_PATH))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Returns the process exit code."""
    argv = sys.argv[1:] if argv is None else argv
    configure_logging("INFO", json_output=False)

    db_path = resolve_db_path(argv)
    try:
        applied = migrate(db_path)
    except SchemaError as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1

    if applied:
        print(f"{db_path}: applied {', '.join(applied)}")
    else:
        print(f"{db_path}: already up to date")
    return 0


if __name__ == "__main__":
    sys.exit(main())
