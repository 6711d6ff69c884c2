"""Migrate the MediaFlow database to the latest Alembic revision."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv


def main() -> None:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--env", type=str, default=None, help="Load secrets/env.<env> before migrating.")
    ap.add_argument("--revision", type=str, default="head")
    args = ap.parse_args()

    root = Path(__file__).resolve().parents[1]
    if args.env:
        env_path = root / "secrets" / f"env.{args.env}"
        if not env_path.exists():
            raise SystemExit(f"Could not find an environment file for '{args.env}' at {env_path}")
        load_dotenv(env_path, override=True)

    cfg = Config(str(root / "alembic.ini"))
    cfg.set_main_option("script_location", str(root / "alembic"))
    db_url = os.getenv("DATABASE_URL")
    if db_url:
        cfg.set_main_option("sqlalchemy.url", db_url)

    command.upgrade(cfg, args.revision)
    print(f"MediaFlow database migrated to {args.revision}")


if __name__ == "__main__":
    main()
