#!/usr/bin/env python3
"""
Script: init_db.py
Purpose: Create the marketplace schema on an empty database

Creates every table declared under marketplace.models. Tables that already
exist are left as they are, so the script is safe to re-run.

Usage:
    cd backend && source venv/bin/activate
    python scripts/init_db.py [--list]

Options:
    --list    Print the tables that would be created and exit
"""
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).parent.parent

env_path = BACKEND_DIR / '.env.development'
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv(BACKEND_DIR / '.env')

from marketplace.core.database import Base, init_db  # noqa: E402
from marketplace import models  # noqa: E402,F401

logger = logging.getLogger("init_db")


def main():
    parser = argparse.ArgumentParser(description="Create the marketplace schema")
    parser.add_argument("--list", action="store_true", help="List tables and exit")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    tables = sorted(Base.metadata.tables.keys())
    if args.list:
        for name in tables:
            print(name)
        return

    logger.info(f"Creating {len(tables)} tables (existing ones are kept)")
    init_db()


if __name__ == "__main__":
    main()
