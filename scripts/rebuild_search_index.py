#!/usr/bin/env python3
# scripts/rebuild_search_index.py
import argparse
from dataclasses import replace

from db import load_settings
from storage import open_backend


def main() -> None:
    ap = argparse.ArgumentParser(description="Recompute the tool search index from the tools table.")
    ap.add_argument("--database-url", default=None, help="SQLAlchemy URL (default: APP_DATABASE_URL / APP_DB_PATH)")
    args = ap.parse_args()

    settings = load_settings()
    if args.database_url:
        settings = replace(settings, database_url=args.database_url)

    backend = open_backend(settings)
    try:
        backend.rebuild_search()
        print(f"Rebuilt search index ({backend.name}/{backend.search.name})")
    finally:
        backend.close()


if __name__ == "__main__":
    main()
