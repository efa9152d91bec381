#!/usr/bin/env python3
# scripts/prune_orphaned_uploads.py
import argparse

from assets import AssetStore
from db import load_settings
from inventory import InventoryService
from storage import open_backend


def main() -> None:
    ap = argparse.ArgumentParser(description="List (and optionally delete) uploaded images no tool references.")
    ap.add_argument("--delete", action="store_true", help="Delete the orphaned files instead of listing them")
    args = ap.parse_args()

    settings = load_settings()
    backend = open_backend(settings)
    try:
        inventory = InventoryService(backend, AssetStore(settings.upload_dir))
        if args.delete:
            orphans = inventory.prune_orphaned_assets()
            action = "Deleted"
        else:
            orphans = inventory.find_orphaned_assets()
            action = "Orphaned"

        for name in orphans:
            print(f"{action}: {name}")
        print(f"{len(orphans)} file(s)")
    finally:
        backend.close()


if __name__ == "__main__":
    main()
