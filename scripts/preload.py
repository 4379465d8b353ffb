#!/usr/bin/env python3
"""
Preload README

Seeds an empty Circulation catalog so that loans can be issued right away.

1. Creates the tables if they do not exist yet (importing `circulation.core` does this)
2. If the `items` table is empty, inserts the sample catalog, or the items
   listed in a JSON file given with `--file` (a list of objects with `code`,
   `title`, `author`, `category` and `available_quantity`)
3. Leaves a populated catalog untouched
"""

import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from circulation.core.api import CirculationAPI

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Seed the Circulation catalog when it is empty"
    )
    parser.add_argument(
        "--file",
        type=str,
        default=None,
        help="JSON file with the items to load (defaults to the sample catalog)"
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    items = None
    if args.file:
        filepath = Path(args.file)
        if not filepath.exists():
            print(f"Error: File not found: {args.file}")
            sys.exit(1)
        items = json.loads(filepath.read_text(encoding="utf-8"))

    added = CirculationAPI.preload(items)
    print(f"Added {added} items" if added else "Catalog already populated, nothing to do")


if __name__ == "__main__":
    main()
