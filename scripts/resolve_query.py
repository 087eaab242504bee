#!/usr/bin/env python3
"""
Resolve a subject against Wikipedia and print the knowledge record as JSON.

Usage:
    python scripts/resolve_query.py "Albert Einstein"

    # Load sanitized article markup and wait for background enrichment:
    python scripts/resolve_query.py "Mount Everest" --full-content --wait

    # Autocomplete suggestions instead of a record:
    python scripts/resolve_query.py "einst" --search

    # Today's most-read articles:
    python scripts/resolve_query.py --trending 5
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add parent to path so we can import from wiki_resolver/
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from wiki_resolver import service
from wiki_resolver.config import LOG_LEVEL


async def main():
    parser = argparse.ArgumentParser(description="Resolve a subject into a Wikipedia knowledge record")
    parser.add_argument("query", nargs="?", default="", help="Subject to resolve")
    parser.add_argument("--full-content", action="store_true",
                        help="Include sanitized article markup")
    parser.add_argument("--wait", action="store_true",
                        help="Wait for background enrichment before printing")
    parser.add_argument("--search", action="store_true",
                        help="Print autocomplete suggestions instead of a record")
    parser.add_argument("--trending", type=int, metavar="N",
                        help="Print the N most-read articles of today")
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL, stream=sys.stderr)

    if args.trending is None and not args.query:
        parser.error("a query is required unless --trending is given")

    resolver = service.get_resolver()
    try:
        if args.trending is not None:
            records = await service.trending(limit=args.trending)
            output = [record.to_dict() for record in records]
        elif args.search:
            output = await service.search(args.query)
        else:
            record = await service.resolve(args.query, include_full_content=args.full_content)
            if args.wait and resolver.enricher is not None:
                await resolver.enricher.wait(record.record_id)
            output = record.to_dict()
    finally:
        await service.shutdown()

    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    asyncio.run(main())
