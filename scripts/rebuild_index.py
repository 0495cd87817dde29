#!/usr/bin/env python3
"""
Index Rebuild Utility

Re-embeds every document known to the configured chunk store. Unchanged
parts are skipped by checksum unless --force is given.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Allow running from a source checkout without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

# Configuration is read at import time, so .env must be loaded first
load_dotenv()

from ragstore.core.config import create_document_store, validate_config
from ragstore.core.errors import EmbeddingGenerationError


async def rebuild(force: bool = False) -> int:
    """Rebuild embeddings for the configured store. Returns the process exit code."""
    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    print("Starting embedding index rebuild...")

    store = create_document_store()

    names = await store.chunk_store.list_names()
    print(f"Found {len(names)} documents in store '{store.name}'")

    if not names:
        print("No entries to rebuild. Exiting.")
        return 0

    embedded_count = 0
    for i, name in enumerate(names, start=1):
        try:
            if await store.embed(name, force=force):
                embedded_count += 1
        except EmbeddingGenerationError as e:
            print(f"ERROR: Failed to embed document {name}: {e}")
            return 2

        if i % 10 == 0:
            print(f"  ... processed {i}/{len(names)} documents")

    print(f"✓ Re-embedded {embedded_count} of {len(names)} documents")
    print("Index rebuild complete!")
    return 0


def main(argv=None) -> int:
    """Rebuild embeddings from the stored document text."""
    parser = argparse.ArgumentParser(description="Re-embed stored documents")
    parser.add_argument("--force", action="store_true", help="regenerate embeddings even when unchanged")
    args = parser.parse_args(argv)

    return asyncio.run(rebuild(force=args.force))


if __name__ == "__main__":
    sys.exit(main())
