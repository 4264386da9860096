#!/usr/bin/env python3
"""
Embed executive bios and build the Neo4j vector index.

Generates Vertex AI embeddings for every Executive node without one, stores
them on the node and waits for the vector index to come online.

Usage:
    python scripts/index_embeddings.py
"""

import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
load_dotenv()


def main():
    """Main entry point."""
    from config import get_settings
    from executive_search.pipeline import run_pipeline
    from executive_search.utils import get_logger, setup_logging

    settings = get_settings()
    setup_logging(settings)
    logger = get_logger("index_embeddings")

    logger.info(
        "vector_index_builder",
        index=settings.batch.index_name,
        batch_size=settings.batch.batch_size,
        dimensions=settings.batch.vector_dimensions,
    )
    return run_pipeline(settings)


if __name__ == "__main__":
    sys.exit(main())
