"""
Sample executive records for trying the pipeline on an empty database.
"""

from __future__ import annotations

import logging
from typing import Any

from executive_search.store import GraphStore, quote_identifier

logger = logging.getLogger(__name__)

SAMPLE_EXECUTIVES: list[dict[str, str]] = [
    {
        "name": "Alice Johnson",
        "title": "Chief Marketing Officer",
        "bio": (
            "Alice Johnson is a seasoned marketing executive with over 15 years of "
            "experience in digital transformation and brand development. She has led "
            "successful marketing campaigns for Fortune 500 companies and pioneered "
            "several innovative digital marketing strategies."
        ),
    },
    {
        "name": "John Doe",
        "title": "Chief Financial Officer",
        "bio": (
            "John Doe brings 20 years of financial expertise in technology and "
            "manufacturing sectors. He has overseen multiple successful mergers and "
            "acquisitions, and specializes in strategic financial planning and risk "
            "management."
        ),
    },
]


def load_executives(
    store: GraphStore,
    executives: list[dict[str, Any]] | None = None,
) -> int:
    """MERGE executives by name and set their title and bio. Returns the count."""
    executives = SAMPLE_EXECUTIVES if executives is None else executives
    schema = store.schema
    label = quote_identifier(schema.label)
    name_prop = quote_identifier(schema.name_property)
    text_prop = quote_identifier(schema.text_property)

    store.execute_write(
        f"CREATE CONSTRAINT {schema.label.lower()}_{schema.name_property} IF NOT EXISTS "
        f"FOR (e:{label}) REQUIRE e.{name_prop} IS UNIQUE"
    )

    rows = store.execute_write(
        f"""
        UNWIND $executives AS exec
        MERGE (e:{label} {{{name_prop}: exec.name}})
        SET e.title = exec.title,
            e.{text_prop} = exec.bio
        RETURN count(e) AS count
        """,
        {"executives": executives},
    )
    count = int(rows[0]["count"]) if rows else 0
    logger.info(f"[Seed] Loaded {count} executives")
    return count
