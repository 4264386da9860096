"""
Neo4j storage boundary.

Thin wrapper around the Neo4j driver exposing the handful of graph
operations the pipeline needs: selecting records, writing vectors in one
transaction per batch, declaring and inspecting the vector index, and
querying it.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from neo4j import Driver, GraphDatabase, Transaction

from config import GraphSchemaConfig, Settings
from executive_search.exceptions import TransactionError
from executive_search.models import EntityRecord, IndexInfo, IndexState, SimilarityFunction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Validate a label/index/property name and backtick-quote it for Cypher."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid Cypher identifier: {name!r}")
    return f"`{name}`"


class GraphStore:
    """
    Neo4j database client with connection management.

    The driver is created lazily and released by ``close()`` or by leaving
    the context manager, whichever comes first.
    """

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        user: str = "neo4j",
        password: str = "",
        database: str | None = None,
        schema: GraphSchemaConfig | None = None,
        driver: Driver | None = None,
    ):
        self.uri = uri
        self.user = user
        self.password = password
        self.database = database
        self.schema = schema or GraphSchemaConfig()
        self._driver: Driver | None = driver

    @classmethod
    def from_settings(cls, settings: Settings) -> GraphStore:
        return cls(
            uri=settings.neo4j.uri,
            user=settings.neo4j.user,
            password=settings.neo4j.password,
            database=settings.neo4j.database,
            schema=settings.graph,
        )

    @property
    def driver(self) -> Driver:
        """Get or create Neo4j driver."""
        if self._driver is None:
            self._driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
            )
            logger.info(f"[Neo4j] Connected to {self.uri}")
        return self._driver

    def close(self) -> None:
        """Close Neo4j connection."""
        if self._driver:
            self._driver.close()
            self._driver = None
            logger.info("[Neo4j] Connection closed")

    def __enter__(self) -> GraphStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # Generic query execution
    # =========================================================================

    def execute_query(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a read query and return results as dictionaries."""
        with self.driver.session(database=self.database) as session:
            result = session.run(query, parameters or {})
            return [record.data() for record in result]

    def execute_write(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a single write query in its own transaction."""
        return self.run_in_transaction(
            lambda tx: tx.run(query, parameters or {}).data()
        )

    def run_in_transaction(self, work: Callable[[Transaction], T]) -> T:
        """
        Run ``work`` as one unit of work.

        The transaction commits when ``work`` returns and rolls back when it
        raises, so either every statement in ``work`` is visible or none is.
        """
        with self.driver.session(database=self.database) as session:
            with session.begin_transaction() as tx:
                result = work(tx)
                tx.commit()
                return result

    # =========================================================================
    # Entity records
    # =========================================================================

    def _selection_clause(self, include_embedded: bool) -> str:
        label = quote_identifier(self.schema.label)
        clause = (
            f"MATCH (n:{label})\n"
            "WHERE n[$text_property] IS NOT NULL AND size(trim(n[$text_property])) <> 0"
        )
        if not include_embedded:
            clause += " AND n[$embedding_property] IS NULL"
        return clause

    def _schema_params(self) -> dict[str, Any]:
        return {
            "name_property": self.schema.name_property,
            "text_property": self.schema.text_property,
            "embedding_property": self.schema.embedding_property,
        }

    def fetch_pending_records(self, include_embedded: bool = False) -> list[EntityRecord]:
        """
        Select records with non-empty text that still need an embedding.

        Args:
            include_embedded: Also select records that already carry a vector

        Returns:
            Records in a stable order (name, then element id)
        """
        query = f"""
        {self._selection_clause(include_embedded)}
        RETURN elementId(n) AS element_id,
               n[$name_property] AS name,
               n[$text_property] AS bio
        ORDER BY name, element_id
        """
        rows = self.execute_query(query, self._schema_params())
        return [
            EntityRecord(
                element_id=row["element_id"],
                name=row["name"] or "",
                bio=row["bio"],
            )
            for row in rows
        ]

    def count_pending_records(self, include_embedded: bool = False) -> int:
        query = f"""
        {self._selection_clause(include_embedded)}
        RETURN count(n) AS total
        """
        rows = self.execute_query(query, self._schema_params())
        return int(rows[0]["total"]) if rows else 0

    def write_embeddings(self, rows: Sequence[tuple[str, list[float]]]) -> int:
        """
        Set the vector property on every node of one batch in one transaction.

        Args:
            rows: (element_id, vector) pairs

        Returns:
            Number of nodes written

        Raises:
            TransactionError: A node disappeared mid-pass; the batch is rolled back
        """
        if not rows:
            return 0

        query = """
        UNWIND $rows AS row
        MATCH (n) WHERE elementId(n) = row.element_id
        CALL db.create.setNodeVectorProperty(n, $property, row.vector)
        RETURN count(n) AS count
        """
        params = {
            "rows": [{"element_id": eid, "vector": list(vec)} for eid, vec in rows],
            "property": self.schema.embedding_property,
        }

        def work(tx: Transaction) -> int:
            record = tx.run(query, params).single()
            written = int(record["count"]) if record else 0
            if written != len(rows):
                raise TransactionError(
                    "Batch write touched fewer nodes than expected",
                    expected=len(rows),
                    written=written,
                )
            return written

        return self.run_in_transaction(work)

    # =========================================================================
    # Vector index
    # =========================================================================

    def create_vector_index(
        self,
        name: str,
        dimensions: int,
        similarity_function: SimilarityFunction,
    ) -> None:
        """Declare the vector index; a no-op when one with this name exists."""
        query = f"""
        CREATE VECTOR INDEX {quote_identifier(name)} IF NOT EXISTS
        FOR (n:{quote_identifier(self.schema.label)})
        ON (n.{quote_identifier(self.schema.embedding_property)})
        OPTIONS {{
            indexConfig: {{
                `vector.dimensions`: $dimensions,
                `vector.similarity_function`: $similarity
            }}
        }}
        """
        self.execute_write(query, {
            "dimensions": dimensions,
            "similarity": similarity_function.value,
        })

    def get_index(self, name: str) -> IndexInfo | None:
        """Look up a vector index by name."""
        query = """
        SHOW VECTOR INDEXES
        YIELD name, state, labelsOrTypes, properties, options, populationPercent
        WHERE name = $name
        RETURN name, state, labelsOrTypes, properties, options, populationPercent
        """
        rows = self.execute_query(query, {"name": name})
        if not rows:
            return None
        return parse_index_row(rows[0])

    def query_vector_index(
        self,
        index_name: str,
        k: int,
        vector: list[float],
    ) -> list[dict[str, Any]]:
        """Nearest-neighbor lookup returning name, bio and score per hit."""
        query = """
        CALL db.index.vector.queryNodes($index_name, $k, $embedding)
        YIELD node, score
        RETURN node[$name_property] AS name,
               node[$text_property] AS bio,
               score
        ORDER BY score DESC
        """
        return self.execute_query(query, {
            "index_name": index_name,
            "k": k,
            "embedding": vector,
            **self._schema_params(),
        })


def parse_index_row(row: dict[str, Any]) -> IndexInfo:
    """Build an IndexInfo from a SHOW INDEXES row."""
    options = row.get("options") or {}
    index_config = options.get("indexConfig") or {}

    dimensions = index_config.get("vector.dimensions")
    similarity = index_config.get("vector.similarity_function")

    labels = row.get("labelsOrTypes") or []
    properties = row.get("properties") or []

    return IndexInfo(
        name=row["name"],
        state=IndexState(str(row.get("state", "POPULATING")).upper()),
        label=labels[0] if labels else None,
        property_name=properties[0] if properties else None,
        dimensions=int(dimensions) if dimensions is not None else None,
        similarity_function=SimilarityFunction.parse(similarity) if similarity else None,
        population_percent=float(row.get("populationPercent") or 0.0),
    )
