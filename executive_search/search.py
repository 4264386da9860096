"""
Semantic search over the executive bio vector index.
"""

from __future__ import annotations

import logging

from neo4j.exceptions import DriverError, Neo4jError

from config import Settings
from executive_search.auth import CredentialProvider
from executive_search.embeddings import EmbeddingClient
from executive_search.exceptions import SearchError
from executive_search.models import BIO_UNAVAILABLE, EmbeddingOptions, SearchResult, SimilarityFunction
from executive_search.store import GraphStore

logger = logging.getLogger(__name__)

# Neo4j normalizes both similarity functions so that a higher score is closer:
# cosine -> (1 + cos) / 2, euclidean -> 1 / (1 + d^2).
DEFAULT_SCORE_ORDER = {
    SimilarityFunction.COSINE: "descending",
    SimilarityFunction.EUCLIDEAN: "descending",
}


class SemanticSearchService:
    """
    Embeds a query and looks up its nearest neighbors in the vector index.

    Results are re-sorted locally instead of trusting the order the index
    returns. Use ``score_order="ascending"`` when scores are raw distances.
    """

    def __init__(
        self,
        store: GraphStore,
        embedder: EmbeddingClient,
        credentials: CredentialProvider,
        index_name: str = "bio_text_embeddings",
        similarity_function: str | SimilarityFunction = SimilarityFunction.COSINE,
        score_order: str | None = None,
        options: EmbeddingOptions | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.credentials = credentials
        self.index_name = index_name
        self.similarity_function = SimilarityFunction.parse(similarity_function)
        self.score_order = score_order or DEFAULT_SCORE_ORDER[self.similarity_function]
        if self.score_order not in ("descending", "ascending"):
            raise ValueError(f"Unknown score order: {self.score_order}")
        self.options = options

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: GraphStore,
        embedder: EmbeddingClient,
        credentials: CredentialProvider,
        options: EmbeddingOptions | None = None,
    ) -> SemanticSearchService:
        return cls(
            store,
            embedder,
            credentials,
            index_name=settings.batch.index_name,
            similarity_function=settings.batch.similarity_function,
            score_order=settings.batch.search_score_order,
            options=options,
        )

    def search(self, query_text: str, k: int = 5) -> list[SearchResult]:
        """
        Return the ``k`` records whose bios are closest to ``query_text``.

        Raises:
            AuthError: No token for the embedding call
            EmbeddingError, DimensionMismatchError: Query embedding failed;
                the index is not queried
            SearchError: Unknown or offline index, or any other query failure
        """
        if k <= 0:
            return []

        token = self.credentials.get_token()
        vector = self.embedder.embed_text(query_text, token, self.options)

        try:
            rows = self.store.query_vector_index(self.index_name, k, vector)
        except (Neo4jError, DriverError) as e:
            raise SearchError(f"Vector query failed: {e}", index=self.index_name) from e

        results = [
            SearchResult(
                name=row.get("name") or "",
                bio=row.get("bio") or BIO_UNAVAILABLE,
                score=float(row["score"]),
            )
            for row in rows
        ]
        results.sort(key=lambda r: r.score, reverse=self.score_order == "descending")

        logger.info(f"[Search] {len(results)} results for {query_text!r} (k={k})")
        return results[:k]
