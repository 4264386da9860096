"""Executive bio embedding pipeline and semantic search."""

from .auth import CredentialProvider, GoogleCredentialProvider, StaticCredentialProvider
from .embeddings import EmbeddingClient, Neo4jGenAIEmbeddingClient, VertexAIEmbeddingClient
from .exceptions import (
    AuthError,
    DimensionMismatchError,
    EmbeddingError,
    ExecutiveSearchError,
    IndexCreationError,
    IndexTimeoutError,
    PipelineCancelledError,
    SearchError,
    TransactionError,
)
from .indexing import IndexProvisioner
from .models import AccessToken, EmbeddingOptions, EntityRecord, IndexInfo, SearchResult
from .pipeline import EmbeddingOrchestrator, run_pipeline
from .search import SemanticSearchService
from .store import GraphStore

__all__ = [
    # Models
    "AccessToken",
    "EmbeddingOptions",
    "EntityRecord",
    "IndexInfo",
    "SearchResult",
    # Errors
    "ExecutiveSearchError",
    "AuthError",
    "EmbeddingError",
    "DimensionMismatchError",
    "TransactionError",
    "IndexCreationError",
    "IndexTimeoutError",
    "SearchError",
    "PipelineCancelledError",
    # Components
    "GraphStore",
    "CredentialProvider",
    "GoogleCredentialProvider",
    "StaticCredentialProvider",
    "EmbeddingClient",
    "VertexAIEmbeddingClient",
    "Neo4jGenAIEmbeddingClient",
    "EmbeddingOrchestrator",
    "IndexProvisioner",
    "SemanticSearchService",
    "run_pipeline",
]
