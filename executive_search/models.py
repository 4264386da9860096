"""
Executive Search - Data Models.

Records, tokens and search results passed between the pipeline components.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


BIO_UNAVAILABLE = "No bio available"


class SimilarityFunction(str, Enum):
    """Vector index similarity functions supported by Neo4j."""

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"

    @classmethod
    def parse(cls, value: str | SimilarityFunction) -> SimilarityFunction:
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


class IndexState(str, Enum):
    """Lifecycle states reported by SHOW INDEXES."""

    POPULATING = "POPULATING"
    ONLINE = "ONLINE"
    FAILED = "FAILED"


@dataclass
class EntityRecord:
    """A node whose free text gets embedded."""

    element_id: str
    name: str
    bio: str
    text_embedding: list[float] | None = None


@dataclass(frozen=True)
class AccessToken:
    """Bearer credential for the embedding provider."""

    token: str
    expiry: datetime | None = None  # naive UTC, as google-auth reports it

    def expires_within(self, margin: timedelta) -> bool:
        if self.expiry is None:
            return False
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        expiry = self.expiry
        if expiry.tzinfo is not None:
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
        return expiry - margin <= now

    def __repr__(self) -> str:
        return f"AccessToken(token='***', expiry={self.expiry!r})"


@dataclass(frozen=True)
class EmbeddingOptions:
    """Per-call provider options."""

    model: str = "textembedding-gecko@003"
    region: str = "us-central1"
    project_id: str = ""
    task_type: str = "CLUSTERING"

    def to_provider_config(self, token: AccessToken) -> dict[str, Any]:
        """Config map for genai.vector.encodeBatch."""
        return {
            "token": token.token,
            "model": self.model,
            "region": self.region,
            "projectId": self.project_id,
            "taskType": self.task_type,
        }


@dataclass
class IndexInfo:
    """A vector index as reported by the database."""

    name: str
    state: IndexState
    label: str | None = None
    property_name: str | None = None
    dimensions: int | None = None
    similarity_function: SimilarityFunction | None = None
    population_percent: float = 0.0

    @property
    def online(self) -> bool:
        return self.state is IndexState.ONLINE


@dataclass(frozen=True)
class SearchResult:
    """One ranked hit from a semantic query."""

    name: str
    bio: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "bio": self.bio, "score": self.score}


@dataclass
class EmbeddingPassReport:
    """Progress of an embedding pass, kept while batches are committed."""

    total_records: int = 0
    total_batches: int = 0
    batches_committed: int = 0
    records_processed: int = 0
    committed_batch_indexes: list[int] = field(default_factory=list)
