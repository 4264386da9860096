"""
Pytest Configuration and Fixtures.

Shared test doubles:
- FakeGraphStore: in-memory stand-in for the Neo4j storage boundary
- HashingEmbedder: deterministic bag-of-words embedding client
- CountingCredentials: token source that records how often it was asked
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import Any

import pytest
from neo4j.exceptions import ServiceUnavailable

from config import GraphSchemaConfig
from executive_search.auth import CredentialProvider
from executive_search.embeddings import EmbeddingClient
from executive_search.exceptions import AuthError, EmbeddingError, TransactionError
from executive_search.models import (
    AccessToken,
    EmbeddingOptions,
    EntityRecord,
    IndexInfo,
    IndexState,
    SimilarityFunction,
)
from executive_search.seed import SAMPLE_EXECUTIVES
from executive_search.store import GraphStore

DIMENSIONS = 768


# ─────────────────────────────────────────────────────────────────────────────
# Test doubles
# ─────────────────────────────────────────────────────────────────────────────


class FakeGraphStore(GraphStore):
    """Keeps nodes and indexes in dictionaries; one write call is one transaction."""

    def __init__(self, online_after_polls: int = 1):
        super().__init__(schema=GraphSchemaConfig())
        self.nodes: dict[str, dict[str, Any]] = {}
        self.indexes: dict[str, IndexInfo] = {}
        self.online_after_polls = online_after_polls
        self.index_polls: dict[str, int] = {}
        self.write_calls = 0
        self.fail_on_write_calls: set[int] = set()
        self.fail_create_index = False
        self.fail_index_state: IndexState | None = None
        self.query_calls: list[tuple[str, int, list[float]]] = []
        self.closed = False

    # Nodes

    def add_node(self, name: str, bio: str | None, embedding: list[float] | None = None) -> str:
        element_id = f"4:test:{len(self.nodes)}"
        self.nodes[element_id] = {"full_name": name, "bio": bio, "textEmbedding": embedding}
        return element_id

    def embedding_of(self, name: str) -> list[float] | None:
        for props in self.nodes.values():
            if props["full_name"] == name:
                return props["textEmbedding"]
        raise KeyError(name)

    def fetch_pending_records(self, include_embedded: bool = False) -> list[EntityRecord]:
        records = [
            EntityRecord(element_id=eid, name=props["full_name"], bio=props["bio"])
            for eid, props in self.nodes.items()
            if props["bio"] and props["bio"].strip()
            and (include_embedded or props["textEmbedding"] is None)
        ]
        return sorted(records, key=lambda r: (r.name, r.element_id))

    def count_pending_records(self, include_embedded: bool = False) -> int:
        return len(self.fetch_pending_records(include_embedded))

    def write_embeddings(self, rows) -> int:
        self.write_calls += 1
        if self.write_calls in self.fail_on_write_calls:
            raise ServiceUnavailable(f"write {self.write_calls} lost its connection")
        if any(eid not in self.nodes for eid, _ in rows):
            raise TransactionError("Batch write touched fewer nodes than expected")
        for eid, vector in rows:
            self.nodes[eid]["textEmbedding"] = list(vector)
        return len(rows)

    # Indexes

    def create_vector_index(self, name: str, dimensions: int, similarity_function: SimilarityFunction) -> None:
        if self.fail_create_index:
            raise ServiceUnavailable("index declaration rejected")
        if name in self.indexes:
            return
        self.indexes[name] = IndexInfo(
            name=name,
            state=IndexState.POPULATING,
            label=self.schema.label,
            property_name=self.schema.embedding_property,
            dimensions=dimensions,
            similarity_function=similarity_function,
        )
        self.index_polls[name] = 0

    def get_index(self, name: str) -> IndexInfo | None:
        info = self.indexes.get(name)
        if info is None:
            return None
        self.index_polls[name] = self.index_polls.get(name, 0) + 1
        if self.fail_index_state is not None:
            info.state = self.fail_index_state
        elif self.online_after_polls >= 0 and self.index_polls[name] > self.online_after_polls:
            info.state = IndexState.ONLINE
            info.population_percent = 100.0
        return info

    def query_vector_index(self, index_name: str, k: int, vector: list[float]) -> list[dict[str, Any]]:
        self.query_calls.append((index_name, k, vector))
        info = self.indexes.get(index_name)
        if info is None or info.state is not IndexState.ONLINE:
            raise ServiceUnavailable(f"There is no such vector schema index: {index_name}")
        hits = []
        for props in self.nodes.values():
            embedding = props["textEmbedding"]
            if embedding is None or len(embedding) != len(vector):
                continue
            score = (1 + cosine(embedding, vector)) / 2
            hits.append({"name": props["full_name"], "bio": props["bio"], "score": score})
        hits.sort(key=lambda h: h["score"], reverse=True)
        # Hand results back worst-first so callers cannot rely on index order
        return list(reversed(hits[:k]))

    def close(self) -> None:
        self.closed = True


class HashingEmbedder(EmbeddingClient):
    """Bag-of-words vectors: each lowercase word bumps one md5-chosen bucket."""

    def __init__(self, dimensions: int = DIMENSIONS, returned_dimensions: int | None = None):
        super().__init__(dimensions)
        self.returned_dimensions = returned_dimensions or dimensions
        self.calls: list[list[str]] = []
        self.tokens_seen: list[AccessToken] = []
        self.fail_on_calls: set[int] = set()

    def _request_embeddings(self, texts, token, options: EmbeddingOptions):
        self.calls.append(list(texts))
        self.tokens_seen.append(token)
        if len(self.calls) in self.fail_on_calls:
            raise EmbeddingError("Quota exceeded for aiplatform.googleapis.com", status=429)
        return [embed_words(text, self.returned_dimensions) for text in texts]


class CountingCredentials(CredentialProvider):
    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    def get_token(self) -> AccessToken:
        self.calls += 1
        if self.fail:
            raise AuthError("Identity provider rejected token refresh: invalid_grant")
        return AccessToken(token=f"token-{self.calls}")


def embed_words(text: str, dimensions: int) -> list[float]:
    vector = [0.0] * dimensions
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % dimensions
        vector[bucket] += 1.0
    return vector


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> FakeGraphStore:
    return FakeGraphStore()


@pytest.fixture
def seeded_store(store: FakeGraphStore) -> FakeGraphStore:
    """The two sample executives, without embeddings."""
    for executive in SAMPLE_EXECUTIVES:
        store.add_node(executive["name"], executive["bio"])
    return store


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def credentials() -> CountingCredentials:
    return CountingCredentials()


@pytest.fixture
def no_sleep():
    return lambda seconds: None
