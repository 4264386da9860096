"""
Executive Search Configuration Module.

Centralized configuration using Pydantic Settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Neo4jConfig(BaseSettings):
    """Neo4j database configuration."""

    model_config = SettingsConfigDict(env_prefix="NEO4J_")

    uri: str = Field(default="bolt://localhost:7687", description="Neo4j connection URI")
    user: str = Field(default="neo4j", description="Neo4j username")
    password: str = Field(default="", description="Neo4j password")
    database: str = Field(default="neo4j", description="Neo4j database name")


class GoogleConfig(BaseSettings):
    """Google Cloud / Vertex AI configuration."""

    model_config = SettingsConfigDict(env_prefix="GOOGLE_", populate_by_name=True)

    project_id: str = Field(default="", description="Google Cloud project ID")
    location: str = Field(default="us-central1", description="Vertex AI region")
    model: str = Field(
        default="textembedding-gecko@003",
        validation_alias="VERTEX_MODEL",
        description="Vertex AI embedding model",
    )
    application_credentials: str | None = Field(
        default=None,
        description="Path to a service account key file (ADC is used when unset)",
    )
    access_token: str | None = Field(
        default=None,
        description="Pre-minted bearer token; skips google-auth when set",
    )


class EmbeddingConfig(BaseSettings):
    """Embedding provider call configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    backend: Literal["http", "neo4j"] = Field(
        default="http",
        description="Call Vertex AI directly (http) or through genai.vector.encodeBatch (neo4j)",
    )
    task_type: str = Field(default="CLUSTERING", description="Task type for stored documents")
    query_task_type: str = Field(default="CLUSTERING", description="Task type for search queries")
    request_timeout: float = Field(default=60.0, gt=0, description="HTTP timeout in seconds")


class GraphSchemaConfig(BaseSettings):
    """Where the entity records live in the graph."""

    model_config = SettingsConfigDict(env_prefix="GRAPH_")

    label: str = Field(default="Executive", description="Node label holding the records")
    name_property: str = Field(default="full_name", description="Unique name property")
    text_property: str = Field(default="bio", description="Free-text property to embed")
    embedding_property: str = Field(default="textEmbedding", description="Vector property")


class BatchConfig(BaseSettings):
    """Embedding pass and vector index configuration."""

    batch_size: int = Field(default=5, ge=1, description="Records per embedding call")
    vector_dimensions: int = Field(default=768, ge=1, description="Embedding dimensions")
    similarity_function: Literal["cosine", "euclidean"] = Field(
        default="cosine", description="Similarity function"
    )
    index_name: str = Field(default="bio_text_embeddings", description="Vector index name")
    index_wait_timeout: int = Field(
        default=300, ge=0, description="Seconds to wait for the index to come online"
    )
    max_concurrency: int = Field(default=1, ge=1, description="Batches dispatched in parallel")
    reembed: bool = Field(default=False, description="Re-embed records that already have a vector")
    search_score_order: Literal["descending", "ascending"] | None = Field(
        default=None, description="Override result ordering for the similarity function"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Sub-configs
    neo4j: Neo4jConfig = Field(default_factory=Neo4jConfig)
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    graph: GraphSchemaConfig = Field(default_factory=GraphSchemaConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console", description="Logging format"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
