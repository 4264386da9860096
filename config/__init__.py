"""Configuration module."""

from .settings import (
    BatchConfig,
    EmbeddingConfig,
    GoogleConfig,
    GraphSchemaConfig,
    Neo4jConfig,
    Settings,
    get_settings,
)

__all__ = [
    "BatchConfig",
    "EmbeddingConfig",
    "GoogleConfig",
    "GraphSchemaConfig",
    "Neo4jConfig",
    "Settings",
    "get_settings",
]
