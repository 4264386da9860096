"""
Embedding clients.

Turn text into fixed-dimension vectors through Vertex AI, either by calling
the prediction endpoint directly or by letting Neo4j's GenAI plugin make the
call server-side. Output order always matches input order.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import requests
from neo4j.exceptions import DriverError, Neo4jError

from config import EmbeddingConfig, GoogleConfig
from executive_search.exceptions import DimensionMismatchError, EmbeddingError
from executive_search.models import AccessToken, EmbeddingOptions
from executive_search.store import GraphStore

logger = logging.getLogger(__name__)

VERTEX_PREDICT_URL = (
    "https://{region}-aiplatform.googleapis.com/v1/projects/{project_id}"
    "/locations/{region}/publishers/google/models/{model}:predict"
)


class EmbeddingClient(ABC):
    """
    Base class for embedding clients.

    Subclasses only talk to the provider; this class enforces the contract:
    one vector per text, same order, every vector of length ``dimensions``.
    """

    def __init__(self, dimensions: int, options: EmbeddingOptions | None = None):
        self.dimensions = dimensions
        self.options = options or EmbeddingOptions()

    @abstractmethod
    def _request_embeddings(
        self,
        texts: list[str],
        token: AccessToken,
        options: EmbeddingOptions,
    ) -> list[list[float]]:
        """Call the provider and return raw vectors in input order."""

    def embed_texts(
        self,
        texts: Sequence[str],
        token: AccessToken,
        options: EmbeddingOptions | None = None,
    ) -> list[list[float]]:
        """
        Embed a batch of texts with a single provider call.

        Args:
            texts: Texts to embed
            token: Bearer token, used for this call only
            options: Overrides the client's default model/region/project/task type

        Returns:
            One vector per text; ``result[i]`` belongs to ``texts[i]``

        Raises:
            EmbeddingError: Provider error or wrong number of vectors
            DimensionMismatchError: A vector's length differs from ``dimensions``
        """
        texts = list(texts)
        if not texts:
            return []

        for position, text in enumerate(texts):
            if not isinstance(text, str) or not text.strip():
                raise EmbeddingError("Cannot embed empty text", position=position)

        vectors = self._request_embeddings(texts, token, options or self.options)

        if len(vectors) != len(texts):
            raise EmbeddingError(
                "Provider returned a different number of vectors than texts",
                expected=len(texts),
                actual=len(vectors),
            )
        for position, vector in enumerate(vectors):
            self.check_dimensions(vector, position)

        return [[float(x) for x in vector] for vector in vectors]

    def embed_text(
        self,
        text: str,
        token: AccessToken,
        options: EmbeddingOptions | None = None,
    ) -> list[float]:
        """Embed a single text, e.g. a search query."""
        return self.embed_texts([text], token, options)[0]

    def check_dimensions(self, vector: Sequence[float], position: int | None = None) -> None:
        if vector is None or len(vector) != self.dimensions:
            raise DimensionMismatchError(
                expected=self.dimensions,
                actual=0 if vector is None else len(vector),
                position=position,
            )


class VertexAIEmbeddingClient(EmbeddingClient):
    """Calls the Vertex AI text embedding ``:predict`` endpoint over HTTPS."""

    def __init__(
        self,
        dimensions: int,
        options: EmbeddingOptions | None = None,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ):
        super().__init__(dimensions, options)
        self.timeout = timeout
        self._session = session
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The injected session, else one session per calling thread."""
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    @classmethod
    def from_config(
        cls,
        google_config: GoogleConfig,
        embedding_config: EmbeddingConfig,
        dimensions: int,
    ) -> VertexAIEmbeddingClient:
        return cls(
            dimensions=dimensions,
            options=options_from_config(google_config, embedding_config),
            timeout=embedding_config.request_timeout,
        )

    @staticmethod
    def endpoint(options: EmbeddingOptions) -> str:
        return VERTEX_PREDICT_URL.format(
            region=options.region,
            project_id=options.project_id,
            model=options.model,
        )

    def _request_embeddings(
        self,
        texts: list[str],
        token: AccessToken,
        options: EmbeddingOptions,
    ) -> list[list[float]]:
        if not options.project_id:
            raise EmbeddingError("Google project ID is not configured")

        body = {
            "instances": [
                {"content": text, "task_type": options.task_type} for text in texts
            ],
        }
        headers = {
            "Authorization": f"Bearer {token.token}",
            "Content-Type": "application/json",
        }

        logger.debug(f"[Embed] POST {options.model} ({len(texts)} texts)")
        try:
            response = self.session.post(
                self.endpoint(options),
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise EmbeddingError(f"Embedding request failed: {e}", model=options.model) from e

        if response.status_code >= 400:
            raise EmbeddingError(
                f"Embedding provider error: {_error_message(response)}",
                status=response.status_code,
                model=options.model,
            )

        try:
            predictions = response.json()["predictions"]
            return [prediction["embeddings"]["values"] for prediction in predictions]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}", model=options.model) from e


class Neo4jGenAIEmbeddingClient(EmbeddingClient):
    """
    Lets Neo4j call Vertex AI through ``genai.vector.encodeBatch``.

    The procedure yields rows tagged with the input index; they are sorted
    on it before being returned.
    """

    def __init__(
        self,
        store: GraphStore,
        dimensions: int,
        options: EmbeddingOptions | None = None,
    ):
        super().__init__(dimensions, options)
        self.store = store

    def _request_embeddings(
        self,
        texts: list[str],
        token: AccessToken,
        options: EmbeddingOptions,
    ) -> list[list[float]]:
        query = """
        CALL genai.vector.encodeBatch($texts, 'VertexAI', $config)
        YIELD index, vector
        RETURN index, vector
        ORDER BY index
        """
        try:
            rows = self.store.execute_query(query, {
                "texts": texts,
                "config": options.to_provider_config(token),
            })
        except (Neo4jError, DriverError) as e:
            raise EmbeddingError(f"encodeBatch failed: {e}", model=options.model) from e

        by_index: dict[int, Any] = {int(row["index"]): row["vector"] for row in rows}
        if sorted(by_index) != list(range(len(texts))):
            raise EmbeddingError(
                "encodeBatch returned incomplete results",
                expected=len(texts),
                actual=len(by_index),
            )
        return [by_index[i] for i in range(len(texts))]


def options_from_config(
    google_config: GoogleConfig,
    embedding_config: EmbeddingConfig,
    query: bool = False,
) -> EmbeddingOptions:
    return EmbeddingOptions(
        model=google_config.model,
        region=google_config.location,
        project_id=google_config.project_id,
        task_type=embedding_config.query_task_type if query else embedding_config.task_type,
    )


def build_embedding_client(
    google_config: GoogleConfig,
    embedding_config: EmbeddingConfig,
    dimensions: int,
    store: GraphStore | None = None,
) -> EmbeddingClient:
    """Create the client for the configured backend."""
    if embedding_config.backend == "neo4j":
        if store is None:
            raise ValueError("The neo4j embedding backend needs a GraphStore")
        return Neo4jGenAIEmbeddingClient(
            store,
            dimensions=dimensions,
            options=options_from_config(google_config, embedding_config),
        )
    return VertexAIEmbeddingClient.from_config(google_config, embedding_config, dimensions)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500] or response.reason
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return str(payload)[:500]
