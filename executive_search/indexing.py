"""
Vector index provisioning.

Declares the vector index idempotently and waits, with exponential backoff
and a hard deadline, until Neo4j reports it ONLINE.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from neo4j.exceptions import DriverError, Neo4jError
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_delay,
    stop_any,
    wait_exponential,
)

from executive_search.exceptions import (
    IndexCreationError,
    IndexTimeoutError,
    PipelineCancelledError,
)
from executive_search.models import IndexInfo, IndexState, SimilarityFunction
from executive_search.store import GraphStore, quote_identifier

logger = logging.getLogger(__name__)


class IndexProvisioner:
    """
    Creates the vector index if absent and waits until it can be queried.

    An existing index is never altered. If its dimension or similarity
    function differs from the requested one, ``IndexCreationError`` is raised
    and the conflict is left for an operator to resolve.

    Should run after the embedding pass; an index created over nodes without
    vectors comes online empty.
    """

    def __init__(
        self,
        store: GraphStore,
        poll_interval: float = 0.5,
        max_poll_interval: float = 10.0,
        sleep: Callable[[float], object] | None = None,
    ):
        self.store = store
        self.poll_interval = poll_interval
        self.max_poll_interval = max_poll_interval
        self._sleep = sleep

    def ensure_index(
        self,
        name: str,
        dimension: int,
        similarity_fn: str | SimilarityFunction,
        timeout_seconds: float,
        cancel_event: threading.Event | None = None,
    ) -> IndexInfo:
        """
        Declare the index and block until it is online.

        Args:
            name: Index name
            dimension: Vector dimension
            similarity_fn: "cosine" or "euclidean"
            timeout_seconds: Deadline for the index to come online
            cancel_event: Aborts the wait when set

        Returns:
            The online index

        Raises:
            IndexCreationError: Declaration rejected, conflicting existing
                index, or index population failed
            IndexTimeoutError: Not online within ``timeout_seconds``
            PipelineCancelledError: ``cancel_event`` was set while waiting
        """
        try:
            similarity = SimilarityFunction.parse(similarity_fn)
            quote_identifier(name)
        except ValueError as e:
            raise IndexCreationError(f"Invalid index declaration: {e}", index=name) from e
        if dimension < 1:
            raise IndexCreationError(f"Invalid vector dimension {dimension}", index=name)

        try:
            self.store.create_vector_index(name, dimension, similarity)
        except ValueError as e:
            raise IndexCreationError(f"Invalid index declaration: {e}", index=name) from e
        except (Neo4jError, DriverError) as e:
            raise IndexCreationError(f"Index declaration rejected: {e}", index=name) from e

        existing = self._lookup(name)
        if existing is None:
            raise IndexCreationError("Index not found after declaration", index=name)
        self._check_matches(existing, dimension, similarity)

        logger.info(f"[Index] {name} declared ({dimension}d, {similarity.value}); waiting for ONLINE")
        info = self.await_online(name, timeout_seconds, cancel_event)
        logger.info(f"[Index] Vector index {name} created and ready")
        return info

    def await_online(
        self,
        name: str,
        timeout_seconds: float,
        cancel_event: threading.Event | None = None,
    ) -> IndexInfo:
        """Poll the index state until ONLINE, FAILED, cancellation or the deadline."""
        deadline = time.monotonic() + max(0.0, timeout_seconds)
        backoff = wait_exponential(multiplier=self.poll_interval, max=self.max_poll_interval)

        def wait_until_deadline(retry_state: RetryCallState) -> float:
            return min(backoff(retry_state), max(0.0, deadline - time.monotonic()))

        def is_cancelled(retry_state: RetryCallState) -> bool:
            return cancel_event is not None and cancel_event.is_set()

        if self._sleep is not None:
            sleep = self._sleep
        elif cancel_event is not None:
            sleep = cancel_event.wait
        else:
            sleep = time.sleep

        retrying = Retrying(
            stop=stop_any(stop_after_delay(max(0.0, timeout_seconds)), is_cancelled),
            wait=wait_until_deadline,
            retry=retry_if_result(lambda info: info is None or not info.online),
            sleep=sleep,
        )

        try:
            return retrying(self._poll, name)
        except RetryError as e:
            last = e.last_attempt.result()
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelledError("Index wait cancelled", index=name) from e
            raise IndexTimeoutError(
                f"Index {name} not online after {timeout_seconds}s",
                index=name,
                state=last.state.value if last else "MISSING",
                population_percent=last.population_percent if last else 0.0,
            ) from e

    def _poll(self, name: str) -> IndexInfo | None:
        info = self._lookup(name)
        if info is not None and info.state is IndexState.FAILED:
            raise IndexCreationError("Index population failed", index=name)
        if info is not None:
            logger.debug(f"[Index] {name}: {info.state.value} ({info.population_percent:.0f}%)")
        return info

    def _lookup(self, name: str) -> IndexInfo | None:
        try:
            return self.store.get_index(name)
        except (Neo4jError, DriverError) as e:
            raise IndexCreationError(f"Could not read index state: {e}", index=name) from e

    def _check_matches(
        self,
        info: IndexInfo,
        dimension: int,
        similarity: SimilarityFunction,
    ) -> None:
        conflicts = {}
        if info.dimensions is not None and info.dimensions != dimension:
            conflicts["dimensions"] = (info.dimensions, dimension)
        if info.similarity_function is not None and info.similarity_function is not similarity:
            conflicts["similarity_function"] = (
                info.similarity_function.value,
                similarity.value,
            )
        schema = self.store.schema
        if info.label is not None and info.label != schema.label:
            conflicts["label"] = (info.label, schema.label)
        if info.property_name is not None and info.property_name != schema.embedding_property:
            conflicts["property"] = (info.property_name, schema.embedding_property)

        if conflicts:
            details = "; ".join(
                f"{key}: existing={old!r} requested={new!r}"
                for key, (old, new) in conflicts.items()
            )
            raise IndexCreationError(
                f"Existing index {info.name} conflicts with requested configuration ({details})",
                index=info.name,
            )
