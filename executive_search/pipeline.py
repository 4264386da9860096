"""
Batch embedding pipeline.

Selects records without an embedding, embeds them batch by batch and writes
each batch back in its own transaction. ``run_pipeline`` chains a full run:
embedding pass, then vector index provisioning.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from neo4j.exceptions import DriverError, Neo4jError

from config import Settings
from executive_search.auth import CredentialProvider, build_credential_provider
from executive_search.embeddings import EmbeddingClient, build_embedding_client
from executive_search.exceptions import (
    ExecutiveSearchError,
    PipelineCancelledError,
    TransactionError,
)
from executive_search.indexing import IndexProvisioner
from executive_search.models import EmbeddingOptions, EmbeddingPassReport, EntityRecord
from executive_search.store import GraphStore
from executive_search.utils import chunked, get_logger

logger = logging.getLogger(__name__)


class EmbeddingOrchestrator:
    """
    Runs embedding passes over the records in the graph.

    A pass never redoes committed work: the selection skips records that
    already carry a vector (unless ``reembed`` is set), so re-running after a
    failure only picks up what is left.
    """

    def __init__(
        self,
        store: GraphStore,
        embedder: EmbeddingClient,
        credentials: CredentialProvider,
        batch_size: int = 5,
        reembed: bool = False,
        max_concurrency: int = 1,
        options: EmbeddingOptions | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self.store = store
        self.embedder = embedder
        self.credentials = credentials
        self.batch_size = batch_size
        self.reembed = reembed
        self.max_concurrency = max_concurrency
        self.options = options
        self.last_report: EmbeddingPassReport | None = None

    def select_records(self) -> list[EntityRecord]:
        try:
            return self.store.fetch_pending_records(include_embedded=self.reembed)
        except (Neo4jError, DriverError) as e:
            raise TransactionError(f"Could not select records to embed: {e}") from e

    def run_embedding_pass(
        self,
        batch_size: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> int:
        """
        Embed and store every selected record.

        Args:
            batch_size: Records per embedding call and per transaction
            cancel_event: When set, no further batches are started

        Returns:
            Number of records written

        Raises:
            AuthError, EmbeddingError, TransactionError: The first failing
                batch; ``context`` holds ``batch_index``,
                ``batches_committed`` and ``records_processed``
            PipelineCancelledError: ``cancel_event`` was set mid-pass
        """
        size = batch_size if batch_size is not None else self.batch_size
        if size < 1:
            raise ValueError(f"batch_size must be positive, got {size}")

        records = self.select_records()
        batches = list(chunked(records, size))
        report = EmbeddingPassReport(total_records=len(records), total_batches=len(batches))
        self.last_report = report

        if not batches:
            logger.info("[Embed] No records need embeddings")
            return 0

        logger.info(
            f"[Embed] {len(records)} records in {len(batches)} batches "
            f"(batch_size={size}, concurrency={self.max_concurrency})"
        )

        if self.max_concurrency == 1:
            self._run_sequential(batches, report, cancel_event)
        else:
            self._run_concurrent(batches, report, cancel_event)

        logger.info(f"[Embed] Successfully processed {report.records_processed} records")
        return report.records_processed

    def _process_batch(self, batch: list[EntityRecord]) -> int:
        token = self.credentials.get_token()
        vectors = self.embedder.embed_texts([record.bio for record in batch], token, self.options)
        rows = [(record.element_id, vector) for record, vector in zip(batch, vectors)]
        try:
            return self.store.write_embeddings(rows)
        except (Neo4jError, DriverError) as e:
            raise TransactionError(f"Batch write rolled back: {e}") from e

    def _commit(self, report: EmbeddingPassReport, index: int, written: int) -> None:
        report.batches_committed += 1
        report.records_processed += written
        report.committed_batch_indexes.append(index)
        logger.debug(f"[Embed] Batch {index + 1}/{report.total_batches} committed ({written} records)")

    def _failure(self, error: ExecutiveSearchError, index: int, report: EmbeddingPassReport):
        logger.error(
            f"[Embed] Batch {index + 1}/{report.total_batches} failed after "
            f"{report.batches_committed} committed batches: {error.message}"
        )
        return error.with_context(
            batch_index=index,
            batches_committed=report.batches_committed,
            records_processed=report.records_processed,
        )

    def _cancelled(self, report: EmbeddingPassReport) -> PipelineCancelledError:
        logger.warning(f"[Embed] Cancelled after {report.batches_committed} batches")
        return PipelineCancelledError(
            "Embedding pass cancelled",
            batches_committed=report.batches_committed,
            records_processed=report.records_processed,
        )

    def _run_sequential(
        self,
        batches: list[list[EntityRecord]],
        report: EmbeddingPassReport,
        cancel_event: threading.Event | None,
    ) -> None:
        for index, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                raise self._cancelled(report)
            try:
                written = self._process_batch(batch)
            except ExecutiveSearchError as e:
                raise self._failure(e, index, report)
            self._commit(report, index, written)

    def _run_concurrent(
        self,
        batches: list[list[EntityRecord]],
        report: EmbeddingPassReport,
        cancel_event: threading.Event | None,
    ) -> None:
        # At most max_concurrency batches in flight; after the first failure
        # nothing new is started and in-flight transactions run to completion.
        pending = list(enumerate(batches))
        in_flight: dict[Future, int] = {}
        first_error: tuple[int, ExecutiveSearchError] | None = None
        cancelled = False

        with ThreadPoolExecutor(
            max_workers=self.max_concurrency,
            thread_name_prefix="embed-batch",
        ) as executor:
            while pending or in_flight:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                stop_dispatch = cancelled or first_error is not None

                while pending and not stop_dispatch and len(in_flight) < self.max_concurrency:
                    index, batch = pending.pop(0)
                    in_flight[executor.submit(self._process_batch, batch)] = index

                if not in_flight:
                    break

                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    index = in_flight.pop(future)
                    try:
                        written = future.result()
                    except ExecutiveSearchError as e:
                        if first_error is None or index < first_error[0]:
                            first_error = (index, e)
                        continue
                    self._commit(report, index, written)

        if first_error is not None:
            index, error = first_error
            raise self._failure(error, index, report)
        if cancelled:
            raise self._cancelled(report)


def run_pipeline(
    settings: Settings,
    store: GraphStore | None = None,
    credentials: CredentialProvider | None = None,
    embedder: EmbeddingClient | None = None,
    provisioner: IndexProvisioner | None = None,
    cancel_event: threading.Event | None = None,
) -> int:
    """
    Embed all pending records, then make sure the vector index is online.

    Returns:
        Process exit code: 0 on success, 1 on any pipeline error. The Neo4j
        connection is closed on every path.
    """
    log = get_logger("executive_search.pipeline")
    batch = settings.batch
    store = store or GraphStore.from_settings(settings)

    try:
        credentials = credentials or build_credential_provider(settings.google)
        embedder = embedder or build_embedding_client(
            settings.google,
            settings.embedding,
            batch.vector_dimensions,
            store=store,
        )
        orchestrator = EmbeddingOrchestrator(
            store,
            embedder,
            credentials,
            batch_size=batch.batch_size,
            reembed=batch.reembed,
            max_concurrency=batch.max_concurrency,
        )
        provisioner = provisioner or IndexProvisioner(store)

        processed = orchestrator.run_embedding_pass(cancel_event=cancel_event)
        log.info("embedding_pass_complete", records_processed=processed)

        if processed == 0 and store.count_pending_records(include_embedded=True) == 0:
            log.warning("no_records_with_text", label=settings.graph.label)

        provisioner.ensure_index(
            batch.index_name,
            batch.vector_dimensions,
            batch.similarity_function,
            batch.index_wait_timeout,
            cancel_event=cancel_event,
        )
        log.info("pipeline_complete", index=batch.index_name, records_processed=processed)
        return 0
    except ExecutiveSearchError as e:
        log.error("pipeline_failed", error_type=type(e).__name__, error=str(e))
        return 1
    except (Neo4jError, DriverError) as e:
        log.error("pipeline_failed", error_type=type(e).__name__, error=str(e))
        return 1
    except Exception as e:
        log.exception("pipeline_failed", error_type=type(e).__name__, error=str(e))
        return 1
    finally:
        store.close()
