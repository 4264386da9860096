"""
Tests for environment-driven settings.
"""

import pytest
from pydantic import ValidationError

from config import BatchConfig, GoogleConfig, Settings

ENV_VARS = [
    "BATCH_SIZE", "VECTOR_DIMENSIONS", "SIMILARITY_FUNCTION", "INDEX_NAME",
    "INDEX_WAIT_TIMEOUT", "MAX_CONCURRENCY", "REEMBED", "SEARCH_SCORE_ORDER",
    "GOOGLE_PROJECT_ID", "GOOGLE_LOCATION", "VERTEX_MODEL", "GOOGLE_APPLICATION_CREDENTIALS",
    "GOOGLE_ACCESS_TOKEN", "NEO4J_URI", "LOG_LEVEL", "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)  # no stray .env


class TestDefaults:

    def test_batch_defaults(self):
        batch = BatchConfig()

        assert batch.batch_size == 5
        assert batch.vector_dimensions == 768
        assert batch.similarity_function == "cosine"
        assert batch.index_name == "bio_text_embeddings"
        assert batch.index_wait_timeout == 300
        assert batch.max_concurrency == 1
        assert batch.reembed is False

    def test_google_defaults(self):
        google = GoogleConfig()

        assert google.location == "us-central1"
        assert google.model == "textembedding-gecko@003"
        assert google.application_credentials is None

    def test_graph_schema_defaults(self):
        graph = Settings().graph

        assert (graph.label, graph.name_property, graph.text_property, graph.embedding_property) == (
            "Executive", "full_name", "bio", "textEmbedding",
        )


class TestEnvironment:

    def test_pipeline_variables(self, monkeypatch):
        monkeypatch.setenv("BATCH_SIZE", "25")
        monkeypatch.setenv("VECTOR_DIMENSIONS", "256")
        monkeypatch.setenv("SIMILARITY_FUNCTION", "euclidean")
        monkeypatch.setenv("INDEX_NAME", "exec_bios")
        monkeypatch.setenv("INDEX_WAIT_TIMEOUT", "60")

        batch = Settings().batch

        assert batch.batch_size == 25
        assert batch.vector_dimensions == 256
        assert batch.similarity_function == "euclidean"
        assert batch.index_name == "exec_bios"
        assert batch.index_wait_timeout == 60

    def test_google_variables(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_PROJECT_ID", "demo-project")
        monkeypatch.setenv("GOOGLE_LOCATION", "europe-west4")
        monkeypatch.setenv("VERTEX_MODEL", "text-embedding-004")
        monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", "/secrets/key.json")

        google = Settings().google

        assert google.project_id == "demo-project"
        assert google.location == "europe-west4"
        assert google.model == "text-embedding-004"
        assert google.application_credentials == "/secrets/key.json"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("LOG_LEVEL=DEBUG\n")

        assert Settings().log_level == "DEBUG"

    def test_invalid_similarity_rejected(self, monkeypatch):
        monkeypatch.setenv("SIMILARITY_FUNCTION", "dot")

        with pytest.raises(ValidationError):
            BatchConfig()

    def test_non_positive_batch_size_rejected(self, monkeypatch):
        monkeypatch.setenv("BATCH_SIZE", "0")

        with pytest.raises(ValidationError):
            BatchConfig()
