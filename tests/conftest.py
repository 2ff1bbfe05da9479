"""
Shared pytest fixtures for recollect tests.

This module provides:
- Temporary record store directories and index paths
- Deterministic embedding providers (fake and hand-picked vectors)
- Un-initialized MemoryManager instances wired to in-memory storage
- Sample config files
"""

from pathlib import Path

import pytest

from recollect.memory.embeddings import FakeEmbeddingProvider
from recollect.memory.memory_manager import MemoryManager
from recollect.memory.record_store import FileRecordStore, InMemoryRecordStore
from tests.fixtures import StaticEmbeddingProvider, make_memories


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def records_dir(tmp_path) -> Path:
    """Provide a temporary directory for JSON records."""
    return tmp_path / "memories"


@pytest.fixture
def index_path(tmp_path) -> str:
    """Provide a temporary path for a persisted vector index."""
    return str(tmp_path / "index" / "memories.faiss")


@pytest.fixture
def file_store(records_dir) -> FileRecordStore:
    return FileRecordStore(base_path=str(records_dir))


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


# =============================================================================
# Embedding Fixtures
# =============================================================================


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    """Deterministic hash-seeded provider with small vectors."""
    return FakeEmbeddingProvider(dimensions=16)


@pytest.fixture
def static_provider() -> StaticEmbeddingProvider:
    """Provider whose vectors the test controls."""
    return StaticEmbeddingProvider(dimensions=16)


@pytest.fixture
def sample_memories():
    """Provide memories with orthogonal 8-dim embeddings."""
    return make_memories(count=5, dimensions=8)


# =============================================================================
# Manager Fixtures
# =============================================================================


@pytest.fixture
def manager(memory_store, static_provider) -> MemoryManager:
    """MemoryManager on in-memory storage. Tests call initialize()."""
    return MemoryManager(
        record_store=memory_store,
        embedding_provider=static_provider,
        max_memories=10,
        embedding_timeout=1.0,
    )


@pytest.fixture
def file_manager_factory(records_dir, index_path, static_provider):
    """Build managers sharing one records directory and index path."""
    def _build(**kwargs) -> MemoryManager:
        options = {
            "max_memories": 10,
            "embedding_timeout": 1.0,
            "index_path": index_path,
        }
        options.update(kwargs)
        return MemoryManager(
            record_store=FileRecordStore(base_path=str(records_dir)),
            embedding_provider=static_provider,
            **options,
        )

    return _build


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture
def sample_config_yaml(tmp_path) -> Path:
    """Create a sample config.yaml file."""
    config_path = tmp_path / "config.yaml"
    config_content = """
embedding:
  provider: fake
  dimensions: 32
  timeout: 5.0

storage:
  backend: file
  data_path: ./data/test-memories

index:
  index_path: ./data/test-index.faiss
  m: 8
  ef_search: 32

memory:
  max_memories: 50
  similarity_threshold: 0.7

logging:
  level: DEBUG
"""
    config_path.write_text(config_content)
    return config_path


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment variables that override config."""
    for name in (
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "POSTGRES_URL",
        "MEMORY_MAX_SIZE",
        "MEMORY_SIMILARITY_THRESHOLD",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a stray .env in the working directory from leaking in
    monkeypatch.setattr("recollect.config.load_dotenv", lambda *args, **kwargs: False)
