"""
Configuration module for recollect.

Loads settings from config.yaml and secrets from environment variables.
Environment overrides (MEMORY_MAX_SIZE, MEMORY_SIMILARITY_THRESHOLD)
take precedence over the YAML file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv

# Default config file path
CONFIG_FILE = Path(__file__).parent.parent / "config.yaml"

STORAGE_BACKENDS = ("file", "postgres", "memory")
EMBEDDING_PROVIDERS = ("openai", "local", "fake")


def _load_yaml_config(path: Path) -> dict:
    """Load configuration from YAML file."""
    if path.exists():
        with open(path) as f:
            return yaml.safe_load(f) or {}
    return {}


def _get_yaml(data: dict, section: str, key: str, default=None):
    """Get a value from a loaded YAML config."""
    return (data.get(section) or {}).get(key, default)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger("recollect.config").warning(f"Ignoring non-integer {name}={value!r}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger("recollect.config").warning(f"Ignoring non-numeric {name}={value!r}")
        return default


@dataclass
class EmbeddingConfig:
    """Embedding provider settings."""
    provider: Literal["openai", "local", "fake"] = "openai"
    # "text-embedding-3-small" (1536d) for openai, "all-MiniLM-L6-v2" (384d) for local
    model: str = ""
    # None = use the model's default dimensions
    dimensions: int | None = None
    timeout: float = 10.0
    # Secrets from .env
    api_key: str = ""
    base_url: str = ""


@dataclass
class StorageConfig:
    """Record store backend settings."""
    backend: Literal["file", "postgres", "memory"] = "file"
    data_path: str = "./data/memories"
    # Secret from .env (contains credentials)
    postgres_url: str = ""
    table_name: str = "memories"


@dataclass
class IndexConfig:
    """HNSW vector index settings."""
    # Empty = never persist; the index is rebuilt from records on start
    index_path: str = ""
    # None = twice max_memories
    capacity: int | None = None
    m: int = 16
    ef_construction: int = 200
    ef_search: int = 50
    compact_ratio: float = 0.25


@dataclass
class MemoryConfig:
    """Retention and retrieval settings."""
    max_memories: int = 1000
    similarity_threshold: float = 0.6
    important_ratio: float = 0.7
    recent_ratio: float = 0.3
    base_importance: float = 0.5


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: Path | None = None

    def setup_logging(self) -> logging.Logger:
        """Configure and return the package logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.logging.level.upper(), logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        return logging.getLogger("recollect")

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []

        if self.embedding.provider not in EMBEDDING_PROVIDERS:
            errors.append(f"Unknown embedding provider: {self.embedding.provider}")
        elif self.embedding.provider == "openai" and not self.embedding.api_key:
            errors.append("OPENAI_API_KEY is required when using the openai embedding provider")

        if self.embedding.dimensions is not None and self.embedding.dimensions <= 0:
            errors.append("embedding.dimensions must be positive")
        if self.embedding.timeout <= 0:
            errors.append("embedding.timeout must be positive")

        if self.storage.backend not in STORAGE_BACKENDS:
            errors.append(f"Unknown storage backend: {self.storage.backend}")
        elif self.storage.backend == "postgres" and not self.storage.postgres_url:
            errors.append("POSTGRES_URL is required for the postgres storage backend")

        if self.memory.max_memories <= 0:
            errors.append("memory.max_memories must be positive")
        if not 0.0 <= self.memory.similarity_threshold <= 1.0:
            errors.append("memory.similarity_threshold must be within [0, 1]")
        if not 0.0 <= self.memory.base_importance <= 1.0:
            errors.append("memory.base_importance must be within [0, 1]")
        if self.memory.important_ratio < 0 or self.memory.recent_ratio < 0:
            errors.append("memory retention ratios must not be negative")
        elif self.memory.important_ratio + self.memory.recent_ratio > 1.0:
            errors.append("memory.important_ratio + memory.recent_ratio must not exceed 1")

        if self.index.capacity is not None and self.index.capacity <= self.memory.max_memories:
            errors.append("index.capacity must be larger than memory.max_memories")
        if not 0.0 < self.index.compact_ratio < 1.0:
            errors.append("index.compact_ratio must be within (0, 1)")

        return errors


def _section(data: dict, name: str, cls: type) -> Any:
    """Build a config dataclass from a YAML section, ignoring unknown keys."""
    values = data.get(name) or {}
    known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
    unknown = set(values) - set(known)
    if unknown:
        logging.getLogger("recollect.config").warning(
            f"Ignoring unknown keys in '{name}' section: {sorted(unknown)}"
        )
    return cls(**known)


def load_config(path: str | os.PathLike | None = None) -> Config:
    """
    Load configuration from YAML plus environment.

    Args:
        path: Config file; defaults to config.yaml at the project root.
              A missing file just means defaults.

    Returns:
        Populated Config
    """
    # Load environment variables from .env file
    load_dotenv()

    config_path = Path(path) if path is not None else CONFIG_FILE
    data = _load_yaml_config(config_path)

    embedding = _section(data, "embedding", EmbeddingConfig)
    storage = _section(data, "storage", StorageConfig)
    index = _section(data, "index", IndexConfig)
    memory = _section(data, "memory", MemoryConfig)
    logging_config = LoggingConfig(level=_get_yaml(data, "logging", "level", "INFO"))

    # Secrets from .env
    embedding.api_key = os.getenv("OPENAI_API_KEY", embedding.api_key)
    embedding.base_url = os.getenv("OPENAI_BASE_URL", embedding.base_url)
    storage.postgres_url = os.getenv("POSTGRES_URL", storage.postgres_url)

    memory.max_memories = _env_int("MEMORY_MAX_SIZE", memory.max_memories)
    memory.similarity_threshold = _env_float("MEMORY_SIMILARITY_THRESHOLD", memory.similarity_threshold)

    return Config(
        embedding=embedding,
        storage=storage,
        index=index,
        memory=memory,
        logging=logging_config,
        source=config_path if config_path.exists() else None,
    )
