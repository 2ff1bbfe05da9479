"""
Embedding Providers for generating vector representations.

Uses OpenAI-compatible embedding APIs by default, with support for
local models via sentence-transformers, and a deterministic fake
provider for tests and offline runs.
"""

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Literal

import numpy as np

from .errors import EmbeddingError

logger = logging.getLogger("recollect.memory.embeddings")


class EmbeddingProvider(ABC):
    """Abstract interface for embedding generation."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def get_dimensions(self) -> int:
        """Return the dimension of embeddings produced."""
        pass

    @abstractmethod
    async def get_embedding(self, text: str) -> list[float]:
        """
        Generate the embedding for a single text.

        Raises:
            EmbeddingError: if no embedding could be produced
        """
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider using text-embedding-3 models.

    Works with any OpenAI-compatible endpoint via base_url. Supports native
    dimension reduction via the dimensions parameter.

    Models:
    - text-embedding-3-small: default 1536 dimensions
    - text-embedding-3-large: default 3072 dimensions (can be reduced)
    - text-embedding-ada-002: fixed 1536 dimensions
    """

    # Default dimensions for each model
    MODEL_DEFAULT_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    # Only these accept the dimensions request parameter
    REDUCIBLE_MODELS = {"text-embedding-3-small", "text-embedding-3-large"}

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        dimensions: int | None = None,
    ):
        """
        Initialize OpenAI embedding provider.

        Args:
            api_key: OpenAI API key
            model: Embedding model name
            base_url: Override API base URL (for OpenAI-compatible services)
            dimensions: Override output dimensions. If None, uses model's
                        default dimensions.
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self._client = None

        default_dim = self.MODEL_DEFAULT_DIMENSIONS.get(model)
        self._requested_dimensions = None
        if dimensions is None:
            self._dimension = default_dim or 1536
        elif default_dim is not None and dimensions > default_dim:
            logger.warning(
                f"Requested dimensions ({dimensions}) exceeds model default ({default_dim}). "
                f"Using {default_dim}."
            )
            self._dimension = default_dim
        else:
            self._dimension = dimensions
            if model in self.REDUCIBLE_MODELS:
                self._requested_dimensions = dimensions

        logger.info(
            f"OpenAIEmbeddingProvider initialized: model={model}, dimensions={self._dimension}"
        )

    @property
    def name(self) -> str:
        return f"openai:{self.model}"

    def get_dimensions(self) -> int:
        return self._dimension

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def get_embedding(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        client = self._get_client()

        kwargs = {
            "model": self.model,
            "input": text,
        }
        if self._requested_dimensions is not None:
            kwargs["dimensions"] = self._requested_dimensions

        logger.debug(f"Requesting embedding, text length: {len(text)}")
        try:
            response = await client.embeddings.create(**kwargs)
        except Exception as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e

        embedding = response.data[0].embedding
        if len(embedding) != self._dimension:
            logger.warning(
                f"Returned embedding has {len(embedding)} dimensions, expected {self._dimension}"
            )
        return embedding


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    Local embedding provider using sentence-transformers.

    Uses all-MiniLM-L6-v2 by default (384 dimensions, fast, good quality).
    Without explicit dimensions, get_dimensions() loads the model to ask it.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", dimensions: int | None = None):
        self.model_name = model_name
        self._model = None
        self._dimension = dimensions
        logger.info(f"LocalEmbeddingProvider initialized with model: {model_name}")

    @property
    def name(self) -> str:
        return f"local:{self.model_name}"

    def get_dimensions(self) -> int:
        if self._dimension is None:
            self._get_model()
        return self._dimension

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise RuntimeError(
                    "sentence-transformers not installed. "
                    "Install with: pip install sentence-transformers"
                )
            self._model = SentenceTransformer(self.model_name)
            loaded = self._model.get_sentence_embedding_dimension()
            if self._dimension is not None and loaded != self._dimension:
                logger.warning(
                    f"Model {self.model_name} produces {loaded} dimensions, not the configured {self._dimension}"
                )
            self._dimension = loaded
            logger.info(f"Loaded local embedding model: {self.model_name}")
        return self._model

    async def get_embedding(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        model = self._get_model()
        try:
            # encode() is CPU-bound; keep the event loop responsive
            embedding = await asyncio.to_thread(model.encode, text, convert_to_numpy=True)
        except Exception as e:
            raise EmbeddingError(f"Local embedding failed: {e}") from e
        return embedding.tolist()


class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic embedding provider for tests and offline use.

    The same text always maps to the same unit vector; different texts
    map to effectively unrelated ones.
    """

    def __init__(self, dimensions: int = 384):
        self._dimension = dimensions
        self._cache: dict[str, list[float]] = {}
        logger.info(f"FakeEmbeddingProvider initialized with {dimensions} dimensions")

    @property
    def name(self) -> str:
        return "fake"

    def get_dimensions(self) -> int:
        return self._dimension

    async def get_embedding(self, text: str) -> list[float]:
        if text in self._cache:
            return list(self._cache[text])

        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "little")
        rng = np.random.default_rng(seed)
        vector = rng.uniform(-1.0, 1.0, self._dimension)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm

        embedding = vector.astype(np.float32).tolist()
        self._cache[text] = embedding
        return list(embedding)


def create_embedding_provider(
    provider: Literal["openai", "local", "fake"] = "openai",
    api_key: str = "",
    model: str = "",
    base_url: str | None = None,
    dimensions: int | None = None,
) -> EmbeddingProvider:
    """
    Factory function to create the appropriate embedding provider.

    Args:
        provider: "openai", "local" or "fake"
        api_key: OpenAI API key (required for openai provider)
        model: Model name (optional, uses defaults)
        base_url: API base URL for OpenAI-compatible services
        dimensions: Override output dimensions

    Returns:
        Configured EmbeddingProvider instance
    """
    if provider == "openai":
        if not api_key:
            raise ValueError("OpenAI API key required for openai embedding provider")
        return OpenAIEmbeddingProvider(
            api_key=api_key,
            model=model or "text-embedding-3-small",
            base_url=base_url,
            dimensions=dimensions,
        )
    elif provider == "local":
        return LocalEmbeddingProvider(
            model_name=model or "all-MiniLM-L6-v2",
            dimensions=dimensions,
        )
    elif provider == "fake":
        return FakeEmbeddingProvider(dimensions=dimensions or 384)
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
