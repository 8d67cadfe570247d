"""Embedding generation with dual backend (FastEmbed + OpenAI)."""

from __future__ import annotations

import os
import warnings
from typing import Protocol

from memvid_cli.core.config import EmbeddingConfig
from memvid_cli.core.errors import EmbeddingError, EmbeddingUnavailableError


def _suppress_hf_warnings() -> None:
    """Suppress noisy HuggingFace/tokenizers warnings during embedding model load."""
    os.environ.setdefault("TOKENIZERS_PARALLELISM", "false")
    os.environ.setdefault("HF_HUB_DISABLE_PROGRESS_BARS", "1")
    os.environ.setdefault("TRANSFORMERS_NO_ADVISORY_WARNINGS", "1")
    warnings.filterwarnings("ignore", message=".*huggingface.*", category=FutureWarning)
    warnings.filterwarnings("ignore", message=".*tokenizers.*")
    warnings.filterwarnings("ignore", message=".*progress bar.*", category=UserWarning)
    warnings.filterwarnings("ignore", module="huggingface_hub")


class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    def embed(self, text: str) -> list[float]: ...


class FastEmbedBackend:
    """Local embedding backend using FastEmbed (ONNX Runtime)."""

    _model_cache: dict[str, object] = {}  # class-level cache for model instances

    def __init__(self, config: EmbeddingConfig):
        self.model_name = config.model

    def load(self) -> None:
        """Load the model now so a missing install fails before any work starts."""
        self._get_model()

    def _get_model(self):
        if self.model_name not in self._model_cache:
            _suppress_hf_warnings()
            try:
                from fastembed import TextEmbedding
            except ImportError as e:
                raise EmbeddingUnavailableError(f"fastembed is not installed: {e}") from e

            try:
                self._model_cache[self.model_name] = TextEmbedding(model_name=self.model_name)
            except Exception as e:
                raise EmbeddingUnavailableError(
                    f"could not load embedding model {self.model_name}: {e}"
                ) from e
        return self._model_cache[self.model_name]

    def embed(self, text: str) -> list[float]:
        model = self._get_model()
        try:
            return list(model.embed([text]))[0].tolist()
        except Exception as e:
            raise EmbeddingError(f"fastembed failed: {e}") from e


class OpenAIBackend:
    """Remote embedding backend using OpenAI-compatible API."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config
        self._client = None

    def load(self) -> None:
        self._get_client()

    def _get_client(self):
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError as e:
                raise EmbeddingUnavailableError(f"openai is not installed: {e}") from e

            kwargs: dict = {}
            api_key = self.config.resolve_api_key()
            if api_key:
                kwargs["api_key"] = api_key
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            try:
                self._client = OpenAI(**kwargs)
            except Exception as e:
                raise EmbeddingUnavailableError(f"could not create OpenAI client: {e}") from e
        return self._client

    def embed(self, text: str) -> list[float]:
        client = self._get_client()
        kwargs: dict = {
            "model": self.config.model,
            "input": [text],
        }
        if self.config.dimensions:
            kwargs["dimensions"] = self.config.dimensions
        try:
            response = client.embeddings.create(**kwargs)
        except Exception as e:
            raise EmbeddingError(f"OpenAI embeddings request failed: {e}") from e
        return list(response.data[0].embedding)


def load_embedder(config: EmbeddingConfig | None = None) -> Embedder:
    """Create and load the embedding backend named by ``config.provider``.

    Raises EmbeddingUnavailableError when embeddings are disabled, the
    provider is unknown, or the backend cannot be loaded.
    """
    config = config or EmbeddingConfig.from_env()
    if config.provider == "fastembed":
        backend: FastEmbedBackend | OpenAIBackend = FastEmbedBackend(config)
    elif config.provider == "openai":
        backend = OpenAIBackend(config)
    elif config.provider == "none":
        raise EmbeddingUnavailableError("embeddings are disabled (MEMVID_EMBED_PROVIDER=none)")
    else:
        raise EmbeddingUnavailableError(f"unknown embedding provider: {config.provider!r}")
    backend.load()
    return backend
