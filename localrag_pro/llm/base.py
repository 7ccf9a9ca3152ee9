from abc import ABC, abstractmethod
from numbers import Real
from typing import Any, List, Optional

GENERATION_FAILED = "(failed to generate answer)"


class InferenceError(RuntimeError):
    """The inference backend could not be reached or refused the request."""


def generation_failed(detail: Any) -> str:
    return f"{GENERATION_FAILED}: {detail}"


def parse_embedding(payload: Any) -> Optional[List[float]]:
    """
    Pull a vector out of an embedding response.

    Accepts {"embedding": [...]} and {"embeddings": [[...], ...]}; non-numeric
    entries are dropped. Anything else is treated as absent.
    """
    if not isinstance(payload, dict):
        return None
    vec = payload.get("embedding")
    if not isinstance(vec, list) or not vec:
        many = payload.get("embeddings")
        vec = many[0] if isinstance(many, list) and many and isinstance(many[0], list) else None
    if not vec:
        return None
    out = [float(x) for x in vec if isinstance(x, Real) and not isinstance(x, bool)]
    return out or None


class InferenceClient(ABC):
    @abstractmethod
    def embed(self, text: str) -> Optional[List[float]]:
        """Return an embedding, or None when the response could not be parsed.

        Raises InferenceError when the backend itself failed.
        """
        ...

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return generated text; backend failures come back as a marked error string."""
        ...
