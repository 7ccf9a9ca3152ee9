import re
import sys
from pathlib import Path

import pytest

# Repo root = one level above tests/
REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure repo root is on sys.path so `import localrag_pro` / `import cli` work.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from localrag_pro.index.memory import MemoryVectorStore  # noqa: E402
from localrag_pro.index.store import VectorStoreError  # noqa: E402
from localrag_pro.llm.base import InferenceClient, InferenceError  # noqa: E402

VOCAB = ["paris", "capital", "france", "banana", "python", "berlin", "germany"]


def bag_of_words(text: str) -> list[float]:
    toks = re.findall(r"[a-z]+", text.lower())
    return [float(toks.count(w)) for w in VOCAB]


class FakeInference(InferenceClient):
    """Deterministic stand-in for the model server."""

    def __init__(self, answer="stub answer", embed_result="auto", fail_embed_on=()):
        self.answer = answer
        self.embed_result = embed_result
        self.fail_embed_on = tuple(fail_embed_on)
        self.embedded: list[str] = []
        self.prompts: list[str] = []

    def embed(self, text):
        self.embedded.append(text)
        if any(marker in text for marker in self.fail_embed_on):
            raise InferenceError("connection refused")
        if self.embed_result == "auto":
            vec = bag_of_words(text)
            return vec if any(vec) else [0.0] * (len(VOCAB) - 1) + [0.01]
        return self.embed_result

    def generate(self, prompt):
        self.prompts.append(prompt)
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer


class FlakyStore(MemoryVectorStore):
    """Memory store whose upserts fail for paths containing a marker."""

    def __init__(self, fail_marker="broken", fail_query=False):
        super().__init__()
        self.fail_marker = fail_marker
        self.fail_query = fail_query
        self.query_calls = 0

    def upsert(self, chunk):
        if self.fail_marker and self.fail_marker in chunk.path:
            raise VectorStoreError("helper exited 1: broken pipe")
        super().upsert(chunk)

    def _query(self, embedding, top_k):
        self.query_calls += 1
        if self.fail_query:
            raise VectorStoreError("helper query exited 1")
        return super()._query(embedding, top_k)


@pytest.fixture
def inference():
    return FakeInference()


@pytest.fixture
def store():
    return MemoryVectorStore()


@pytest.fixture
def docs(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    return root
