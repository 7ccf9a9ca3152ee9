from __future__ import annotations

import uuid
from typing import FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def new_chunk_id() -> str:
    return str(uuid.uuid4())


class Document(BaseModel):
    path: str
    raw_text: str


class IndexedChunk(BaseModel):
    id: str = Field(default_factory=new_chunk_id)  # fresh per upsert, never reused
    path: str
    text: str
    embedding: Optional[List[float]] = None  # None => text-only storage

    def to_payload(self) -> dict:
        return {"id": self.id, "path": self.path, "text": self.text, "embedding": self.embedding}


class Hit(BaseModel):
    text: str
    path: str
    score: float
    id: Optional[str] = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: Optional[str] = None  # ISO-8601


class WatchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["created", "modified", "removed"]
    paths: FrozenSet[str]


class IngestItem(BaseModel):
    path: str
    status: Literal["indexed", "skipped", "failed"]
    reason: Optional[str] = None
    chunk_id: Optional[str] = None
    embedded: bool = False


class IngestSummary(BaseModel):
    folder: str
    items: List[IngestItem] = Field(default_factory=list)
    watching: bool = False

    def count_status(self, status: str) -> int:
        return sum(1 for it in self.items if it.status == status)

    @property
    def indexed(self) -> int:
        return self.count_status("indexed")

    @property
    def skipped(self) -> int:
        return self.count_status("skipped")

    @property
    def failed(self) -> int:
        return self.count_status("failed")


class AnswerResult(BaseModel):
    answer: str
    sources: List[Hit] = Field(default_factory=list)
