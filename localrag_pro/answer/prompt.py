from __future__ import annotations

from typing import Iterable, List

from ..index.schema import ChatMessage, Hit

PREAMBLE = (
    "You are LocalRAG Pro, a helpful assistant. "
    "Use the provided context to answer the question.\n\n"
)


def build_prompt(query: str, contexts: Iterable[Hit], history: Iterable[ChatMessage]) -> str:
    parts: List[str] = [PREAMBLE, "CONTEXT:\n"]
    for c in contexts:
        parts.append("---\n")
        parts.append(c.text)
        parts.append("\n\n")
    parts.append("\nConversation:\n")
    for m in history:
        parts.append(f"{m.role}: {m.content}\n")
    parts.append(f"\nUser: {query}")
    parts.append("\nAssistant:")
    return "".join(parts)
