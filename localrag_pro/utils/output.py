from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Dict, Iterable, List

from ..index.schema import ChatMessage


def _dump(messages: Iterable[ChatMessage]) -> str:
    return json.dumps([m.model_dump() for m in messages], ensure_ascii=False, indent=2)


def as_markdown(messages: Iterable[ChatMessage]) -> str:
    lines: List[str] = []
    for m in messages:
        lines.append(f"**{m.role}** ({m.timestamp or ''})\n\n{m.content}\n\n")
    return "".join(lines)


def save_chat(messages: List[ChatMessage], data_dir: Path | str) -> Path:
    chats_dir = Path(data_dir) / "chats"
    chats_dir.mkdir(parents=True, exist_ok=True)
    target = chats_dir / f"{uuid.uuid4()}.json"
    target.write_text(_dump(messages), encoding="utf-8")
    return target


def export_chat(messages: List[ChatMessage], data_dir: Path | str) -> Dict[str, str]:
    """Write the conversation as JSON and Markdown side by side; return both paths."""
    exports_dir = Path(data_dir) / "exports"
    exports_dir.mkdir(parents=True, exist_ok=True)
    stem = str(uuid.uuid4())

    json_file = exports_dir / f"{stem}.json"
    json_file.write_text(_dump(messages), encoding="utf-8")

    md_file = exports_dir / f"{stem}.md"
    md_file.write_text(as_markdown(messages), encoding="utf-8")

    return {"path": str(md_file), "json": str(json_file)}


def load_chat(path: Path | str) -> List[ChatMessage]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of chat messages")
    return [ChatMessage(**m) for m in data]
