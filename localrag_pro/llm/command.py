from __future__ import annotations

import json
import logging
from typing import List, Optional, Sequence

from ..utils.proc import ProcessFailed, run_process
from .base import InferenceClient, InferenceError, generation_failed, parse_embedding

logger = logging.getLogger(__name__)

DEFAULT_EMBED_CMD = ["ollama", "embed", "nomic-embed-text", "--text"]
DEFAULT_GENERATE_CMD = ["ollama", "run", "llama3.2"]


class CommandClient(InferenceClient):
    """Inference over spawned processes; the text or prompt is passed as the last argument."""

    def __init__(
        self,
        embed_cmd: Optional[Sequence[str]] = None,
        generate_cmd: Optional[Sequence[str]] = None,
        timeout: float = 600.0,
    ) -> None:
        self.embed_cmd = list(embed_cmd or DEFAULT_EMBED_CMD)
        self.generate_cmd = list(generate_cmd or DEFAULT_GENERATE_CMD)
        self.timeout = float(timeout)

    def embed(self, text: str) -> Optional[List[float]]:
        try:
            res = run_process([*self.embed_cmd, text], timeout=self.timeout)
        except ProcessFailed as e:
            raise InferenceError(str(e)) from e
        if not res.ok:
            raise InferenceError(
                f"embed command exited {res.returncode}: {res.stderr.strip()[:500]}"
            )
        try:
            payload = json.loads(res.stdout)
        except ValueError:
            logger.warning("Embed command printed non-JSON output")
            return None
        return parse_embedding(payload)

    def generate(self, prompt: str) -> str:
        try:
            res = run_process([*self.generate_cmd, prompt], timeout=self.timeout)
        except ProcessFailed as e:
            return generation_failed(e)
        if not res.ok:
            return generation_failed(res.stderr.strip() or f"exit status {res.returncode}")
        return res.stdout
