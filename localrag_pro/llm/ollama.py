# llm/ollama.py
from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests

from .base import InferenceClient, InferenceError, generation_failed, parse_embedding

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA = "http://localhost:11434"


def _timeouts(read_timeout: Optional[float] = None) -> tuple[float, float]:
    """Return (connect_timeout, read_timeout) in seconds; env-overridable."""
    ct = float(os.getenv("OLLAMA_CONNECT_TIMEOUT", "10"))
    rt = float(os.getenv("OLLAMA_READ_TIMEOUT", str(read_timeout or 600)))
    return (ct, rt)


def normalize_endpoint(ep: Optional[str]) -> str:
    """endpoint > OLLAMA_HOST > default; ensure scheme; strip trailing slash."""
    cand = (ep or os.getenv("OLLAMA_HOST") or DEFAULT_OLLAMA).strip()
    if not re.match(r"^https?://", cand):
        cand = "http://" + cand
    return cand.rstrip("/")


class OllamaClient(InferenceClient):
    """
    Ollama HTTP client for both halves of the inference contract.

        client = OllamaClient(embed_model="nomic-embed-text", chat_model="llama3.2")
        vec = client.embed("some text")      # list[float] | None
        text = client.generate(prompt)       # never raises on backend failure
    """

    def __init__(
        self,
        embed_model: str = "nomic-embed-text",
        chat_model: str = "llama3.2",
        endpoint: Optional[str] = None,
        keep_alive: Optional[str] = None,
        timeout: Optional[float] = None,
        **_: Any,
    ) -> None:
        self.embed_model = embed_model
        self.chat_model = chat_model
        self.base = normalize_endpoint(endpoint)
        self.keep_alive = keep_alive
        self.timeout = timeout

    def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.base}{path}"
        try:
            r = requests.post(url, json=payload, timeout=_timeouts(self.timeout))
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise InferenceError(f"{url}: {e}") from e
        try:
            return r.json()
        except ValueError:
            # transport worked, body is garbage
            logger.debug("non-JSON body from %s", url)
            return None

    def embed(self, text: str) -> Optional[List[float]]:
        payload: Dict[str, Any] = {"model": self.embed_model, "prompt": text}
        if self.keep_alive:
            payload["keep_alive"] = self.keep_alive
        vec = parse_embedding(self._post("/api/embeddings", payload))
        if vec is None:
            logger.warning("Unparsable embedding response from %s (model=%s)", self.base, self.embed_model)
        return vec

    def generate(self, prompt: str) -> str:
        payload: Dict[str, Any] = {"model": self.chat_model, "prompt": prompt, "stream": False}
        if self.keep_alive:
            payload["keep_alive"] = self.keep_alive
        try:
            data = self._post("/api/generate", payload)
        except InferenceError as e:
            logger.warning("Generation failed: %s", e)
            return generation_failed(e)
        if not isinstance(data, dict):
            return generation_failed("unparsable response from model server")
        # Common shapes:
        #  - {"response":"..."} from /api/generate
        #  - {"message":{"role":"assistant","content":"..."}}
        msg = data.get("message", {})
        if isinstance(msg, dict) and "content" in msg:
            return str(msg["content"])
        if "error" in data:
            return generation_failed(data["error"])
        return str(data.get("response") or "")
