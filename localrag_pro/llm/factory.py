from .base import InferenceClient
from .command import CommandClient
from .ollama import OllamaClient, normalize_endpoint


def make_inference(cfg: dict) -> InferenceClient:
    """Build the inference client described by the `inference` config section."""
    cfg = cfg or {}
    backend = (cfg.get("backend") or "ollama").lower()

    if backend == "ollama":
        endpoint = normalize_endpoint(cfg.get("endpoint"))
        # Offline guard: only allow localhost endpoints
        if cfg.get("offline", True) and not (
            endpoint.startswith("http://localhost") or endpoint.startswith("http://127.0.0.1")
        ):
            raise RuntimeError(f"Offline mode: refusing non-local endpoint: {endpoint}")
        return OllamaClient(
            embed_model=cfg.get("embed_model", "nomic-embed-text"),
            chat_model=cfg.get("chat_model", "llama3.2"),
            endpoint=endpoint,
            keep_alive=cfg.get("keep_alive"),
            timeout=cfg.get("timeout"),
        )

    if backend == "command":
        cmds = cfg.get("command") or {}
        return CommandClient(
            embed_cmd=cmds.get("embed"),
            generate_cmd=cmds.get("generate"),
            timeout=float(cfg.get("timeout") or 600),
        )

    raise RuntimeError(f"Unsupported backend: {backend}")
