from .memory import MemoryVectorStore
from .store import VectorStoreClient


def make_store(cfg: dict) -> VectorStoreClient:
    """Build the vector store described by the `vector_store` config section."""
    cfg = cfg or {}
    backend = (cfg.get("backend") or "chroma").lower()

    if backend == "memory":
        return MemoryVectorStore()

    if backend == "chroma":
        from .chroma import ChromaVectorStore

        return ChromaVectorStore(
            persist_dir=cfg.get("persist_dir") or ".localrag-data/chroma",
            collection=cfg.get("collection") or "docs",
        )

    if backend == "helper":
        from .helper import HelperVectorStore

        return HelperVectorStore(
            command=cfg.get("helper_command") or [],
            timeout=float(cfg.get("timeout") or 30),
            cwd=cfg.get("helper_cwd"),
        )

    raise RuntimeError(f"Unsupported vector store backend: {backend}")
