# server.py
# Run with: uvicorn --factory localrag_pro.server:create_app
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .app import LocalRAG, load_config
from .index.schema import AnswerResult, ChatMessage
from .ingest.pipeline import FolderNotFoundError

logger = logging.getLogger(__name__)


class IndexRequest(BaseModel):
    folder: str


class ChatRequest(BaseModel):
    query: str
    history: List[ChatMessage] = Field(default_factory=list)


class MessagesRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)


def create_app(rag: Optional[LocalRAG] = None, config: Optional[str] = "config.yaml") -> FastAPI:
    rag = rag or LocalRAG(load_config(config))

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        rag.close()

    app = FastAPI(title="LocalRAG Pro", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )
    app.state.rag = rag

    @app.get("/health")
    def health():
        return {"ok": True, "count": rag.store.count()}

    @app.post("/index")
    async def index_folder(req: IndexRequest):
        try:
            summary = await rag.index_folder(req.folder)
        except FolderNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {
            "folder": summary.folder,
            "indexed": summary.indexed,
            "skipped": summary.skipped,
            "failed": summary.failed,
            "watching": summary.watching,
            "items": [it.model_dump() for it in summary.items],
        }

    @app.post("/chat", response_model=AnswerResult)
    async def chat(req: ChatRequest):
        try:
            return await rag.chat_query(req.query, req.history)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.post("/chats/save")
    def save_chat(req: MessagesRequest):
        return {"path": str(rag.save_chat(req.messages))}

    @app.post("/chats/export")
    def export_chat(req: MessagesRequest):
        return rag.export_chat(req.messages)

    return app
