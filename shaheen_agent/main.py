from __future__ import annotations
from datetime import datetime, timezone
from typing import List

import os
import logging
import anyio
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .models.schemas import (
    HealthResponse,
    ConversationStartRequest,
    ConversationMessageRequest,
    ConversationTurnResponse,
    ConversationState,
    ConversationRecord,
    SimilarRecord,
    MemoryStats,
    RecordPatch,
    FeedbackRequest,
    ImportResponse,
)
from .core.catalogue import DOCUMENT_TYPES, DEFAULT_DOC_TYPE
from .core.llm import get_provider
from .core.security import sanitize_input
from .core.sessions import SessionRegistry
from .storage.kv import FileKeyValueStore, InMemoryKeyValueStore
from .storage.memory import MemoryStore, MAX_CONVERSATIONS


app = FastAPI(title="shaheen_agent", version="0.1.0")

# Configure logging for this app
_log_level_name = os.getenv("SHAHEEN_LOG_LEVEL", "INFO").upper()
_log_level = getattr(logging, _log_level_name, logging.INFO)
logger = logging.getLogger("shaheen")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    logger.addHandler(handler)
logger.setLevel(_log_level)
logger.propagate = False

# Optional dev CORS (enable by setting SHAHEEN_DEV_CORS=1)
if os.getenv("SHAHEEN_DEV_CORS") == "1":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Single-process instances
# Memory: files under SHAHEEN_MEMORY_DIR when set; else process memory
_memory_dir = os.getenv("SHAHEEN_MEMORY_DIR")
if _memory_dir:
    kv = FileKeyValueStore(_memory_dir)
    logger.info("memory.backend kind=file root=%s", _memory_dir)
else:
    kv = InMemoryKeyValueStore()
    logger.info("memory.backend kind=memory")
memory = MemoryStore(kv, max_conversations=int(os.getenv("SHAHEEN_MAX_CONVERSATIONS", str(MAX_CONVERSATIONS))))

provider = get_provider()
logger.info("provider.selected kind=%s", provider.name)

registry = SessionRegistry(memory=memory, provider=provider, max_sessions=int(os.getenv("SHAHEEN_MAX_SESSIONS", "50")))


def _check_doc_type(doc_type: str) -> str:
    if doc_type not in DOCUMENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown doc_type. Expected one of: {', '.join(DOCUMENT_TYPES)}")
    return doc_type


def _controller(session_id: str):
    controller = registry.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="session not found")
    return controller


@app.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health():
    return HealthResponse(status="ok", provider=registry.provider.name)


@app.get("/doc-types", response_model=List[str])
async def doc_types():
    return DOCUMENT_TYPES


@app.post("/conversations", response_model=ConversationTurnResponse)
async def start_conversation(req: ConversationStartRequest):
    doc_type = _check_doc_type(req.doc_type or DEFAULT_DOC_TYPE)
    session_id, controller = registry.create(doc_type)
    messages = await anyio.to_thread.run_sync(controller.start)
    return ConversationTurnResponse(session_id=session_id, stage=controller.stage.value, messages=messages)


@app.get("/conversations/{session_id}", response_model=ConversationState)
async def get_conversation(session_id: str):
    return _controller(session_id).snapshot(session_id)


@app.post("/conversations/{session_id}/reset", response_model=ConversationTurnResponse)
async def reset_conversation(session_id: str, req: ConversationStartRequest):
    controller = _controller(session_id)
    doc_type = _check_doc_type(req.doc_type) if req.doc_type else None
    messages = await anyio.to_thread.run_sync(controller.start, doc_type)
    return ConversationTurnResponse(session_id=session_id, stage=controller.stage.value, messages=messages)


@app.post("/conversations/{session_id}/messages", response_model=ConversationTurnResponse)
async def send_message(session_id: str, req: ConversationMessageRequest):
    controller = _controller(session_id)
    text = sanitize_input(req.text)
    logger.info("conversation.message session=%s stage=%s chars=%d", session_id, controller.stage.value, len(text))
    messages = await controller.submit(text)
    return ConversationTurnResponse(
        session_id=session_id,
        stage=controller.stage.value,
        messages=messages,
        generated_content=controller.generated_content,
        record_id=controller.record_id,
    )


@app.get("/memory", response_model=List[ConversationRecord])
def list_memory(q: str = ""):
    # an empty query matches every record
    return memory.search(q)


@app.get("/memory/similar", response_model=List[SimilarRecord])
def similar_memory(doc_type: str, text: str = "", limit: int = 3):
    return memory.get_similar(doc_type, text, limit)


@app.get("/memory/stats", response_model=MemoryStats)
def memory_stats():
    return memory.get_stats()


@app.get("/memory/export")
def export_memory():
    return Response(content=memory.export_all(), media_type="application/json")


@app.post("/memory/import", response_model=ImportResponse)
async def import_memory(request: Request):
    body = await request.body()
    try:
        payload = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="payload must be UTF-8 JSON")
    if not await anyio.to_thread.run_sync(memory.import_all, payload):
        raise HTTPException(status_code=400, detail="payload must be a JSON list of conversation records")
    records = await anyio.to_thread.run_sync(memory.get_all)
    return ImportResponse(imported=True, total_conversations=len(records))


@app.patch("/memory/{record_id}", response_model=ConversationRecord)
def update_memory(record_id: str, patch: RecordPatch):
    if memory.get(record_id) is None:
        raise HTTPException(status_code=404, detail="record not found")
    memory.update(record_id, patch)
    return memory.get(record_id)


@app.delete("/memory/{record_id}")
def delete_memory(record_id: str):
    memory.delete(record_id)
    return {"status": "deleted"}


@app.delete("/memory")
def clear_memory():
    memory.clear()
    logger.info("memory.cleared")
    return {"status": "cleared"}


@app.post("/feedback")
def feedback(data: FeedbackRequest):
    if memory.get(data.record_id) is None:
        raise HTTPException(status_code=404, detail="record_id not found")
    memory.update(
        data.record_id,
        RecordPatch(rating=data.rating, user_feedback=data.feedback, rated_at=datetime.now(timezone.utc).isoformat()),
    )
    logger.info("feedback.received record_id=%s rating=%d", data.record_id, data.rating)
    return {"status": "received"}
