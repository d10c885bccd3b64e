from __future__ import annotations
import json
import logging
import threading
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import TypeAdapter

from ..core.keywords import calculate_similarity, extract_keywords
from ..models.schemas import ConversationRecord, MemoryStats, RecordDraft, RecordPatch, SimilarRecord
from .kv import KeyValueStore


STORAGE_KEY = "shaheen_ai_memory"
MAX_CONVERSATIONS = 100
MAX_TAGS = 5

_records = TypeAdapter(List[ConversationRecord])


class ConversationMemory:
    """What the conversation controller needs from a memory backend."""

    def save(self, draft: Union[RecordDraft, Dict[str, Any]]) -> str:
        raise NotImplementedError

    def get_all(self) -> List[ConversationRecord]:
        raise NotImplementedError

    def search(self, query: str) -> List[ConversationRecord]:
        raise NotImplementedError

    def get_similar(self, doc_type: str, user_input: str, limit: int = 3) -> List[SimilarRecord]:
        raise NotImplementedError

    def get_stats(self) -> MemoryStats:
        raise NotImplementedError

    def delete(self, record_id: str) -> None:
        raise NotImplementedError

    def update(self, record_id: str, patch: Union[RecordPatch, Dict[str, Any]]) -> None:
        raise NotImplementedError


class MemoryStore(ConversationMemory):
    """
    Bounded, newest-first log of past conversations kept as one JSON list
    under a single key. Every mutation reads the whole list, changes it and
    writes it back.

    Memory is best-effort: read problems yield empty results and write
    problems are logged and dropped, nothing is raised to the caller.
    """

    def __init__(self, kv: KeyValueStore, storage_key: str = STORAGE_KEY, max_conversations: int = MAX_CONVERSATIONS):
        self.kv = kv
        self.storage_key = storage_key
        self.max_conversations = max_conversations
        self.logger = logging.getLogger("shaheen.memory")
        self._lock = threading.RLock()

    # --- persistence ---

    def _load(self) -> List[ConversationRecord]:
        raw = self.kv.get(self.storage_key)
        if not raw:
            return []
        return _records.validate_json(raw)

    def _dump(self, records: List[ConversationRecord]) -> None:
        payload = json.dumps([r.model_dump() for r in records], ensure_ascii=False)
        self.kv.set(self.storage_key, payload)

    def get_all(self) -> List[ConversationRecord]:
        try:
            return self._load()
        except (OSError, ValueError) as e:
            self.logger.warning("memory.read_failed key=%s error=%s", self.storage_key, e)
            return []

    # --- writes ---

    def generate_id(self) -> str:
        return f"{int(time.time() * 1000):x}{uuid.uuid4().hex[:12]}"

    def save(self, draft: Union[RecordDraft, Dict[str, Any]]) -> str:
        with self._lock:
            try:
                if not isinstance(draft, RecordDraft):
                    draft = RecordDraft.model_validate(draft)
                data = draft.model_dump()
                data["tags"] = list(dict.fromkeys(data["tags"]))[:MAX_TAGS]
                record = ConversationRecord(
                    id=self.generate_id(),
                    timestamp=datetime.now(timezone.utc).isoformat(),
                    **data,
                )
                records = self._load()
                records.insert(0, record)
                del records[self.max_conversations:]
                self._dump(records)
            except Exception as e:
                self.logger.warning("memory.save_failed error=%s", e)
                return ""
        self.logger.info("memory.saved id=%s doc_type=%s tags=%d", record.id, record.doc_type, len(record.tags))
        return record.id

    def delete(self, record_id: str) -> None:
        with self._lock:
            try:
                records = self._load()
                kept = [r for r in records if r.id != record_id]
                if len(kept) != len(records):
                    self._dump(kept)
                    self.logger.info("memory.deleted id=%s", record_id)
            except Exception as e:
                self.logger.warning("memory.delete_failed id=%s error=%s", record_id, e)

    def update(self, record_id: str, patch: Union[RecordPatch, Dict[str, Any]]) -> None:
        with self._lock:
            try:
                if not isinstance(patch, RecordPatch):
                    patch = RecordPatch.model_validate(patch)
                changes = patch.model_dump(exclude_unset=True)
                records = self._load()
                for i, rec in enumerate(records):
                    if rec.id == record_id:
                        records[i] = ConversationRecord.model_validate({**rec.model_dump(), **changes})
                        self._dump(records)
                        self.logger.info("memory.updated id=%s fields=%s", record_id, ",".join(sorted(changes)))
                        return
            except Exception as e:
                self.logger.warning("memory.update_failed id=%s error=%s", record_id, e)

    def clear(self) -> None:
        with self._lock:
            try:
                self.kv.delete(self.storage_key)
            except Exception as e:
                self.logger.warning("memory.clear_failed error=%s", e)

    # --- queries ---

    def search(self, query: str) -> List[ConversationRecord]:
        term = query.casefold()
        return [
            r
            for r in self.get_all()
            if term in r.user_input.casefold()
            or term in r.doc_type.casefold()
            or any(term == t.casefold() for t in r.tags)
        ]

    def extract_keywords(self, text: str) -> List[str]:
        return extract_keywords(text)

    def calculate_similarity(self, keywords: List[str], text: str) -> float:
        return calculate_similarity(keywords, text)

    def get_similar(self, doc_type: str, user_input: str, limit: int = 3) -> List[SimilarRecord]:
        keywords = self.extract_keywords(user_input)
        scored = [
            SimilarRecord(**r.model_dump(), similarity=self.calculate_similarity(keywords, r.user_input))
            for r in self.get_all()
            if r.doc_type == doc_type
        ]
        # sort is stable, so equal scores keep newest-first order
        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[: max(0, limit)]

    def get_stats(self) -> MemoryStats:
        records = self.get_all()
        doc_types = Counter(r.doc_type for r in records if r.doc_type)
        ratings = [r.rating for r in records if r.rating is not None]
        # most_common keeps first-encountered order among equal counts
        most_used = doc_types.most_common(1)[0][0] if doc_types else ""
        return MemoryStats(
            total_conversations=len(records),
            doc_type_distribution=dict(doc_types),
            average_rating=sum(ratings) / len(ratings) if ratings else 0.0,
            most_used_doc_type=most_used,
        )

    # --- backup ---

    def export_all(self) -> str:
        return json.dumps([r.model_dump() for r in self.get_all()], ensure_ascii=False, indent=2)

    def import_all(self, payload: str) -> bool:
        try:
            data = json.loads(payload)
            if not isinstance(data, list):
                self.logger.warning("memory.import_rejected reason=not_a_list")
                return False
            records = _records.validate_python(data)
        except (ValueError, TypeError) as e:
            self.logger.warning("memory.import_rejected error=%s", e)
            return False
        with self._lock:
            try:
                self._dump(records[: self.max_conversations])
            except Exception as e:
                self.logger.warning("memory.import_failed error=%s", e)
                return False
        self.logger.info("memory.imported count=%d", min(len(records), self.max_conversations))
        return True

    def get(self, record_id: str) -> Optional[ConversationRecord]:
        for r in self.get_all():
            if r.id == record_id:
                return r
        return None
