from __future__ import annotations
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

import anyio

from . import catalogue
from .keywords import extract_tags
from .llm import GenerationError, GenerationProvider
from .prompts import build_document_prompt
from ..models.schemas import ConversationState, Message, RecordDraft
from ..storage.memory import ConversationMemory


QUESTION_DELAY_MS = 500


class Stage(str, Enum):
    INITIAL = "initial"
    CLARIFYING = "clarifying"
    GENERATING = "generating"
    COMPLETED = "completed"


class ConversationController:
    """
    Drives one assistant conversation:

        initial -> clarifying -> generating -> completed
                                      |
                                      +-> initial (on failure)

    `start` resets from any stage. Every call returns the messages it
    emitted; the full log is kept in `messages`.
    """

    def __init__(
        self,
        memory: ConversationMemory,
        provider: GenerationProvider,
        doc_type: str = catalogue.DEFAULT_DOC_TYPE,
        question_delay_ms: int = QUESTION_DELAY_MS,
    ):
        self.memory = memory
        self.provider = provider
        self.doc_type = doc_type
        self.question_delay_ms = question_delay_ms
        self.logger = logging.getLogger("shaheen.controller")

        self.stage = Stage.INITIAL
        self.messages: List[Message] = []
        self.questions: List[str] = []
        self.answers: Dict[int, str] = {}
        self.generated_content = ""
        self.error = ""
        self.record_id: Optional[str] = None
        self._next_id = 1

    def _emit(self, out: List[Message], content: str, is_user: bool = False, kind: str = "text", delay_ms: int = 0) -> Message:
        msg = Message(
            id=self._next_id,
            content=content,
            is_user=is_user,
            kind=kind,
            timestamp=datetime.now(timezone.utc).isoformat(),
            delay_ms=delay_ms,
        )
        self._next_id += 1
        self.messages.append(msg)
        out.append(msg)
        return msg

    def start(self, doc_type: Optional[str] = None) -> List[Message]:
        if doc_type:
            self.doc_type = doc_type
        self.stage = Stage.INITIAL
        self.messages = []
        self.questions = []
        self.answers = {}
        self.generated_content = ""
        self.error = ""
        self.record_id = None

        similar = self.memory.get_similar(self.doc_type, "", 2)
        out: List[Message] = []
        self._emit(out, catalogue.greeting(self.doc_type, bool(similar)))
        self.logger.info("conversation.start doc_type=%s similar=%d", self.doc_type, len(similar))
        return out

    async def submit(self, text: str) -> List[Message]:
        out: List[Message] = []
        if not text or not text.strip():
            return out
        self._emit(out, text, is_user=True)

        if self.stage == Stage.INITIAL:
            await self._handle_initial(text, out)
        elif self.stage == Stage.CLARIFYING:
            await self._handle_answer(text, out)
        else:
            self.logger.debug("conversation.ignored stage=%s", self.stage.value)
        return out

    async def _handle_initial(self, text: str, out: List[Message]) -> None:
        self.error = ""
        self._emit(out, catalogue.ANALYSING)
        try:
            similar = await anyio.to_thread.run_sync(self.memory.get_similar, self.doc_type, text, 3)
            questions = catalogue.clarification_questions(self.doc_type, similar_found=bool(similar))
        except Exception as e:
            self.logger.warning("conversation.questions_failed doc_type=%s error=%s", self.doc_type, e)
            self.error = catalogue.ANALYSIS_ERROR
            self._emit(out, catalogue.ANALYSIS_ERROR)
            self.stage = Stage.INITIAL
            return

        self.questions = questions
        self.answers = {}
        self.stage = Stage.CLARIFYING
        self._emit(out, catalogue.QUESTIONS_INTRO)
        for i, question in enumerate(questions):
            self._emit(out, f"{i + 1}. {question}", delay_ms=(i + 1) * self.question_delay_ms)
        self._emit(out, catalogue.QUESTIONS_OUTRO, delay_ms=(len(questions) + 1) * self.question_delay_ms)
        self.logger.info("conversation.clarifying doc_type=%s questions=%d", self.doc_type, len(questions))

    async def _handle_answer(self, text: str, out: List[Message]) -> None:
        # Keyed by how many answers arrived so far, not by which question
        # was answered; a combined reply counts as a single answer.
        self.answers[len(self.answers)] = text
        if len(self.answers) >= len(self.questions):
            self._emit(out, catalogue.ANSWERS_COMPLETE)
            await self._generate(out)
        else:
            self._emit(out, catalogue.ANSWER_THANKS)

    async def _generate(self, out: List[Message]) -> None:
        self.stage = Stage.GENERATING
        self.error = ""
        answers = list(self.answers.values())
        prompt = build_document_prompt(self.doc_type, " - ".join(answers))
        try:
            content = await self.provider.generate(prompt=prompt, doc_type=self.doc_type)
            if not content or not content.strip():
                raise GenerationError(catalogue.EMPTY_CONTENT)
        except Exception as e:
            reason = str(e) or catalogue.UNKNOWN_ERROR
            status = getattr(e, "status_code", None)
            self.logger.warning("conversation.generate_failed doc_type=%s status=%s error=%s", self.doc_type, status, reason)
            self.error = catalogue.GENERATION_ERROR.format(reason=reason)
            self._emit(out, self.error)
            self.stage = Stage.INITIAL
            return

        self.generated_content = content
        self.stage = Stage.COMPLETED
        self._emit(out, catalogue.GENERATION_SUCCESS)
        self._emit(out, content, kind="document")

        user_input = " ".join(answers)
        draft = RecordDraft(
            doc_type=self.doc_type,
            user_input=user_input,
            generated_content=content,
            tags=extract_tags(user_input),
        )
        self.record_id = await anyio.to_thread.run_sync(self.memory.save, draft) or None
        self.logger.info("conversation.completed doc_type=%s record_id=%s chars=%d", self.doc_type, self.record_id, len(content))

    def snapshot(self, session_id: Optional[str] = None) -> ConversationState:
        return ConversationState(
            session_id=session_id,
            doc_type=self.doc_type,
            stage=self.stage.value,
            questions=list(self.questions),
            answers=dict(self.answers),
            generated_content=self.generated_content,
            error=self.error,
            record_id=self.record_id,
            messages=list(self.messages),
        )
