"""Application facade wiring storage, retrieval and synthesis together."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .config import CONVERSATIONS_DIR, DATA_DIR, INDEXES_DIR, Settings
from .conversations import ConversationStore, history_text
from .errors import ConversationNotFoundError, IndexNotFoundError, SynthesisError
from .extractor import extract_text
from .indexer import IndexBuilder, ProgressCallback
from .llm import ClaudeClient, LanguageModel
from .logging_setup import log_duration
from .models import Answer, AnswerSource, Conversation, ConversationSummary, IndexInfo, IndexSummary
from .retriever import Retriever
from .storage import IndexStore
from .synthesizer import IterativeSynthesizer

logger = logging.getLogger(__name__)

NO_RELEVANT_CONTENT = (
    "I couldn't find any sections of this document that are relevant to the question."
)


class ContextExtender:
    """Entry point for indexing documents and answering questions about them."""

    def __init__(
        self,
        settings: Settings,
        llm: LanguageModel | None = None,
        data_dir: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        data_dir = data_dir or DATA_DIR
        self.settings = settings
        self.llm = llm if llm is not None else ClaudeClient(settings)
        self.index_store = IndexStore(
            data_dir / INDEXES_DIR.name, settings, text_reader=lambda p: extract_text(p, settings)
        )
        self.conversation_store = ConversationStore(data_dir / CONVERSATIONS_DIR.name, settings, self.llm)
        self.index_builder = IndexBuilder(settings, self.llm, self.index_store, sleep=sleep)
        self.retriever = Retriever(settings, self.llm, self.index_store)
        self.synthesizer = IterativeSynthesizer(settings, self.llm, sleep=sleep)

    def create_index(
        self,
        path: Path,
        name: str | None = None,
        store_content: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        return self.index_builder.build(path, name=name, store_content=store_content, on_progress=on_progress)

    def answer_question(
        self,
        index_id: str,
        question: str,
        conversation_id: str | None = None,
        single_shot: bool = False,
    ) -> Answer:
        """Answer ``question`` from the index, recording the exchange in a conversation.

        A new conversation is started when ``conversation_id`` is not given.
        """
        with log_duration("Answer question", index_id=index_id, conversation_id=conversation_id):
            index = self.index_store.load_index(index_id)
            if index is None:
                raise IndexNotFoundError(f"Index {index_id} not found")

            segments = self.retriever.find_relevant_segments(index, question)
            logger.debug("Found %d relevant segments", len(segments))

            if conversation_id:
                conversation = self.conversation_store.get_conversation(conversation_id)
                if conversation is None:
                    raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
            else:
                conversation = self.conversation_store.create_conversation(index_id)

            if not segments:
                answer = NO_RELEVANT_CONTENT
            elif single_shot:
                prompt = self.conversation_store.build_prompt(conversation, question, index, segments)
                try:
                    answer = self.llm.complete(prompt)
                except Exception as e:
                    raise SynthesisError(f"Failed to generate answer: {e}") from e
            else:
                answer = self.synthesizer.generate_answer(
                    question, segments, history_text(conversation)
                )

            self.conversation_store.add_exchange(conversation.id, question, answer)

        return Answer(
            answer=answer,
            conversation_id=conversation.id,
            relevant_segments=[
                AnswerSource(id=s.id, relevance_score=s.relevance_score) for s in segments
            ],
        )

    def list_indexes(self) -> list[IndexSummary]:
        return self.index_store.list_indexes()

    def get_index_info(self, index_id: str) -> IndexInfo | None:
        return self.index_store.get_index_info(index_id)

    def delete_index(self, index_id: str) -> bool:
        return self.index_store.delete_index(index_id)

    def list_conversations(self, index_id: str | None = None) -> list[ConversationSummary]:
        return self.conversation_store.list_conversations(index_id)

    def get_conversation_info(self, conversation_id: str) -> Conversation | None:
        return self.conversation_store.get_conversation(conversation_id)

    def delete_conversation(self, conversation_id: str) -> bool:
        return self.conversation_store.delete_conversation(conversation_id)
