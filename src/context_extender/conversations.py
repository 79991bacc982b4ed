"""Conversation history with periodic compaction into a running summary."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from pydantic import ValidationError

from .config import CHARS_PER_TOKEN, Settings
from .errors import PersistenceError
from .llm import LanguageModel, create_conversation_summary
from .models import Conversation, ConversationSummary, Exchange, Index, Segment, utcnow
from .storage import JsonStore

logger = logging.getLogger(__name__)


def format_exchanges(exchanges: list[Exchange]) -> str:
    return "".join(f"User: {e.question}\n\nAssistant: {e.answer}\n\n" for e in exchanges)


def history_text(conversation: Conversation) -> str:
    """Conversation history as passed to iterative synthesis."""
    history = ""
    if conversation.history_summary.strip():
        history += f"Previous conversation summary:\n{conversation.history_summary}\n\n"
    if conversation.pending_exchanges:
        history += "Earlier exchanges:\n" + format_exchanges(conversation.pending_exchanges)
    if conversation.recent_exchanges:
        history += "Recent exchanges:\n" + format_exchanges(conversation.recent_exchanges)
    return history


class ConversationStore:
    """JSON-backed conversation storage."""

    def __init__(self, directory: Path, settings: Settings, llm: LanguageModel):
        self.store = JsonStore(directory)
        self.settings = settings
        self.llm = llm

    def _save(self, conversation: Conversation) -> None:
        self.store.write(conversation.id, conversation.model_dump_json(indent=2))

    def create_conversation(self, index_id: str) -> Conversation:
        conversation = Conversation(id=str(uuid.uuid4()), index_id=index_id)
        logger.info("Creating conversation %s for index %s", conversation.id, index_id)
        self._save(conversation)
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        data = self.store.read(conversation_id)
        if data is None:
            logger.warning("Conversation not found: %s", conversation_id)
            return None
        try:
            return Conversation.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Conversation {conversation_id} is corrupt: {e}") from e

    def list_conversations(self, index_id: str | None = None) -> list[ConversationSummary]:
        summaries = []
        for conversation_id in self.store.ids():
            try:
                conversation = self.get_conversation(conversation_id)
            except PersistenceError as e:
                logger.warning("Skipping unreadable conversation file %s: %s", conversation_id, e)
                continue
            if conversation is None or (index_id and conversation.index_id != index_id):
                continue
            summaries.append(
                ConversationSummary(
                    id=conversation.id,
                    index_id=conversation.index_id,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                    exchange_count=conversation.exchange_count,
                )
            )
        return summaries

    def delete_conversation(self, conversation_id: str) -> bool:
        deleted = self.store.delete(conversation_id)
        if deleted:
            logger.info("Deleted conversation: %s", conversation_id)
        else:
            logger.warning("Conversation not found for deletion: %s", conversation_id)
        return deleted

    def add_exchange(self, conversation_id: str, question: str, answer: str) -> Conversation | None:
        """Append an exchange, compact if due, and persist. ``None`` if the conversation is absent."""
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            return None

        conversation.recent_exchanges.append(Exchange(question=question, answer=answer))
        conversation.exchange_count += 1
        conversation.updated_at = utcnow()

        settings = self.settings.conversation
        overflow = len(conversation.recent_exchanges) - settings.max_recent_exchanges
        if overflow > 0:
            conversation.pending_exchanges.extend(conversation.recent_exchanges[:overflow])
            conversation.recent_exchanges = conversation.recent_exchanges[overflow:]

        if (
            conversation.pending_exchanges
            and conversation.exchange_count - conversation.last_merge_count >= settings.merge_frequency
        ):
            self._compact(conversation)

        self._save(conversation)
        return conversation

    def _compact(self, conversation: Conversation) -> None:
        """Fold pending exchanges into the history summary.

        On failure the summary, merge counter and queue are left as they were, so
        the same exchanges are retried at the next trigger.
        """
        to_merge = conversation.pending_exchanges
        max_tokens = self.settings.conversation.max_summary_tokens
        prompt = f"""Here is the existing conversation summary:
"{conversation.history_summary}"

Here are the new conversation exchanges to merge:
{format_exchanges(to_merge)}
Please merge these new exchanges into the existing summary to create an updated summary.
Focus on the most important and relevant information.
Keep the summary concise, within approximately {max_tokens} tokens (roughly {max_tokens * CHARS_PER_TOKEN} characters)."""

        logger.info("Merging %d exchanges into summary for %s", len(to_merge), conversation.id)
        try:
            summary = create_conversation_summary(self.llm, prompt)
        except Exception:
            logger.error("Failed to merge exchanges for %s", conversation.id, exc_info=True)
            return

        conversation.history_summary = summary
        conversation.pending_exchanges = []
        conversation.last_merge_count = conversation.exchange_count

    def build_prompt(
        self,
        conversation: Conversation,
        question: str,
        index: Index,
        segments: list[Segment],
    ) -> str:
        """Single-shot answer prompt from the configured answer template.

        Used by the single-shot answering path; iterative synthesis builds its own
        per-segment prompts instead.
        """
        history = ""
        if conversation.history_summary:
            history += f"### Previous Conversation Summary:\n{conversation.history_summary}\n\n"
        earlier = conversation.pending_exchanges + conversation.recent_exchanges
        if earlier:
            history += "### Recent Conversation:\n" + format_exchanges(earlier)

        info = "### Document Overall Summary:\n"
        info += f"{index.overall_summary or 'No overall summary available.'}\n\n"
        info += "### Relevant Content Sections:\n"
        for i, segment in enumerate(segments, 1):
            info += f"#### Section {i}: {segment.file_path}\n{segment.content or ''}\n\n"

        return (
            self.settings.prompts.answer_template.replace("{{HISTORY}}", history)
            .replace("{{RELEVANT_INFO}}", info)
            .replace("{{QUESTION}}", question)
        )
