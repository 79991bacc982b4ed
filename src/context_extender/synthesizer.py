"""Build an answer by folding segments, one at a time, into a running answer."""

from __future__ import annotations

import logging
import time
from typing import Callable

from .config import Settings
from .errors import SynthesisError
from .llm import LanguageModel, wait_time_seconds
from .models import Segment

logger = logging.getLogger(__name__)

STEP_SYSTEM = (
    "You are a helpful assistant processing documents piece by piece "
    "to build a comprehensive answer."
)
POLISH_SYSTEM = (
    "You are a helpful assistant providing a final, polished answer based on "
    "information gathered from multiple document sections."
)


def build_step_prompt(
    question: str,
    content: str,
    current_answer: str,
    history: str,
    position: int,
    total: int,
) -> str:
    parts = []
    if history.strip():
        parts.append(f"Previous conversation:\n{history}\n\n")

    parts.append(f"USER QUESTION: {question}\n\n")
    which = "the first" if position == 0 else "another"
    parts.append(f"Below is {which} section of information ({position + 1}/{total}):\n\n")
    parts.append(f"SECTION CONTENT:\n{content}\n\n")

    if position == 0:
        parts.append(
            "Based on this section, start formulating an answer to the user's question. "
            "If this section doesn't contain relevant information, simply state what "
            "information you would need to answer the question."
        )
    else:
        parts.append(f"Here is the current answer based on previous sections:\n\n{current_answer}\n\n")
        parts.append(
            "Please improve, correct, or expand this answer by incorporating any relevant "
            "information from the new section. If this section doesn't add any relevant "
            "information, you can return the current answer unchanged or make minor "
            "improvements for clarity."
        )

    parts.append(
        "\n\nRemember to base your answer strictly on the provided information. If the "
        "information needed to answer the question is not available, say so clearly."
    )
    return "".join(parts)


def build_polish_prompt(question: str, compiled_answer: str) -> str:
    return f"""USER QUESTION: {question}

Below is a compiled answer based on processing multiple sections of information:

{compiled_answer}

Please review this answer and create a final, refined version that:
1. Ensures it directly answers the original question
2. Eliminates any redundancy or repetition
3. Presents information in a clear, logical flow
4. Maintains accuracy while improving readability
5. Is concise but comprehensive

Your final, refined answer:"""


class IterativeSynthesizer:
    """Folds segments into an answer with one model call per segment.

    Calls are strictly sequential and each is preceded by a pause sized to the
    text being sent, which keeps usage under ``token_rate_per_minute``.
    """

    def __init__(
        self,
        settings: Settings,
        llm: LanguageModel,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.llm = llm
        self.sleep = sleep
        self.tokens_per_minute = settings.claude.token_rate_per_minute

    def _pace(self, text: str) -> None:
        wait = wait_time_seconds(text, self.tokens_per_minute)
        logger.debug("Waiting %.2fs to stay under the token rate", wait)
        self.sleep(wait)

    def generate_answer(
        self, question: str, segments: list[Segment], conversation_history: str = ""
    ) -> str:
        """Return the final answer; any model failure raises :class:`SynthesisError`."""
        logger.info("Starting iterative answer generation with %d segments", len(segments))
        answer = ""

        try:
            for position, segment in enumerate(segments):
                content = segment.content or ""
                prompt = build_step_prompt(
                    question, content, answer, conversation_history, position, len(segments)
                )
                self._pace(content)
                logger.info(
                    "Processing segment %d/%d: %s (~%d tokens)",
                    position + 1,
                    len(segments),
                    segment.id,
                    segment.estimated_tokens,
                )
                answer = self.llm.complete(prompt, temperature=0.3, system=STEP_SYSTEM)

            if len(segments) > 1:
                self._pace(answer)
                logger.debug("Generating final refinement")
                answer = self.llm.complete(
                    build_polish_prompt(question, answer), temperature=0.3, system=POLISH_SYSTEM
                )
        except Exception as e:
            raise SynthesisError(f"Failed to generate iterative answer: {e}") from e

        logger.info("Answer generation complete (%d chars)", len(answer))
        return answer
