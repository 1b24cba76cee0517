from __future__ import annotations

import logging
from typing import List, Optional

from ..core.types import Brief, Message, Phase
from .client import CompletionResult, LLMClient
from .context_builder import build_brief_state, phase_guidance, to_chat_messages

logger = logging.getLogger(__name__)

EMPTY_REPLY_FALLBACK = "I encountered an error. Please try again."


class Coach:
    """
    Completion collaborator: transcript + phase + brief -> one assistant reply.

    Transport failures propagate as CollaboratorError; an empty reply is
    replaced by a fallback sentence so callers always get text to show.
    """

    def __init__(self, llm: Optional[LLMClient] = None):
        self.llm = llm or LLMClient()

    def system_prompt(self, phase: Phase, brief: Brief) -> str:
        return self.llm.render_prompt(
            "coaching_system.txt",
            {
                "phase": phase,
                "brief_state": build_brief_state(brief),
                "phase_guidance": phase_guidance(phase),
            },
        ).strip()

    def reply(self, messages: List[Message], phase: Phase, brief: Brief) -> CompletionResult:
        chat = [{"role": "system", "content": self.system_prompt(phase, brief)}]
        chat.extend(to_chat_messages(messages))

        result = self.llm.chat(chat, temperature=0.7, max_output_tokens=500)
        if not (result.text or "").strip():
            logger.warning("Empty coaching reply for phase %s", phase)
            return CompletionResult(text=EMPTY_REPLY_FALLBACK, usage=result.usage)

        logger.debug("Coach reply for %s (usage=%s)", phase, result.usage)
        return result
