# src/chatvault/memory/summarizer.py
"""
Session Summarizer: one third-person profile summary per conversation,
replaced wholesale on every run.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from loguru import logger

from chatvault.application.ports.event_log_port import EventLogPort
from chatvault.infrastructure.event_log.events import SUMMARY_GENERATED, emit
from chatvault.infrastructure.llm.chat_client import ChatClient
from chatvault.infrastructure.llm.router import TaskType
from chatvault.infrastructure.stores.conversation_store import ConversationStore
from chatvault.infrastructure.stores.summary_store import SummaryStore
from chatvault.memory.prompts import PromptRegistry


def render_conversation(messages: List[Dict[str, Any]]) -> str:
    return "\n".join(f"[{m.get('role') or 'unknown'}]: {m.get('content', '')}" for m in messages)


class SessionSummarizer:
    def __init__(
        self,
        *,
        chat: ChatClient,
        conversations: ConversationStore,
        summaries: SummaryStore,
        prompts: PromptRegistry,
        timeout: float = 300.0,
        message_limit: int = 200,
        event_log: Optional[EventLogPort] = None,
    ):
        self.chat = chat
        self.conversations = conversations
        self.summaries = summaries
        self.prompts = prompts
        self.timeout = timeout
        self.message_limit = message_limit
        self.event_log = event_log

    async def summarize(self, session_id: str) -> Optional[str]:
        """
        Returns the new summary, or None for a session with no stored turns.

        Model failures propagate; no summary is written in that case.
        """
        messages = self.conversations.list_messages(session_id, limit=self.message_limit)
        if not messages:
            return None

        prompt = self.prompts.render("sessionSummary", CONVERSATION_TEXT=render_conversation(messages))
        summary = (await self.chat.chat(
            prompt,
            timeout=self.timeout,
            label="session-summary",
            task=TaskType.SUMMARY,
        )).strip()
        if not summary:
            logger.warning(f"[summary] {session_id}: model returned nothing, keeping previous summary")
            return None

        self.summaries.upsert_summary(session_id, summary)
        logger.info(f"[summary] {session_id}: {len(summary)} chars")
        emit(self.event_log, SUMMARY_GENERATED, session_id=session_id, summary=summary)
        return summary
