# src/qa/session_store.py - v1
"""Q&A session store: conversational state per explanation artifact.

Sessions reference (never own) the artifact they were opened on and use
it as read-only context. When the cache drops that artifact, every
session opened on it is destroyed. Asks within one session are
serialised; distinct sessions run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from codexplain.core.errors import SessionNotFound
from codexplain.core.models import (
    CodeAnalysis,
    ExplanationContent,
    QAExchange,
    QASession,
)
from codexplain.pipeline.agents.qa_responder import QAAgent, QAContext
from codexplain.tracking.call_logger import CallLogger

if TYPE_CHECKING:
    from codexplain.cache.content_cache import ContentCache
    from codexplain.router.service_router import AIServiceRouter

logger = logging.getLogger(__name__)


class QASessionStore:
    """In-process Q&A sessions.

    Args:
        router: Router resolving the answer calls.
        cache: When given, sessions follow its invalidations.
        history_window: Number of recent exchanges sent with each question.
        agent: Answer producer.
    """

    def __init__(
        self,
        router: AIServiceRouter,
        cache: ContentCache | None = None,
        history_window: int = 6,
        agent: QAAgent | None = None,
    ) -> None:
        self._router = router
        self._history_window = history_window
        self._agent = agent or QAAgent()
        self._sessions: dict[str, QASession] = {}
        self._contents: dict[str, ExplanationContent] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        if cache is not None:
            cache.add_invalidation_listener(self._on_invalidated)

    def create_session(
        self,
        content: ExplanationContent,
        code: str,
        analysis: CodeAnalysis | None = None,
        source_language: str = "",
    ) -> QASession:
        """Open a session on an explanation artifact."""
        context: dict[str, Any] = {"source_language": source_language}
        if analysis is not None:
            context["source_language"] = source_language or analysis.language
            context["analysis_summary"] = analysis.summary

        session = QASession(content_id=content.id, code=code, context=context)
        self._sessions[session.id] = session
        self._contents[session.id] = content
        self._locks[session.id] = asyncio.Lock()
        logger.info("Opened Q&A session %s on content %s", session.id, content.id)
        return session

    def get(self, session_id: str) -> QASession:
        """Return a session.

        Raises:
            SessionNotFound: Unknown or closed session.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(
                f"Q&A session {session_id!r} not found", details={"session_id": session_id}
            )
        return session

    def sessions_for(self, content_id: str) -> list[QASession]:
        return [s for s in self._sessions.values() if s.content_id == content_id]

    def close(self, session_id: str) -> None:
        """Destroy a session. No-op when already gone."""
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Closed Q&A session %s", session_id)
        self._contents.pop(session_id, None)
        self._locks.pop(session_id, None)

    async def ask(
        self,
        session_id: str,
        question: str,
        call_logger: CallLogger | None = None,
    ) -> QAExchange:
        """Answer a question and append the exchange to the session history.

        Raises:
            ValueError: Empty question.
            SessionNotFound: Unknown session, or closed while answering.
        """
        if not question.strip():
            raise ValueError("question must not be empty")

        self.get(session_id)
        lock = self._locks[session_id]
        async with lock:
            session = self.get(session_id)
            content = self._contents[session_id]
            window = session.history[-self._history_window:] if self._history_window else []
            ctx = QAContext(
                question=question.strip(),
                code=session.code,
                source_language=session.context.get("source_language", ""),
                transcript=content.transcript,
                flowchart=content.flowchart,
                examples=content.examples,
                history=window,
            )
            output = await self._agent.execute(ctx, self._router, call_logger)

            # The artifact may have been invalidated while the answer was produced.
            session = self.get(session_id)
            exchange = QAExchange(question=question.strip(), answer=output.data["answer"])
            session.history.append(exchange)

        logger.debug(
            "Session %s answered question %d", session_id, len(session.history)
        )
        return exchange

    def _on_invalidated(self, fingerprint: str, artifact_id: str) -> None:
        for session in self.sessions_for(artifact_id):
            logger.info(
                "Content %s invalidated, closing Q&A session %s", artifact_id, session.id
            )
            self.close(session.id)
