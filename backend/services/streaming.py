"""Server-Sent Events delivery of a single answer."""
import asyncio
import logging
import time
from typing import AsyncIterator, Optional

from models.events import (
    CompleteEvent,
    ConnectedEvent,
    EndEvent,
    ErrorEvent,
    PingEvent,
    StatusEvent,
    StreamEvent,
    TokenEvent,
)
from services.chat_service import ChatService
from config import HEARTBEAT_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

STREAM_ERROR_MESSAGE = "Failed to process streaming query"


class AnswerStream:
    """
    One streamed request.

    Frames go out in this order: one ``connected``, any mix of ``status``,
    ``token`` and ``ping``, one ``complete`` (or ``error``), one ``end``.
    The heartbeat starts right after ``connected`` and is cancelled once,
    just before the terminal ``complete``/``error`` is queued.
    """

    def __init__(
        self,
        chat_service: ChatService,
        question: str,
        session_id: Optional[str] = None,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        include_error_details: bool = False,
    ):
        self.chat_service = chat_service
        self.question = question
        self.heartbeat_interval = heartbeat_interval
        self.include_error_details = include_error_details
        self.session = chat_service.open_session(session_id)
        self._queue: "asyncio.Queue[StreamEvent]" = asyncio.Queue()
        self._heartbeat: Optional[asyncio.Task] = None
        self._worker: Optional[asyncio.Task] = None
        self._heartbeat_stopped = False

    @property
    def session_id(self) -> str:
        return self.session.session_id

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE frames until ``end``; cleans up if the consumer stops early."""
        yield ConnectedEvent(session_id=self.session_id).to_frame()

        self._heartbeat = asyncio.create_task(self._send_pings())
        self._worker = asyncio.create_task(self._run())
        try:
            while True:
                event = await self._queue.get()
                yield event.to_frame()
                if isinstance(event, EndEvent):
                    break
        finally:
            # Client gone or stream finished: release the timer and any in-flight generation
            self._stop_heartbeat()
            if not self._worker.done():
                logger.info("Client disconnected, cancelling generation", extra={"session_id": self.session_id})
                self._worker.cancel()

    async def _run(self) -> None:
        try:
            result = await self.chat_service.answer(
                self.question,
                session_id=self.session_id,
                on_token=lambda token: self._queue.put_nowait(TokenEvent(content=token)),
                on_status=lambda message: self._queue.put_nowait(StatusEvent(message=message)),
            )
        except Exception as e:
            logger.error(f"Error in streaming: {e}", exc_info=True, extra={"session_id": self.session_id})
            self._stop_heartbeat()
            self._queue.put_nowait(
                ErrorEvent(error=STREAM_ERROR_MESSAGE, details=str(e) if self.include_error_details else None)
            )
        else:
            self._stop_heartbeat()
            self._queue.put_nowait(
                CompleteEvent(
                    answer=result.answer,
                    confidence=result.confidence,
                    sources=result.sources,
                    retrieved_document_count=result.retrieved_document_count,
                )
            )
        self._queue.put_nowait(EndEvent())

    async def _send_pings(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self._queue.put_nowait(PingEvent(t=int(time.time() * 1000)))

    def _stop_heartbeat(self) -> None:
        if self._heartbeat is None or self._heartbeat_stopped:
            return
        self._heartbeat_stopped = True
        self._heartbeat.cancel()
