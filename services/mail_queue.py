import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Optional

from fastapi import Request

from sendgridemail import EmailMessage

logger = logging.getLogger('uvicorn.error.mail')

MAX_FAILURE_LOG = 100
SHUTDOWN_FLUSH_SECONDS = 5.0


class MailFailure:
    def __init__(self, message: EmailMessage, error: Exception):
        self.to = message.to
        self.subject = message.subject
        self.error = str(error)
        self.failed_at = datetime.now(timezone.utc)


class MailQueue:
    """
    Delivers mail from a background task so request handlers never wait on
    the transport. Failures are logged and kept in ``failures``; they are
    never reported back to the request that enqueued the message.
    """

    def __init__(self, sender: Callable[[EmailMessage], None]):
        self._sender = sender
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.failures: Deque[MailFailure] = deque(maxlen=MAX_FAILURE_LOG)

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run(), name="mail-queue")
            logger.info("Mail queue worker started.")

    async def stop(self, timeout: float = SHUTDOWN_FLUSH_SECONDS) -> None:
        """Give queued mail up to ``timeout`` seconds to go out, then cancel the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            pass
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        if not self._queue.empty():
            logger.warning(f"Mail queue stopped with {self._queue.qsize()} undelivered message(s).")

    def enqueue(self, message: EmailMessage) -> None:
        self._queue.put_nowait(message)
        logger.info(f"Queued '{message.subject}' for {message.to}")

    async def send_now(self, message: EmailMessage) -> None:
        """Deliver inline, raising on failure; for flows that must know the outcome."""
        await asyncio.to_thread(self._sender, message)

    async def _deliver(self, message: EmailMessage) -> None:
        try:
            await asyncio.to_thread(self._sender, message)
        except Exception as e:
            self.failures.append(MailFailure(message, e))
            logger.error(f"Failed to deliver '{message.subject}' to {message.to}: {e}")

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._deliver(message)
            finally:
                self._queue.task_done()


def get_mail_queue(request: Request) -> MailQueue:
    return request.app.state.mail_queue
