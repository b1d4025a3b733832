"""Polls a newsletter until its generation settles."""

import asyncio
import contextlib
import inspect
from typing import Any, Callable, Optional

from newsletter_studio.infrastructure.database import Database
from newsletter_studio.infrastructure.error_handling import NewsletterNotFoundError
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.newsletter import NewsletterRecord, NewsletterStatus

DEFAULT_POLL_INTERVAL = 3.0


class StatusPoller(LoggerMixin):
    """Background task reading a newsletter's status at a fixed interval.

    Stops at the first status other than ``generating``. Use as an async
    context manager so the task is cancelled when the caller goes away::

        async with StatusPoller(db, newsletter_id) as poller:
            record = await poller.wait()
    """

    def __init__(
        self,
        database: Database,
        newsletter_id: str,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_settled: Optional[Callable[[NewsletterRecord], Any]] = None,
    ):
        self.database = database
        self.newsletter_id = newsletter_id
        self.interval = interval
        self.on_settled = on_settled
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._poll())

    async def wait(self) -> NewsletterRecord:
        """Wait for the settled newsletter record."""
        self.start()
        return await self._task

    async def stop(self) -> None:
        """Cancel the polling task if it is still running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _poll(self) -> NewsletterRecord:
        polls = 0
        while True:
            await asyncio.sleep(self.interval)
            polls += 1
            newsletter = await self.database.get_newsletter(self.newsletter_id)
            if newsletter is None:
                raise NewsletterNotFoundError(f"Newsletter not found: {self.newsletter_id}")

            if newsletter.status != NewsletterStatus.GENERATING.value:
                record = NewsletterRecord.model_validate(newsletter)
                self.logger.info(
                    "Newsletter generation settled",
                    newsletter_id=self.newsletter_id,
                    status=record.status,
                    polls=polls,
                )
                if self.on_settled is not None:
                    outcome = self.on_settled(record)
                    if inspect.isawaitable(outcome):
                        await outcome
                return record

    async def __aenter__(self) -> "StatusPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
        return False
