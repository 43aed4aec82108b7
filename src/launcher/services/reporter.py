"""Progress reporting of install state snapshots over HTTP."""

import asyncio
from typing import Optional
import logging

import httpx

from launcher.models.state import InstallState


class HttpProgressSink:
    """Forwards install state snapshots to an external progress surface.

    notify() only enqueues. A single worker task owns one AsyncClient and
    posts snapshots one at a time, so the receiver sees them in mutation
    order. Delivery failures are logged and the snapshot is dropped.
    """

    def __init__(self, report_url: str, timeout: float = 5.0):
        """Initialize HTTP sink.

        Args:
            report_url: Endpoint receiving the JSON-encoded InstallState
            timeout: Per-request timeout in seconds
        """
        self.logger = logging.getLogger("launcher.reporter")
        self.report_url = report_url
        self.timeout = timeout
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def notify(self, state: InstallState) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running loop, dropping progress report")
            return

        if self._worker is None or self._worker.done() or self._worker.get_loop() is not loop:
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._deliver(self._queue))
        self._queue.put_nowait(state)

    async def _deliver(self, queue: asyncio.Queue) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                state = await queue.get()
                try:
                    await self.report_progress(state, client)
                finally:
                    queue.task_done()

    async def report_progress(self, state: InstallState, client: Optional[httpx.AsyncClient] = None) -> None:
        """POST one snapshot to report_url.

        Args:
            state: InstallState snapshot
            client: Open client to reuse; a short-lived one is created if None

        Note:
            Errors never reach the state machine; the run goes on without the report
        """
        self.logger.debug(f"Posting snapshot {state.current_step.name} at {state.progress:.0%}")

        try:
            if client is None:
                async with httpx.AsyncClient(timeout=self.timeout) as own_client:
                    await self._post(own_client, state)
            else:
                await self._post(client, state)
        except httpx.HTTPError as e:
            self.logger.warning(f"Progress surface at {self.report_url} unreachable: {e}")
        except Exception as e:
            self.logger.error(f"Could not deliver progress snapshot: {e}", exc_info=True)

    async def _post(self, client: httpx.AsyncClient, state: InstallState) -> None:
        response = await client.post(self.report_url, json=state.model_dump(mode="json"))
        response.raise_for_status()

    async def drain(self) -> None:
        """Wait until every queued snapshot has been posted (or dropped)."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def aclose(self) -> None:
        """Stop the worker and close its client."""
        worker, self._worker = self._worker, None
        self._queue = None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
