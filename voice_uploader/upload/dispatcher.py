"""
Dispatcher: fire-and-forget encode + upload of finished speaking turns.

submit() schedules one asyncio task per DispatchJob and returns at once; the tick
loop never waits on encoding or the network. Encoding runs in the default executor
so the event loop is not blocked by large buffers. Each task owns its job; errors
are logged inside the task and never reach the caller.
"""
from __future__ import annotations

import asyncio
import logging
import wave

from voice_uploader.audio.encoder import WAV_FORMAT, WavFormat, encode_wav
from voice_uploader.audio.models import DispatchJob
from voice_uploader.upload.uploader import Uploader

logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Runs each DispatchJob as an independent task on the event loop it was created on.
    max_concurrent > 0 caps simultaneous encode+upload work; queued tasks wait on a
    semaphore inside the task, never in submit().
    """

    def __init__(
        self,
        uploader: Uploader,
        max_concurrent: int = 0,
        fmt: WavFormat = WAV_FORMAT,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._uploader = uploader
        self._format = fmt
        self._loop = loop or asyncio.get_running_loop()
        self._semaphore = asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closing = False
        self.submitted = 0
        self.uploaded = 0
        self.failed = 0

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    def submit(self, job: DispatchJob) -> None:
        """Schedule job and return immediately. Safe to call from other threads."""
        if self._closing:
            logger.warning(
                "Dispatcher closing; dropped turn of user %s (ssrc %d, %d samples)",
                job.user_id,
                job.ssrc,
                job.sample_count,
            )
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._spawn(job)
        else:
            self._loop.call_soon_threadsafe(self._spawn, job)

    def _spawn(self, job: DispatchJob) -> None:
        self.submitted += 1
        task = self._loop.create_task(self._run(job), name=f"dispatch-{job.ssrc}-{job.user_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job: DispatchJob) -> None:
        try:
            if self._semaphore is None:
                await self._process(job)
            else:
                async with self._semaphore:
                    await self._process(job)
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failed += 1
            logger.exception("Dispatch of turn for user %s (ssrc %d) failed", job.user_id, job.ssrc)

    async def _process(self, job: DispatchJob) -> None:
        loop = asyncio.get_running_loop()
        try:
            payload = await loop.run_in_executor(None, encode_wav, job.samples, self._format)
        except (wave.Error, ValueError, OverflowError) as e:
            self.failed += 1
            logger.error(
                "Encoding failed for user %s (ssrc %d, %d samples): %s",
                job.user_id,
                job.ssrc,
                job.sample_count,
                e,
            )
            return
        logger.debug(
            "Encoded turn for user %s (ssrc %d): %d samples -> %d bytes",
            job.user_id,
            job.ssrc,
            job.sample_count,
            len(payload),
        )
        if await self._uploader.upload(job.user_id, payload, ssrc=job.ssrc):
            self.uploaded += 1
        else:
            self.failed += 1

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for in-flight jobs (up to timeout). Returns how many are still running."""
        pending = set(self._tasks)
        if not pending:
            return 0
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return len(still_running)

    async def close(self, timeout: float | None = 10.0) -> None:
        """Stop accepting jobs, wait for in-flight ones, cancel what is left."""
        self._closing = True
        remaining = await self.drain(timeout)
        if not remaining:
            return
        logger.warning("Abandoning %d in-flight upload(s) at shutdown", remaining)
        leftover = list(self._tasks)
        for task in leftover:
            task.cancel()
        await asyncio.gather(*leftover, return_exceptions=True)
