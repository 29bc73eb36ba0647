import asyncio
import logging
import threading
import time
from pathlib import Path
from typing import Iterable, Optional, Set, Tuple
from urllib.parse import urlparse

from schemas.models import new_job_id
from core.job_registry import JobRegistry
from core.artifact_resolver import ArtifactResolver
from core.extractor import (
    ExtractionResult,
    Extractor,
    ExtractorLaunchError,
    ExtractorTimeoutError,
    build_output_template,
)
from config import ALLOWED_HOSTS, AUDIO_FORMAT, IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)

NOT_FOUND_REASON = "Conversion completed but downloaded files not found"
SHUTDOWN_REASON  = "Service shut down before the conversion finished"


class InvalidSourceURLError(ValueError):
    pass


def validate_source_url(url: str, allowed_hosts: Iterable[str] = ALLOWED_HOSTS) -> str:
    """
    Accepts http(s) URLs on one of the allowed hosts or their subdomains.
    A bare "youtube.com/watch?v=..." is taken as https. Returns the URL that
    will be handed to yt-dlp.
    """
    url = (url or "").strip()
    if url and "://" not in url:
        url = "https://" + url
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
    except ValueError:
        raise InvalidSourceURLError("Please provide a valid YouTube URL")

    if parsed.scheme not in ("http", "https") or not any(
        host == allowed or host.endswith("." + allowed) for allowed in allowed_hosts
    ):
        raise InvalidSourceURLError("Please provide a valid YouTube URL")
    return url


class ConversionDispatcher:
    """
    Turns a submitted URL into a job id straight away and runs the conversion
    as its own asyncio task. The outcome only ever reaches the caller through
    the registry.

    Every background run ends in exactly one registry.complete or
    registry.fail call, whatever goes wrong along the way.
    """

    def __init__(
        self,
        registry: JobRegistry,
        extractor: Extractor,
        output_dir: Path,
        audio_extension: str = AUDIO_FORMAT,
        image_extensions: Iterable[str] = IMAGE_EXTENSIONS,
        allowed_hosts: Iterable[str] = ALLOWED_HOSTS,
        per_job_dirs: bool = False,
        max_concurrent_jobs: Optional[int] = None,
    ):
        self.registry = registry
        self.extractor = extractor
        self.output_dir = Path(output_dir)
        self.audio_extension = audio_extension
        self.image_extensions = tuple(image_extensions)
        self.allowed_hosts = tuple(allowed_hosts)
        self.per_job_dirs = per_job_dirs
        self._semaphore = asyncio.Semaphore(max_concurrent_jobs) if max_concurrent_jobs else None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def submit(self, source_url: str) -> str:
        """Must be called from inside a running event loop."""
        url = validate_source_url(source_url, self.allowed_hosts)
        loop = asyncio.get_running_loop()

        job_id = new_job_id()
        self.registry.create(job_id, url)

        task = loop.create_task(self._run_job(job_id, url), name=f"convert-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"Job {job_id} submitted for {url}")
        return job_id

    async def join(self):
        """Waits for every in-flight conversion to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self):
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info(f"Cancelling {len(tasks)} running conversion(s)")
            await asyncio.gather(*tasks, return_exceptions=True)
        # Killed processes can't drop late files into the downloads dir
        self.extractor.terminate()

    def job_output_dir(self, job_id: str) -> Path:
        return self.output_dir / job_id if self.per_job_dirs else self.output_dir

    def _run_in_worker(self, job_id: str, fn, *args) -> asyncio.Future:
        """
        Runs fn on a thread of its own and returns a future for its result.
        Conversions don't share the loop's default executor, so its size never
        limits how many run at once.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def deliver(setter, value):
            if not future.done():
                setter(value)

        def work():
            try:
                outcome = (future.set_result, fn(*args))
            except Exception as e:
                outcome = (future.set_exception, e)
            try:
                loop.call_soon_threadsafe(deliver, *outcome)
            except RuntimeError:
                logger.debug(f"Job {job_id} finished after the event loop closed")

        threading.Thread(target=work, name=f"convert-{job_id}", daemon=True).start()
        return future

    async def _run_job(self, job_id: str, url: str):
        try:
            if self._semaphore is None:
                await self._convert(job_id, url)
            else:
                async with self._semaphore:
                    await self._convert(job_id, url)
        except asyncio.CancelledError:
            self.registry.fail(job_id, SHUTDOWN_REASON)
            raise
        except Exception as e:
            logger.exception(f"Job {job_id} crashed: {e}")
            self.registry.fail(job_id, f"Unexpected error: {e}")

    def _extract(self, url: str, output_dir: Path) -> Tuple[int, ExtractionResult]:
        output_dir.mkdir(parents=True, exist_ok=True)
        # Whole seconds, compared against file mtimes when resolving artifacts.
        # Taken on the worker thread, right before the process starts.
        started = int(time.time())
        template = build_output_template(output_dir, started)
        return started, self.extractor.invoke(url, template)

    async def _convert(self, job_id: str, url: str):
        output_dir = self.job_output_dir(job_id)

        try:
            started, result = await self._run_in_worker(job_id, self._extract, url, output_dir)
        except (ExtractorLaunchError, ExtractorTimeoutError) as e:
            logger.error(f"Job {job_id} failed: {e}")
            self.registry.fail(job_id, str(e))
            return

        if not result.succeeded:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            logger.error(f"Job {job_id} failed: {detail}")
            self.registry.fail(job_id, f"{self.extractor.name} execution failed: {detail}")
            return

        resolver = ArtifactResolver(output_dir, self.audio_extension, self.image_extensions)
        artifacts = await self._run_in_worker(job_id, resolver.resolve, started)
        if artifacts is None:
            logger.error(f"Job {job_id}: {NOT_FOUND_REASON} in {output_dir}")
            self.registry.fail(job_id, NOT_FOUND_REASON)
            return

        prefix = Path(job_id) if self.per_job_dirs else Path()
        primary = prefix / artifacts.primary
        secondary = prefix / artifacts.secondary if artifacts.secondary else None
        self.registry.complete(job_id, primary, secondary)
        logger.info(f"Job {job_id} completed: {primary}")
