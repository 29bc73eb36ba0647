import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from rich.logging import RichHandler

from api.router import api_router
from core.dispatcher import ConversionDispatcher
from core.extractor import YtDlpExtractor, ensure_ffmpeg
from core.job_registry import JobRegistry
from core.status import StatusQuery
import config

logger = logging.getLogger(__name__)


def setup_logging(log_file: Optional[Path] = config.LOG_FILE):
    FORMAT = "%(message)s"
    handlers = [RichHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handlers.append(file_handler)
    logging.basicConfig(level="INFO", format=FORMAT, datefmt="[%X]", handlers=handlers)


def build_dispatcher(registry: JobRegistry, downloads_dir: Path) -> ConversionDispatcher:
    extractor = YtDlpExtractor(
        binary=config.YTDLP_BINARY,
        audio_format=config.AUDIO_FORMAT,
        audio_quality=config.AUDIO_QUALITY,
        timeout=config.PROCESS_TIMEOUT,
    )
    return ConversionDispatcher(
        registry,
        extractor,
        downloads_dir,
        audio_extension=config.AUDIO_FORMAT,
        image_extensions=config.IMAGE_EXTENSIONS,
        per_job_dirs=config.PER_JOB_DIRS,
        max_concurrent_jobs=config.MAX_CONCURRENT_JOBS,
    )


def create_app(dispatcher: Optional[ConversionDispatcher] = None) -> FastAPI:
    """
    Composition root. The registry is owned here and handed to the dispatcher
    and the status query; routes reach them through app.state.
    """
    if dispatcher is None:
        dispatcher = build_dispatcher(JobRegistry(), config.DOWNLOADS_DIR)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        dispatcher.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Saving conversions to {dispatcher.output_dir}")
        yield
        await dispatcher.stop()

    app = FastAPI(title="YTAudio API", lifespan=lifespan)
    app.state.dispatcher = dispatcher
    app.state.status_query = StatusQuery(dispatcher.registry)
    app.state.downloads_dir = dispatcher.output_dir

    app.include_router(api_router)
    return app


if __name__ == "__main__":
    setup_logging()
    ensure_ffmpeg()

    app = create_app()
    logger.info(f"HTTP server starting at http://{config.HOST}:{config.PORT}")
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="warning")
