import os
import platformdirs
from pathlib import Path

APP_NAME   = "YTAudio"
APP_AUTHOR = "YTAudio"

BASE_DIR      = Path(platformdirs.user_data_dir(APP_NAME, APP_AUTHOR))
DOWNLOADS_DIR = Path(os.getenv("YTAUDIO_DOWNLOADS_DIR", BASE_DIR / "downloads"))
LOG_FILE      = BASE_DIR / "ytaudio.log"

HOST          = os.getenv("YTAUDIO_HOST", "127.0.0.1")
PORT          = int(os.getenv("YTAUDIO_PORT", "3000"))

# yt-dlp invocation
YTDLP_BINARY     = os.getenv("YTAUDIO_YTDLP_BINARY", "yt-dlp")
AUDIO_FORMAT     = "mp3"
AUDIO_QUALITY    = "192K"
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp")
PROCESS_TIMEOUT  = float(os.environ["YTAUDIO_PROCESS_TIMEOUT"]) if os.getenv("YTAUDIO_PROCESS_TIMEOUT") else None

# Unset means unbounded, one worker per submitted job
MAX_CONCURRENT_JOBS = int(os.environ["YTAUDIO_MAX_CONCURRENT_JOBS"]) if os.getenv("YTAUDIO_MAX_CONCURRENT_JOBS") else None
PER_JOB_DIRS        = os.getenv("YTAUDIO_PER_JOB_DIRS", "").lower() in ("1", "true", "yes")

ALLOWED_HOSTS = ("youtube.com", "youtu.be")
