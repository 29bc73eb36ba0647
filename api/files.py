from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from pathlib import Path

router = APIRouter(tags=["files"])

IMAGE_MEDIA_TYPES = {
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
    ".webp": "image/webp",
}


def resolve_download_path(root: Path, filename: str) -> Path:
    """Maps a requested name onto a file inside root, refusing anything that escapes it."""
    root = Path(root).resolve()
    path = (root / filename).resolve()
    if not path.is_relative_to(root):
        raise HTTPException(status_code=403, detail="Forbidden")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return path


@router.get("/download/{filename:path}")
async def download_file(filename: str, request: Request):
    path = resolve_download_path(request.app.state.downloads_dir, filename)
    return FileResponse(path, media_type="audio/mpeg", filename=path.name)


@router.get("/thumbnail/{filename:path}")
async def serve_thumbnail(filename: str, request: Request):
    path = resolve_download_path(request.app.state.downloads_dir, filename)
    media_type = IMAGE_MEDIA_TYPES.get(path.suffix.lower(), "image/jpeg")
    return FileResponse(path, media_type=media_type, headers={"Cache-Control": "public, max-age=3600"})
