from pathlib import Path
from app.config import settings


def ensure_data_dirs(data_path: Path | None = None) -> Path:
    path = data_path or settings.data_path
    path.mkdir(parents=True, exist_ok=True)
    (path / "uploads").mkdir(exist_ok=True)
    return path


def ensure_upload_dir(folder: str, uploads_dir: Path | None = None) -> Path:
    root = uploads_dir or settings.uploads_dir
    target = root / folder
    target.mkdir(parents=True, exist_ok=True)
    return target


def resolve_upload_path(relative_path: str, uploads_dir: Path | None = None) -> Path | None:
    """Map a stored relative path back to disk, refusing anything outside the upload root."""
    root = (uploads_dir or settings.uploads_dir).resolve()
    candidate = (root / relative_path).resolve()
    if candidate == root or root not in candidate.parents:
        return None
    return candidate


def sanitize_filename(name: str) -> str:
    keep = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._-")
    return "".join(c if c in keep else "_" for c in name)
