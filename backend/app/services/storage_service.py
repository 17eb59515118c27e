import logging
import os

from fastapi import UploadFile

from app.config import settings
from app.errors import UploadRejectedError
from app.utils.filesystem import ensure_upload_dir, sanitize_filename
from app.utils.hashing import sha256_bytes

logger = logging.getLogger("app.uploads")


async def read_upload(upload: UploadFile) -> bytes:
    """Read an upload, enforcing the type whitelist and size cap."""
    if upload.content_type not in settings.allowed_upload_types:
        raise UploadRejectedError(
            "Unsupported file format. Only JPEG, PNG, PDF, DOC and DOCX are allowed.",
            status_code=415,
        )
    max_bytes = settings.max_upload_bytes
    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise UploadRejectedError(f"File too large (max {max_bytes} bytes)", status_code=413)
        chunks.append(chunk)

    content = b"".join(chunks)
    if not content:
        raise UploadRejectedError(f"Empty file: {upload.filename}")
    return content


def store_bytes(folder: str, filename: str, content: bytes) -> str:
    """Store a file immutably under ``folder`` and return its public URL."""
    file_hash = sha256_bytes(content)
    safe_name = sanitize_filename(filename or "upload")
    stored_name = f"{file_hash[:8]}_{safe_name}"

    target_dir = ensure_upload_dir(folder)
    doc_path = target_dir / stored_name
    if not doc_path.exists():
        doc_path.write_bytes(content)
        os.chmod(doc_path, 0o444)

    relative_path = f"{folder}/{stored_name}"
    logger.info("Stored upload %s (%d bytes)", relative_path, len(content))
    return public_url(relative_path)


def public_url(relative_path: str) -> str:
    return f"{settings.public_base_url}{settings.api_prefix}/uploads/{relative_path}"


def has_file(upload: UploadFile | None) -> bool:
    # Browsers send an empty part with no filename for untouched file inputs.
    return upload is not None and bool(upload.filename)


async def store_upload(folder: str, upload: UploadFile | None) -> str | None:
    if not has_file(upload):
        return None
    content = await read_upload(upload)
    return store_bytes(folder, upload.filename, content)

