import os
import time
import uuid
from fastapi import UploadFile

from signage.config import MAX_UPLOAD_BYTES, UPLOADS_DIR

UPLOADS_URL_PREFIX = "/uploads/"
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".webm", ".mkv", ".mov"}
ALLOWED_PDF_EXTENSIONS = {".pdf"}
TYPE_FOLDERS = {"image": "images", "video": "videos", "pdf": "pdfs"}


def detect_media_type(content_type: str | None, filename: str | None) -> str:
    mime = (content_type or "").strip().lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    if mime == "application/pdf":
        return "pdf"
    _, ext = os.path.splitext((filename or "").lower())
    if ext in ALLOWED_IMAGE_EXTENSIONS:
        return "image"
    if ext in ALLOWED_VIDEO_EXTENSIONS:
        return "video"
    if ext in ALLOWED_PDF_EXTENSIONS:
        return "pdf"
    raise ValueError("Unsupported media type. Use an image, video or PDF file.")


def _validate_extension(media_type: str, filename: str) -> str:
    _, ext = os.path.splitext(filename.lower())
    if media_type == "image" and ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValueError("Unsupported image format. Use JPG/JPEG/PNG/WEBP/GIF.")
    if media_type == "video" and ext not in ALLOWED_VIDEO_EXTENSIONS:
        raise ValueError("Unsupported video format. Use MP4/WEBM/MKV/MOV.")
    if media_type == "pdf" and ext not in ALLOWED_PDF_EXTENSIONS:
        raise ValueError("Unsupported document format. Use PDF.")
    return ext


class MediaStorage:
    """Uploaded media on local disk, addressed by `/uploads/<folder>/<file>` srcs."""

    def __init__(self, root: str, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        self.root = root
        self.max_bytes = max_bytes

    def ensure(self) -> None:
        for folder in TYPE_FOLDERS.values():
            os.makedirs(os.path.join(self.root, folder), exist_ok=True)

    def resolve(self, src: str | None) -> str | None:
        """Map a src to a path under the uploads root, or None for foreign srcs."""
        if not src or not isinstance(src, str) or not src.startswith(UPLOADS_URL_PREFIX):
            return None
        relative = src[len(UPLOADS_URL_PREFIX):].replace("\\", "/")
        root = os.path.abspath(self.root)
        path = os.path.abspath(os.path.join(root, *relative.split("/")))
        if os.path.commonpath([root, path]) != root or path == root:
            return None
        return path

    def exists(self, src: str | None) -> bool:
        path = self.resolve(src)
        return bool(path) and os.path.isfile(path)

    def delete(self, src: str | None) -> bool:
        path = self.resolve(src)
        if not path or not os.path.isfile(path):
            return False
        os.remove(path)
        return True

    def save(self, file: UploadFile, media_type: str) -> str:
        self.ensure()
        content = file.file.read()
        if not content:
            raise ValueError("Empty files cannot be uploaded.")
        if len(content) > self.max_bytes:
            raise ValueError(f"File exceeds the {self.max_bytes // (1024 * 1024)} MB limit.")
        filename = os.path.basename((file.filename or "upload.bin").replace("\\", "/").strip()) or "upload.bin"
        ext = _validate_extension(media_type, filename)
        safe_name, _ = os.path.splitext(filename)
        safe_name = "".join(ch for ch in safe_name if ch.isalnum() or ch in {"-", "_"}).strip() or "media"
        stamped_filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe_name}{ext}"
        folder = TYPE_FOLDERS[media_type]
        with open(os.path.join(self.root, folder, stamped_filename), "wb") as f:
            f.write(content)
        return f"{UPLOADS_URL_PREFIX}{folder}/{stamped_filename}"


storage = MediaStorage(UPLOADS_DIR)
