import os
import uuid
from typing import Optional

from fastapi import UploadFile

from config import get_settings
from logger import logger
from responses import ApiError

MEDIA_KINDS = ("videos", "images")


class MediaStorage:
    """Stores uploaded media on local disk and serves it back under /static."""

    def __init__(self, root: str, base_url: str = "/static"):
        self.root = root
        self.base_url = base_url.rstrip("/")
        for kind in MEDIA_KINDS:
            os.makedirs(os.path.join(root, kind), exist_ok=True)

    async def upload(self, file: Optional[UploadFile], kind: str) -> Optional[dict]:
        if file is None or not file.filename:
            return None
        if kind not in MEDIA_KINDS:
            raise ApiError(500, f"Unknown media kind {kind}")
        ext = os.path.splitext(file.filename)[1] or (".mp4" if kind == "videos" else ".jpg")
        public_id = f"{kind}/{uuid.uuid4().hex}{ext}"
        path = os.path.join(self.root, public_id)
        with open(path, "wb") as f:
            f.write(await file.read())
        return {"url": f"{self.base_url}/{public_id}", "publicId": public_id}

    def delete(self, public_id: Optional[str]) -> bool:
        """Remove a stored file. Failures are logged, never raised."""
        if not public_id:
            return False
        path = os.path.normpath(os.path.join(self.root, public_id))
        if not path.startswith(os.path.normpath(self.root) + os.sep):
            logger.warning(f"Refusing to delete media outside the store: {public_id}")
            return False
        try:
            os.remove(path)
            return True
        except OSError as e:
            logger.warning(f"Failed to delete media {public_id}: {e}")
            return False


_storage: Optional[MediaStorage] = None


def get_storage() -> MediaStorage:
    global _storage
    if _storage is None:
        _storage = MediaStorage(get_settings().UPLOAD_DIR)
    return _storage
