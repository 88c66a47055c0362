import threading
import uuid
from typing import Dict, Optional

from ecoconnect_client.models.schemas import UploadFile


class PreviewRegistry:
    """Temporary local URLs for files that are still uploading.

    Every URL handed out by `create` holds the file bytes until `release` is
    called with it.
    """

    def __init__(self) -> None:
        self._previews: Dict[str, UploadFile] = {}
        self._lock = threading.Lock()

    def create(self, upload: UploadFile) -> str:
        url = f"preview://{uuid.uuid4().hex}/{upload.name}"
        with self._lock:
            self._previews[url] = upload
        return url

    def resolve(self, url: str) -> Optional[UploadFile]:
        with self._lock:
            return self._previews.get(url)

    def release(self, url: str) -> None:
        with self._lock:
            self._previews.pop(url, None)

    @property
    def active(self) -> list[str]:
        with self._lock:
            return list(self._previews)
