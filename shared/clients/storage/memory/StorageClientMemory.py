import threading

from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import StoredObject


class StorageClientMemory(StorageClientInterface):
    """Keeps blobs in process memory. For tests and local development."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._lock = threading.RLock()
        self._blobs: dict[str, tuple[bytes, str, str]] = {}

    def _get_engine_name(self) -> str:
        return "Memory"

    async def do_put(self, key: str, data: bytes, mime_type: str) -> StoredObject:
        etag = self.compute_etag(data)
        with self._lock:
            self._blobs[key] = (bytes(data), mime_type, etag)
        return StoredObject(key=key, size=len(data), mime_type=mime_type, etag=etag)

    async def do_get(self, key: str) -> bytes:
        with self._lock:
            if key not in self._blobs:
                raise KeyError(f"blob not found: {key}")
            return self._blobs[key][0]

    async def do_delete(self, key: str) -> None:
        with self._lock:
            self._blobs.pop(key, None)
