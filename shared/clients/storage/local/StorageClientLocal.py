import asyncio
import os
from pathlib import Path

from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import StoredObject


class StorageClientLocal(StorageClientInterface):
    """Stores blobs as files below STORAGE_LOCAL_ROOT_DIR (default: $ROOT_DIR/data/uploads)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        default_root = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "data", "uploads")
        self._root = Path(helper_config.get_string_val("STORAGE_LOCAL_ROOT_DIR", default=default_root)).resolve()

    def _get_engine_name(self) -> str:
        return "Local"

    def _path_for(self, key: str) -> Path:
        """Resolve key below the root directory.

        Raises:
            ValueError: If the key escapes the root directory.
        """
        path = (self._root / key.lstrip("/")).resolve()
        if self._root not in path.parents:
            raise ValueError(f"storage key escapes root directory: {key}")
        return path

    async def boot(self) -> None:
        await asyncio.to_thread(self._root.mkdir, parents=True, exist_ok=True)

    async def do_put(self, key: str, data: bytes, mime_type: str) -> StoredObject:
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        return StoredObject(key=key, size=len(data), mime_type=mime_type, etag=self.compute_etag(data))

    async def do_get(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise KeyError(f"blob not found: {key}")
        return await asyncio.to_thread(path.read_bytes)

    async def do_delete(self, key: str) -> None:
        path = self._path_for(key)
        await asyncio.to_thread(path.unlink, missing_ok=True)
