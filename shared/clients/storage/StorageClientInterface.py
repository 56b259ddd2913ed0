from abc import ABC, abstractmethod
import hashlib

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import StoredObject


class StorageClientInterface(ABC):
    """Blob storage for uploaded files.

    Keys are opaque strings such as "uploads/<owner>/<document>/<file>".
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return "storage"

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    @staticmethod
    def compute_etag(data: bytes) -> str:
        """MD5 hex digest of the blob, as used by S3-compatible stores."""
        return hashlib.md5(data).hexdigest()

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        pass

    async def close(self) -> None:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_put(self, key: str, data: bytes, mime_type: str) -> StoredObject:
        """Store a blob under key, replacing any existing blob.

        Returns:
            StoredObject: Key, size, MIME type and etag of the stored blob.
        """
        pass

    @abstractmethod
    async def do_get(self, key: str) -> bytes:
        """Read a blob.

        Raises:
            KeyError: If no blob is stored under key.
        """
        pass

    @abstractmethod
    async def do_delete(self, key: str) -> None:
        """Delete a blob. Deleting a missing key is a no-op."""
        pass
