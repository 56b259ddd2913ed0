from shared.clients.ClientManager import ClientManager
from shared.clients.storage.StorageClientInterface import StorageClientInterface


class StorageClientManager(ClientManager):
    """Selects the blob storage backend via STORAGE_ENGINE (default: memory)."""

    client_type = "storage"
    class_prefix = "StorageClient"
    default_engine = "memory"

    def get_client(self) -> StorageClientInterface:
        return self.client
