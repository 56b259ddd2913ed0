from shared.clients.ClientManager import ClientManager
from shared.clients.queue.QueueClientInterface import QueueClientInterface


class QueueClientManager(ClientManager):
    """Selects the job queue via QUEUE_ENGINE (default: immediate)."""

    client_type = "queue"
    class_prefix = "QueueClient"
    default_engine = "immediate"

    def get_client(self) -> QueueClientInterface:
        return self.client
