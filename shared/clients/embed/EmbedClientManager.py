from shared.clients.ClientManager import ClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface


class EmbedClientManager(ClientManager):
    """Selects the embedding backend via EMBED_ENGINE (default: deterministic)."""

    client_type = "embed"
    class_prefix = "EmbedClient"
    default_engine = "deterministic"

    def get_client(self) -> EmbedClientInterface:
        return self.client
