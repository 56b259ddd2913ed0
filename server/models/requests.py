from shared.models.search import AskRequest


class AskBody(AskRequest):
    """JSON body of POST /ask. The owner comes from the X-User-Id header, never the body."""
