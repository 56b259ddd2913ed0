from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import get_owner_id, verify_api_key
from server.models.requests import AskBody
from shared.models.search import AskResponse

router = APIRouter(prefix="/ask", tags=["ask"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def ask(request: Request, body: AskBody, owner_id: int = Depends(get_owner_id)) -> AskResponse:
    """Answer a question from the caller's documents and session memory.

    Args:
        request (Request): FastAPI request (provides app.state.upload_ask).
        body (AskBody): The question, optional session id and retrieval overrides.
        owner_id (int): Acting user from the X-User-Id header.

    Returns:
        AskResponse: The answer with its sources. LLM outages still return 200 with a fallback answer.
    """
    request.app.state.logging.debug("Ask received from user %d: %r", owner_id, body.query[:80])
    return await request.app.state.upload_ask.ask.ask(owner_id, body)
