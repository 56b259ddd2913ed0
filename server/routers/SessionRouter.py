import uuid

from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import get_owner_id, verify_api_key
from server.models.responses import SessionListResponse, SessionLogsResponse

router = APIRouter(prefix="/sessions", tags=["sessions"], dependencies=[Depends(verify_api_key)])


@router.get("")
async def list_sessions(request: Request, owner_id: int = Depends(get_owner_id)) -> SessionListResponse:
    sessions = await request.app.state.upload_ask.ask.list_sessions(owner_id)
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.get("/{session_id}/logs")
async def list_session_logs(request: Request, session_id: uuid.UUID, owner_id: int = Depends(get_owner_id)) -> SessionLogsResponse:
    """Question/answer history of one of the caller's sessions. Foreign sessions are 404."""
    logs = await request.app.state.upload_ask.ask.list_session_logs(owner_id, session_id)
    return SessionLogsResponse(logs=logs, total=len(logs))
