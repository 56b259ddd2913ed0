from pydantic import BaseModel

from shared.models.conversation import QASession, QueryLog
from shared.models.document import Document


class DocumentListResponse(BaseModel):
    documents: list[Document]
    total: int


class SessionListResponse(BaseModel):
    sessions: list[QASession]
    total: int


class SessionLogsResponse(BaseModel):
    logs: list[QueryLog]
    total: int


class ErrorResponse(BaseModel):
    code: str
    message: str
