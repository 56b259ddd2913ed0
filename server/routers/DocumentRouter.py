import uuid

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from server.dependencies.auth import get_owner_id, verify_api_key
from server.models.responses import DocumentListResponse
from shared.models.document import Document, DocumentFilter, DocumentStatus
from shared.models.search import UploadRequest, UploadResponse

router = APIRouter(prefix="/documents", tags=["documents"], dependencies=[Depends(verify_api_key)])


@router.post("", status_code=202)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    title: str = Form(default=""),
    owner_id: int = Depends(get_owner_id),
) -> UploadResponse:
    """Store an uploaded file and queue it for processing.

    Args:
        request (Request): FastAPI request (provides app.state.upload_ask).
        file (UploadFile): The multipart file part.
        title (str): Optional document title; defaults to the filename.
        owner_id (int): Acting user from the X-User-Id header.

    Returns:
        UploadResponse: The created document in "pending" state.
    """
    content = await file.read()
    upload = UploadRequest(
        filename=file.filename or "",
        title=title,
        mime_type=file.content_type or "",
        content=content,
    )
    return await request.app.state.upload_ask.ingest.upload(owner_id, upload)


@router.get("")
async def list_documents(
    request: Request,
    status: list[DocumentStatus] = Query(default=[]),
    owner_id: int = Depends(get_owner_id),
) -> DocumentListResponse:
    """List the caller's documents, optionally restricted to some statuses."""
    documents = await request.app.state.upload_ask.ingest.list_documents(owner_id, DocumentFilter(statuses=status))
    return DocumentListResponse(documents=documents, total=len(documents))


@router.get("/{document_id}")
async def get_document(request: Request, document_id: uuid.UUID, owner_id: int = Depends(get_owner_id)) -> Document:
    return await request.app.state.upload_ask.ingest.get_document(owner_id, document_id)
