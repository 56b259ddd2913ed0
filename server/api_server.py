"""FastAPI application entry point for the upload-and-ask service."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.models.responses import ErrorResponse
from server.routers.AskRouter import router as ask_router
from server.routers.DocumentRouter import router as document_router
from server.routers.SessionRouter import router as session_router
from services.upload_ask.UploadAskApp import UploadAskApp
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.errors import INVALID_INPUT, NOT_FOUND, TIMEOUT, UNAUTHORIZED, AppError

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")

ERROR_STATUS = {
    INVALID_INPUT: 400,
    UNAUTHORIZED: 401,
    NOT_FOUND: 404,
    TIMEOUT: 504,
}


def status_for_error(err: AppError) -> int:
    return ERROR_STATUS.get(err.code, 500)


async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    status = status_for_error(exc)
    if status >= 500:
        logging.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    else:
        logging.debug("Request %s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=ErrorResponse(code=exc.code, message=exc.message).model_dump())


def create_app(app_factory: Callable[[HelperConfig], UploadAskApp] = UploadAskApp.from_env) -> FastAPI:
    """Build the FastAPI application.

    Args:
        app_factory: Builds the service container from the configuration helper at start-up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # when the app starts
        app.state.logging = logging
        app.state.helper_config = HelperConfig(logger=logging)
        upload_ask = app_factory(app.state.helper_config)

        logging.info("Booting all clients...")
        await upload_ask.boot()
        app.state.upload_ask = upload_ask

        # while the app is running...
        yield

        # when the app shuts down, drain queued jobs and close all client connections
        logging.info("Shutting down, closing all clients...")
        await upload_ask.close()
        logging.info("All clients closed.")

    app = FastAPI(
        title="uploadask",
        description=(
            "Retrieval-augmented question answering over uploaded documents. "
            "Documents are uploaded via POST /documents, chunked and embedded in the background, "
            "and questions are answered via POST /ask with citations and conversational memory."
        ),
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, handle_app_error)

    app.include_router(document_router)
    app.include_router(ask_router)
    app.include_router(session_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting uploadask API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", os.getcwd()),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
