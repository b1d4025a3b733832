"""
FastAPI application exposing the newsletter generation lifecycle.

Generation requests are validated and moved to ``generating`` inside the
request; the backend call runs as a background task and clients poll
``GET /newsletters/{id}`` until the status settles.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import init_database
from newsletter_studio.infrastructure.error_handling import (
    GenerationConflictError,
    GenerationValidationError,
    NewsletterNotFoundError,
    NewsletterStudioError,
    ProjectNotFoundError,
    SpreadsheetImportError,
    SpreadsheetNotFoundError,
    StorageError,
)
from newsletter_studio.infrastructure.logging import get_logger
from newsletter_studio.models.newsletter import CallbackPayload, NewsletterUpdate, ReconcileOutcome
from newsletter_studio.models.spreadsheet import ColumnTypeUpdate
from newsletter_studio.services.generation import GenerationService
from newsletter_studio.services.spreadsheet_import import SpreadsheetImporter

logger = get_logger(__name__)

_STATUS_CODES = {
    GenerationValidationError: 400,
    SpreadsheetImportError: 400,
    NewsletterNotFoundError: 404,
    ProjectNotFoundError: 404,
    SpreadsheetNotFoundError: 404,
    GenerationConflictError: 409,
    StorageError: 500,
}


def _status_for(error: NewsletterStudioError) -> int:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def create_app(
    service: Optional[GenerationService] = None,
    importer: Optional[SpreadsheetImporter] = None,
    config: Optional[ApplicationConfig] = None,
) -> FastAPI:
    """Build the API; without a service one is wired from configuration at startup."""
    config = config or ApplicationConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = None
        if service is None:
            database = await init_database(config)
            app.state.service = GenerationService(database, config)
            app.state.importer = SpreadsheetImporter(database, config.type_sample_size)
        else:
            app.state.service = service
            app.state.importer = importer or SpreadsheetImporter(service.database, config.type_sample_size)
        yield
        if database is not None:
            await database.close()

    app = FastAPI(title="Newsletter Studio API", version="0.1.0", lifespan=lifespan)
    if service is not None:
        # Available without running the lifespan (e.g. in-process ASGI clients).
        app.state.service = service
        app.state.importer = importer or SpreadsheetImporter(service.database, config.type_sample_size)

    @app.exception_handler(NewsletterStudioError)
    async def handle_app_error(request: Request, exc: NewsletterStudioError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message)
        body = {"error": exc.message}
        if isinstance(exc, GenerationValidationError):
            body["problems"] = exc.problems
        return JSONResponse(status_code=status_code, content=body)

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        return {"status": "healthy", "service": "newsletter-studio"}

    @app.get("/newsletters/{newsletter_id}")
    async def get_newsletter(newsletter_id: str, request: Request):
        """Current newsletter state; clients poll this while generating."""
        record = await request.app.state.service.get_newsletter(newsletter_id)
        return record.model_dump(mode="json")

    @app.patch("/newsletters/{newsletter_id}")
    async def update_newsletter(newsletter_id: str, update: NewsletterUpdate, request: Request):
        record = await request.app.state.service.update_newsletter(newsletter_id, update)
        return record.model_dump(mode="json")

    @app.post("/newsletters/{newsletter_id}/generate", status_code=202)
    async def generate_newsletter(newsletter_id: str, request: Request, background_tasks: BackgroundTasks):
        """
        Start (or restart) generation.

        Validation and the move to ``generating`` happen before the response;
        the backend call runs in the background.
        """
        service: GenerationService = request.app.state.service
        generation_id = await service.request_generation(newsletter_id)
        background_tasks.add_task(_run_generation, service, newsletter_id, generation_id)
        return {"status": "generating", "newsletter_id": newsletter_id, "generation_id": generation_id}

    @app.post("/newsletters/{newsletter_id}/cancel")
    async def cancel_generation(newsletter_id: str, request: Request):
        record = await request.app.state.service.cancel(newsletter_id)
        return record.model_dump(mode="json")

    @app.post("/newsletter-callback")
    async def newsletter_callback(request: Request):
        """Result delivery for asynchronous webhook backends."""
        try:
            payload = CallbackPayload.model_validate(await request.json())
        except (ValueError, ValidationError):
            return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

        if not payload.newsletter_id:
            return JSONResponse(status_code=400, content={"error": "newsletter_id is required"})

        logger.info(
            "Callback received",
            newsletter_id=payload.newsletter_id,
            has_error=bool(payload.error),
            has_content=bool(payload.html_content and payload.text_content),
        )

        outcome = await request.app.state.service.handle_callback(payload)
        if outcome == ReconcileOutcome.DISCARDED:
            return {"success": False, "message": "Newsletter is no longer generating"}
        if outcome == ReconcileOutcome.FAILED:
            return {"success": True, "message": "Error recorded"}
        return {"success": True, "message": "Newsletter updated"}

    @app.post("/spreadsheets/{spreadsheet_id}/import")
    async def import_spreadsheet(spreadsheet_id: str, request: Request, file: UploadFile = File(...)):
        """Replace a spreadsheet's data with an uploaded CSV or Excel file."""
        content = await file.read()
        summary = await request.app.state.importer.import_file(spreadsheet_id, file.filename or "", content)
        return {
            "spreadsheet_id": summary.spreadsheet_id,
            "row_count": summary.row_count,
            "columns": [
                {"name": column.name, "column_type": column.column_type.value, "column_order": column.column_order}
                for column in summary.columns
            ],
        }

    @app.patch("/spreadsheets/{spreadsheet_id}/columns/{column_id}")
    async def override_column_type(spreadsheet_id: str, column_id: str, update: ColumnTypeUpdate, request: Request):
        database = request.app.state.service.database
        if not await database.set_column_type(spreadsheet_id, column_id, update.column_type.value):
            raise SpreadsheetNotFoundError(f"Column not found: {column_id}")
        return {"id": column_id, "column_type": update.column_type.value}

    return app


async def _run_generation(service: GenerationService, newsletter_id: str, generation_id: str) -> None:
    try:
        await service.run_generation(newsletter_id, generation_id)
    except Exception as e:
        # Nothing above a background task can receive this.
        logger.error(
            "Background generation aborted",
            newsletter_id=newsletter_id,
            generation_id=generation_id,
            error=str(e),
            exc_info=True,
        )
