"""Request-scoped access to the collaborators held on ``app.state``."""

from fastapi import HTTPException, Request, status

from grimoire.content_services import ContentService
from grimoire.errors import (
    ConfirmationRequiredError,
    ContentServiceError,
    DuplicateError,
    GrimoireValidationError,
    NotFoundError,
    PageRenderError,
)
from grimoire.report import PaginationEngine
from grimoire.store import GrimoireStore


def get_store(request: Request) -> GrimoireStore:
    return request.app.state.store


def get_content(request: Request) -> ContentService:
    return request.app.state.content


def get_engine(request: Request) -> PaginationEngine:
    return request.app.state.engine


def http_error(exc: Exception) -> HTTPException:
    """Translate a domain error into the HTTP error surfaced to clients."""
    if isinstance(exc, DuplicateError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConfirmationRequiredError):
        code = status.HTTP_428_PRECONDITION_REQUIRED
    elif isinstance(exc, GrimoireValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ContentServiceError):
        code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, PageRenderError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        raise TypeError(f"No HTTP mapping for {type(exc).__name__}") from exc
    return HTTPException(status_code=code, detail=str(exc))


DOMAIN_ERRORS = (
    GrimoireValidationError,
    NotFoundError,
    ConfirmationRequiredError,
    ContentServiceError,
    PageRenderError,
)
