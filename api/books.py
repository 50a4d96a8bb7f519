"""
Book endpoints.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.auth import require_user_id
from api.database import (
    BookAccessDeniedError, BookDatabaseService, BookNotFoundError, BookValidationError
)
from api.models import (
    BookCreate, BookListResponse, BookResponse, BookUpdate,
    BookWriteResponse, MessageResponse
)
from store import StoreError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/books", tags=["Books"])

INTERNAL_ERROR = "Internal server error"


def get_book_service(request: Request) -> BookDatabaseService:
    """Get the book service bound to the application's data store."""
    service: Optional[BookDatabaseService] = getattr(request.app.state, "book_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return service


def _to_http_error(exc: Exception, operation: str, **context) -> HTTPException:
    """Map a service failure to the HTTP error it is reported as."""
    if isinstance(exc, BookValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, BookNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    if isinstance(exc, BookAccessDeniedError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this book"
        )
    if isinstance(exc, StoreError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)

    logger.error("Unexpected error", operation=operation, error=str(exc), exc_info=exc, **context)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)


@router.get("", response_model=BookListResponse)
async def get_all_books(
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """Get all of the caller's books, newest first."""
    try:
        books = await service.list_books(user_id)
    except Exception as e:
        raise _to_http_error(e, "get_all_books", user_id=user_id)
    return BookListResponse(books=books)


@router.get("/search", response_model=BookListResponse)
async def search_books(
    query: Optional[str] = None,
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """
    Search the caller's books.

    - **query**: Text matched case-insensitively against title, author and description
    """
    try:
        books = await service.search_books(user_id, query)
    except Exception as e:
        raise _to_http_error(e, "search_books", user_id=user_id)
    return BookListResponse(books=books)


@router.get("/tag/{tag_id}", response_model=BookListResponse)
async def get_books_by_tag(
    tag_id: str,
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """Get the caller's books carrying a tag."""
    try:
        books = await service.get_books_by_tag(user_id, tag_id)
    except Exception as e:
        raise _to_http_error(e, "get_books_by_tag", tag_id=tag_id)
    return BookListResponse(books=books)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book_by_id(
    book_id: str,
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """Get a single book with its tags."""
    try:
        book = await service.get_book(user_id, book_id)
    except Exception as e:
        raise _to_http_error(e, "get_book_by_id", book_id=book_id)
    return BookResponse(book=book)


@router.post("", response_model=BookWriteResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: BookCreate,
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """
    Create a book.

    - **title**: Required
    - **tags**: Optional list of tag ids to attach
    """
    try:
        book, warnings = await service.create_book(user_id, payload)
    except Exception as e:
        raise _to_http_error(e, "create_book", user_id=user_id)
    return BookWriteResponse(book=book, warnings=warnings)


@router.put("/{book_id}", response_model=BookWriteResponse)
async def update_book(
    book_id: str,
    payload: BookUpdate,
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """
    Replace a book's fields.

    When **tags** is present (even empty) it replaces the book's tag set.
    """
    try:
        book, warnings = await service.update_book(user_id, book_id, payload)
    except Exception as e:
        raise _to_http_error(e, "update_book", book_id=book_id)
    return BookWriteResponse(book=book, warnings=warnings)


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    user_id: str = Depends(require_user_id),
    service: BookDatabaseService = Depends(get_book_service),
):
    """Delete a book and its tag associations."""
    try:
        await service.delete_book(user_id, book_id)
    except Exception as e:
        raise _to_http_error(e, "delete_book", book_id=book_id)
    return MessageResponse(message="Book deleted successfully")
