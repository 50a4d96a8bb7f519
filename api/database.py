"""
Book service layer for the FastAPI application.

Every operation is scoped to the calling user and translated into one or
more queries against the injected data store.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import structlog

from api.models import Book, BookCreate, BookUpdate, BookWithTags, Tag
from store import DataStore, StoreError

logger = structlog.get_logger(__name__)

BOOKS_TABLE = "books"
TAGS_TABLE = "tags"
BOOK_TAGS_TABLE = "book_tags"

SEARCH_COLUMNS = ("title", "author", "description")


class BookValidationError(Exception):
    """The request is missing a required value."""


class BookNotFoundError(Exception):
    """The book does not exist for the caller."""


class BookAccessDeniedError(Exception):
    """The book exists but belongs to another user."""


class Ownership(str, Enum):
    """Outcome of an ownership check."""
    OWNED = "owned"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require(value: Optional[str], message: str) -> str:
    if value is None or not str(value).strip():
        raise BookValidationError(message)
    return value


class BookDatabaseService:
    """Book operations against a data store."""

    def __init__(self, store: DataStore):
        self.store = store

    async def list_books(self, user_id: str) -> List[Book]:
        """
        Get all of the caller's books, newest first.

        Args:
            user_id: Calling user

        Returns:
            List of books
        """
        try:
            rows = await (
                self.store.table(BOOKS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", descending=True)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to fetch books", user_id=user_id, error=e.message)
            raise

        return [Book(**row) for row in rows]

    async def get_book(self, user_id: str, book_id: str) -> BookWithTags:
        """
        Get a single book with its tags.

        Args:
            user_id: Calling user
            book_id: Book identifier

        Returns:
            The book and its resolved tags

        Raises:
            BookValidationError: If the book id is blank
            BookNotFoundError: If the caller has no book with this id
            StoreError: If the store fails
        """
        _require(book_id, "Book ID is required")

        try:
            row = await (
                self.store.table(BOOKS_TABLE)
                .select("*")
                .eq("id", book_id)
                .eq("user_id", user_id)
                .single()
                .execute()
            )
        except StoreError as e:
            if e.is_no_rows:
                raise BookNotFoundError(book_id)
            logger.error("Failed to fetch book", book_id=book_id, error=e.message)
            raise

        tags = await self.get_tags_for_book(book_id)
        return BookWithTags(**row, tags=tags)

    async def get_tags_for_book(self, book_id: str) -> List[Tag]:
        """Resolve the tags attached to a book; no tag query when there are none."""
        try:
            links = await (
                self.store.table(BOOK_TAGS_TABLE)
                .select("tag_id")
                .eq("book_id", book_id)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to fetch book tags", book_id=book_id, error=e.message)
            raise

        tag_ids = [link["tag_id"] for link in links]
        if not tag_ids:
            return []

        try:
            rows = await (
                self.store.table(TAGS_TABLE)
                .select("*")
                .in_("id", tag_ids)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to fetch tags", book_id=book_id, tag_ids=tag_ids, error=e.message)
            raise

        return [Tag(**row) for row in rows]

    async def create_book(self, user_id: str, payload: BookCreate) -> Tuple[Book, List[str]]:
        """
        Create a book for the caller and attach the requested tags.

        Tag attachment is best-effort: a failure is returned as a warning
        and the created book is kept.

        Args:
            user_id: Calling user
            payload: Book fields and optional tag ids

        Returns:
            The created book and any tag warnings

        Raises:
            BookValidationError: If the title is blank
            StoreError: If the book insert fails
        """
        _require(payload.title, "Title is required")

        now = _now()
        values = payload.book_fields()
        values.update(user_id=user_id, created_at=now, updated_at=now)

        try:
            rows = await self.store.table(BOOKS_TABLE).insert(values).execute()
        except StoreError as e:
            logger.error("Failed to create book", user_id=user_id, error=e.message)
            raise
        if not rows:
            raise StoreError("Book insert returned no row")

        book = Book(**rows[0])
        logger.info("Book created", book_id=book.id, user_id=user_id)

        warnings: List[str] = []
        if payload.tags:
            warning = await self._attach_tags(book.id, payload.tags)
            if warning:
                warnings.append(warning)

        return book, warnings

    async def update_book(
        self, user_id: str, book_id: str, payload: BookUpdate
    ) -> Tuple[Book, List[str]]:
        """
        Replace a book's fields and, when given, its tag set.

        Args:
            user_id: Calling user
            book_id: Book identifier
            payload: New book fields; ``tags`` of ``None`` leaves tags untouched

        Returns:
            The updated book and any tag warnings

        Raises:
            BookValidationError: If the book id or title is blank
            BookNotFoundError: If the book does not exist
            BookAccessDeniedError: If the book belongs to another user
            StoreError: If the store fails
        """
        _require(book_id, "Book ID is required")
        _require(payload.title, "Title is required")

        await self._ensure_owned(user_id, book_id)

        values = payload.book_fields()
        values["updated_at"] = _now()

        try:
            rows = await (
                self.store.table(BOOKS_TABLE)
                .update(values)
                .eq("id", book_id)
                .eq("user_id", user_id)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to update book", book_id=book_id, error=e.message)
            raise
        if not rows:
            raise BookNotFoundError(book_id)

        book = Book(**rows[0])
        logger.info("Book updated", book_id=book_id, user_id=user_id)

        warnings: List[str] = []
        if payload.tags is not None:
            warnings.extend(await self._replace_tags(book_id, payload.tags))

        return book, warnings

    async def delete_book(self, user_id: str, book_id: str) -> None:
        """
        Delete a book and its tag associations.

        Raises:
            BookValidationError: If the book id is blank
            BookNotFoundError: If the book does not exist
            BookAccessDeniedError: If the book belongs to another user
            StoreError: If the store fails
        """
        _require(book_id, "Book ID is required")

        await self._ensure_owned(user_id, book_id)

        try:
            await self.store.table(BOOK_TAGS_TABLE).delete().eq("book_id", book_id).execute()
            await (
                self.store.table(BOOKS_TABLE)
                .delete()
                .eq("id", book_id)
                .eq("user_id", user_id)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to delete book", book_id=book_id, error=e.message)
            raise

        logger.info("Book deleted", book_id=book_id, user_id=user_id)

    async def search_books(self, user_id: str, query: Optional[str]) -> List[Book]:
        """
        Find the caller's books whose title, author or description contains
        ``query``, ignoring case.

        Raises:
            BookValidationError: If the query is blank
            StoreError: If the store fails
        """
        _require(query, "Search query is required")

        try:
            rows = await (
                self.store.table(BOOKS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .contains_any(SEARCH_COLUMNS, query)
                .order("created_at", descending=True)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to search books", user_id=user_id, query=query, error=e.message)
            raise

        return [Book(**row) for row in rows]

    async def get_books_by_tag(self, user_id: str, tag_id: str) -> List[Book]:
        """
        Get the caller's books carrying a tag.

        No books query is issued when the tag has no associations.

        Raises:
            BookValidationError: If the tag id is blank
            StoreError: If the store fails
        """
        _require(tag_id, "Tag ID is required")

        try:
            links = await (
                self.store.table(BOOK_TAGS_TABLE)
                .select("book_id")
                .eq("tag_id", tag_id)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to fetch book tags", tag_id=tag_id, error=e.message)
            raise

        book_ids = list(dict.fromkeys(link["book_id"] for link in links))
        if not book_ids:
            return []

        try:
            rows = await (
                self.store.table(BOOKS_TABLE)
                .select("*")
                .in_("id", book_ids)
                .eq("user_id", user_id)
                .order("created_at", descending=True)
                .execute()
            )
        except StoreError as e:
            logger.error("Failed to fetch books by tag", tag_id=tag_id, error=e.message)
            raise

        return [Book(**row) for row in rows]

    async def check_ownership(self, user_id: str, book_id: str) -> Ownership:
        """
        Check whether a book exists and belongs to the caller.

        Store failures other than "no rows" are raised, not folded into
        the result.

        Raises:
            StoreError: If the store fails
        """
        try:
            row = await (
                self.store.table(BOOKS_TABLE)
                .select("id,user_id")
                .eq("id", book_id)
                .single()
                .execute()
            )
        except StoreError as e:
            if e.is_no_rows:
                return Ownership.NOT_FOUND
            logger.error("Ownership check failed", book_id=book_id, error=e.message)
            raise

        if row.get("user_id") != user_id:
            return Ownership.FORBIDDEN
        return Ownership.OWNED

    async def _ensure_owned(self, user_id: str, book_id: str) -> None:
        ownership = await self.check_ownership(user_id, book_id)
        if ownership == Ownership.NOT_FOUND:
            raise BookNotFoundError(book_id)
        if ownership == Ownership.FORBIDDEN:
            logger.warning("Book access denied", book_id=book_id, user_id=user_id)
            raise BookAccessDeniedError(book_id)

    async def _attach_tags(self, book_id: str, tag_ids: Sequence[str]) -> Optional[str]:
        """Insert one association per tag id; returns a warning on failure."""
        rows = [{"book_id": book_id, "tag_id": tag_id} for tag_id in dict.fromkeys(tag_ids)]
        try:
            await self.store.table(BOOK_TAGS_TABLE).insert(rows).execute()
        except StoreError as e:
            logger.warning("Failed to attach tags", book_id=book_id, tag_ids=list(tag_ids), error=e.message)
            return f"Failed to attach tags: {e.message}"
        return None

    async def _replace_tags(self, book_id: str, tag_ids: Sequence[str]) -> List[str]:
        """
        Delete all associations of a book, then insert the new set.

        Tag-write failures are non-fatal: they come back as warnings and the
        book update stands.
        """
        try:
            await self.store.table(BOOK_TAGS_TABLE).delete().eq("book_id", book_id).execute()
        except StoreError as e:
            logger.warning("Failed to clear tags", book_id=book_id, error=e.message)
            return [f"Failed to clear existing tags: {e.message}"]

        if not tag_ids:
            return []

        warning = await self._attach_tags(book_id, tag_ids)
        return [warning] if warning else []
