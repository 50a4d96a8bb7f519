"""
Unit tests for the book service layer.
"""

import pytest

from api.database import (
    BookAccessDeniedError, BookDatabaseService, BookNotFoundError, BookValidationError, Ownership
)
from api.models import BookCreate, BookUpdate
from store import StoreError


@pytest.fixture
def service(store):
    """Book service over the recording store."""
    return BookDatabaseService(store)


class TestOwnership:
    """Test cases for the typed ownership check."""

    @pytest.mark.asyncio
    async def test_owned(self, service):
        assert await service.check_ownership("user-1", "b1") == Ownership.OWNED

    @pytest.mark.asyncio
    async def test_not_found(self, service):
        assert await service.check_ownership("user-1", "missing") == Ownership.NOT_FOUND

    @pytest.mark.asyncio
    async def test_forbidden(self, service):
        assert await service.check_ownership("user-1", "b3") == Ownership.FORBIDDEN

    @pytest.mark.asyncio
    async def test_store_error_is_raised(self, service, store):
        store.fail("books", "select", StoreError("timeout", code="57014"))
        with pytest.raises(StoreError) as exc_info:
            await service.check_ownership("user-1", "b1")
        assert exc_info.value.code == "57014"


class TestBookWrites:
    """Test cases for create, update and delete."""

    @pytest.mark.asyncio
    async def test_create_sets_owner_and_timestamps(self, service, store):
        book, warnings = await service.create_book("user-1", BookCreate(title="Solaris", tags=["t1", "t1"]))

        assert book.user_id == "user-1"
        assert book.status.value == "to-read"
        assert book.created_at == book.updated_at
        assert warnings == []
        links = [row for row in store.rows("book_tags") if row["book_id"] == book.id]
        assert [row["tag_id"] for row in links] == ["t1"]

    @pytest.mark.asyncio
    async def test_create_requires_title(self, service):
        with pytest.raises(BookValidationError, match="Title is required"):
            await service.create_book("user-1", BookCreate(title=""))

    @pytest.mark.asyncio
    async def test_update_of_missing_book(self, service):
        with pytest.raises(BookNotFoundError):
            await service.update_book("user-1", "missing", BookUpdate(title="X"))

    @pytest.mark.asyncio
    async def test_update_of_foreign_book(self, service):
        with pytest.raises(BookAccessDeniedError):
            await service.update_book("user-1", "b3", BookUpdate(title="X"))

    @pytest.mark.asyncio
    async def test_update_tag_insert_failure_is_a_warning(self, service, store):
        store.fail("book_tags", "insert")
        book, warnings = await service.update_book("user-1", "b1", BookUpdate(title="Dune", tags=["t2"]))

        assert book.title == "Dune"
        assert warnings == ["Failed to attach tags: connection reset by peer"]

    @pytest.mark.asyncio
    async def test_delete_removes_associations_before_book(self, service, store):
        await service.delete_book("user-1", "b1")

        assert store.calls == [
            ("books", "select"),
            ("book_tags", "delete"),
            ("books", "delete"),
        ]

    @pytest.mark.asyncio
    async def test_delete_requires_id(self, service, store):
        with pytest.raises(BookValidationError, match="Book ID is required"):
            await service.delete_book("user-1", " ")
        assert store.calls == []


class TestBookReads:
    """Test cases for lookups."""

    @pytest.mark.asyncio
    async def test_get_book_resolves_tags(self, service, store):
        book = await service.get_book("user-1", "b1")

        assert [tag.id for tag in book.tags] == ["t1"]
        assert store.calls == [
            ("books", "select"),
            ("book_tags", "select"),
            ("tags", "select"),
        ]

    @pytest.mark.asyncio
    async def test_search_is_scoped_to_caller(self, service):
        books = await service.search_books("user-2", "dune")
        assert [book.id for book in books] == ["b3"]

    @pytest.mark.asyncio
    async def test_books_by_tag_without_links(self, service, store):
        assert await service.get_books_by_tag("user-1", "t3") == []
        assert ("books", "select") not in store.calls
