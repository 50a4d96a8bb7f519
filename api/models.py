"""
API models and schemas for the FastAPI application.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookStatus(str, Enum):
    """Reading status of a book."""
    READ = "read"
    READING = "reading"
    TO_READ = "to-read"


class Book(BaseModel):
    """Book row as stored."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Unique book identifier")
    user_id: str = Field(..., description="Owning user identifier")
    title: str = Field(..., description="Book title")
    author: Optional[str] = Field(None, description="Author")
    isbn: Optional[str] = Field(None, description="ISBN")
    cover_image: Optional[str] = Field(None, description="Cover image reference")
    publication_date: Optional[str] = Field(None, description="Publication date")
    publisher: Optional[str] = Field(None, description="Publisher")
    description: Optional[str] = Field(None, description="Book description")
    status: Optional[BookStatus] = Field(BookStatus.TO_READ, description="Reading status")
    rating: Optional[int] = Field(None, description="Rating (1-5)")
    notes: Optional[str] = Field(None, description="Free-text notes")
    created_at: Optional[str] = Field(None, description="Creation timestamp")
    updated_at: Optional[str] = Field(None, description="Last update timestamp")


class Tag(BaseModel):
    """Tag row as stored."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Unique tag identifier")
    user_id: str = Field(..., description="Owning user identifier")
    name: str = Field(..., description="Tag name")
    color: Optional[str] = Field(None, description="Display color")
    created_at: Optional[str] = Field(None, description="Creation timestamp")


class BookTag(BaseModel):
    """Association between a book and a tag."""
    id: str
    book_id: str
    tag_id: str
    created_at: Optional[str] = None


class BookWithTags(Book):
    """Book together with its resolved tags."""
    tags: List[Tag] = Field(default_factory=list, description="Tags attached to the book")


class Quote(BaseModel):
    """Quote taken from a book."""
    id: str
    user_id: str
    book_id: Optional[str] = None
    content: str
    page: Optional[int] = None
    chapter: Optional[str] = None
    favourite: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class QuoteTag(BaseModel):
    """Association between a quote and a tag."""
    id: str
    quote_id: str
    tag_id: str
    created_at: Optional[str] = None


class Connection(BaseModel):
    """Directed link from one quote to another."""
    id: str
    user_id: str
    source_quote_id: str
    target_quote_id: str
    description: Optional[str] = None
    created_at: Optional[str] = None


class BookPayload(BaseModel):
    """
    Request body for creating or replacing a book.

    ``title`` is optional here so that a missing title is reported as a
    400 by the handler rather than as a schema error.
    """
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, description="Book title (required)")
    author: Optional[str] = None
    isbn: Optional[str] = None
    cover_image: Optional[str] = None
    publication_date: Optional[str] = None
    publisher: Optional[str] = None
    description: Optional[str] = None
    status: Optional[BookStatus] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None
    tags: Optional[List[str]] = Field(None, description="Tag identifiers to attach")

    def book_fields(self) -> dict:
        """Mutable book columns, with the default status applied."""
        fields = self.model_dump(exclude={"tags"}, mode="json")
        fields["status"] = (self.status or BookStatus.TO_READ).value
        return fields


class BookCreate(BookPayload):
    """Request body for POST /books."""


class BookUpdate(BookPayload):
    """Request body for PUT /books/{id}."""


class BookListResponse(BaseModel):
    """Response model for a list of books."""
    books: List[Book] = Field(..., description="List of books")


class BookResponse(BaseModel):
    """Response model for a single book."""
    book: BookWithTags = Field(..., description="The book with its tags")


class BookWriteResponse(BaseModel):
    """Response model for a created or updated book."""
    book: Book = Field(..., description="The written book")
    warnings: List[str] = Field(default_factory=list, description="Tag association problems")


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    message: Optional[str] = Field(None, description="Additional guidance")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    message: str = Field(..., description="Human-readable status")
