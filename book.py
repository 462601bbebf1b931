from __future__ import annotations

from pydantic import BaseModel, Field


class Book:
    """Represents a single book the user has read."""

    def __init__(self, title: str, author: str, id: int | None = None, isbn: str | None = None,
                 rating: int | None = None, notes: str | None = None, date_read: str | None = None,
                 created_at: str | None = None, cover_url: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.isbn = isbn
        self.rating = rating
        self.notes = notes
        self.date_read = date_read
        self.created_at = created_at
        # Not persisted; attached on read by the cover resolver
        self.cover_url = cover_url

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn or '-'})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "rating": self.rating,
            "notes": self.notes,
            "date_read": self.date_read,
            "created_at": self.created_at,
            "cover_url": self.cover_url,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite hands DATE/TIMESTAMP columns back as text; keep them as ISO strings
        date_read = data.get("date_read")
        created_at = data.get("created_at")
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            isbn=data.get("isbn"),
            rating=data.get("rating"),
            notes=data.get("notes"),
            date_read=str(date_read) if date_read is not None else None,
            created_at=str(created_at) if created_at is not None else None,
            cover_url=data.get("cover_url"),
        )


class BookForm(BaseModel):
    """Fields submitted by the create and edit forms, exactly as typed."""
    title: str = Field(default="", description="Required; trimmed before validation")
    author: str = Field(default="", description="Required; trimmed before validation")
    isbn: str | None = Field(default=None, description="Optional; punctuation is stripped")
    rating: str | None = Field(default=None, description="Optional integer from 1 to 5")
    notes: str | None = None
    date_read: str | None = Field(default=None, description="Optional YYYY-MM-DD")
