import logging
from typing import Any, List, Optional, Tuple

from book import Book, BookForm
from covers import cover_url_for
from database import ConstraintKind, ConstraintViolation, Database, WriteFailure, WriteResult, WriteSuccess
from utils.validators import DateValidator, ISBNValidator, RatingValidator, TextValidator

logger = logging.getLogger(__name__)

DEFAULT_SORT = "recent"

# Whitelisted ORDER BY clauses; the sort key never reaches SQL directly.
SORT_ORDERS = {
    "recent": "date_read DESC NULLS LAST, created_at DESC, id DESC",
    "rating_desc": "rating DESC NULLS LAST, date_read DESC NULLS LAST, id DESC",
    "rating_asc": "rating ASC NULLS LAST, date_read DESC NULLS LAST, id DESC",
    "title": "title COLLATE NOCASE ASC, id DESC",
}

SORT_LABELS = {
    "recent": "Most recent",
    "rating_desc": "Rating (high to low)",
    "rating_asc": "Rating (low to high)",
    "title": "Title (A-Z)",
}

_COLUMNS = "id, title, author, isbn, rating, notes, date_read, created_at"


class LibraryError(Exception):
    """Base error for book operations; carries what the error page shows."""
    status_code = 500
    title = "Server Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LibraryError):
    status_code = 400
    title = "Validation Error"


class DuplicateIsbnError(LibraryError):
    status_code = 409
    title = "Duplicate ISBN"

    def __init__(self, isbn: Optional[str] = None) -> None:
        super().__init__("This ISBN already exists in your database. Try a different ISBN or leave it blank.")
        self.isbn = isbn


class BookNotFoundError(LibraryError):
    status_code = 404
    title = "Not Found"

    def __init__(self, book_id: Any = None) -> None:
        super().__init__("Book not found.")
        self.book_id = book_id


class PersistenceError(LibraryError):
    pass


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Library:
    """Manages the reading log stored in the books table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------- Reads ------------------------- #
    def list_books(self, q: Optional[str] = None, sort: Optional[str] = None) -> List[Book]:
        """List books, optionally filtered by a title/author substring.

        Unknown sort keys fall back to ``recent``.
        """
        order_by = SORT_ORDERS.get(sort or DEFAULT_SORT, SORT_ORDERS[DEFAULT_SORT])
        query = (q or "").strip()

        sql = f"SELECT {_COLUMNS} FROM books"
        params: List[Any] = []
        if query:
            pattern = f"%{_escape_like(query.casefold())}%"
            sql += " WHERE casefold(title) LIKE ? ESCAPE '\\' OR casefold(author) LIKE ? ESCAPE '\\'"
            params.extend([pattern, pattern])
        sql += f" ORDER BY {order_by}"

        return [self._with_cover(Book.from_dict(row)) for row in self.db.query(sql, params)]

    def find_book(self, book_id: int) -> Book:
        rows = self.db.query(f"SELECT {_COLUMNS} FROM books WHERE id = ?", (book_id,))
        if not rows:
            raise BookNotFoundError(book_id)
        return self._with_cover(Book.from_dict(rows[0]))

    def count_books(self) -> int:
        rows = self.db.query("SELECT COUNT(*) AS total FROM books")
        return rows[0]["total"]

    # ------------------------- Writes ------------------------- #
    def add_book(self, form: BookForm) -> Book:
        """Validate the form and insert a new book; returns the stored record."""
        title, author, isbn, rating, notes, date_read = self._clean(form)
        result = self.db.execute(
            """
            INSERT INTO books (title, author, isbn, rating, notes, date_read)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (title, author, isbn, rating, notes, date_read),
        )
        written = self._check_write(result, isbn, "Failed to create the book.")
        logger.info(f"Book created: id={written.lastrowid} title={title!r}")
        return self.find_book(written.lastrowid)

    def update_book(self, book_id: int, form: BookForm) -> Book:
        """Replace every mutable field of a book. Raises BookNotFoundError if absent."""
        title, author, isbn, rating, notes, date_read = self._clean(form)
        result = self.db.execute(
            """
            UPDATE books
            SET title = ?, author = ?, isbn = ?, rating = ?, notes = ?, date_read = ?
            WHERE id = ?
            """,
            (title, author, isbn, rating, notes, date_read, book_id),
        )
        written = self._check_write(result, isbn, "Failed to update the book.")
        if written.rowcount == 0:
            raise BookNotFoundError(book_id)
        logger.info(f"Book updated: id={book_id}")
        return self.find_book(book_id)

    def remove_book(self, book_id: int) -> bool:
        """Delete a book. Missing ids are not an error; returns whether a row was removed."""
        result = self.db.execute("DELETE FROM books WHERE id = ?", (book_id,))
        written = self._check_write(result, None, "Failed to delete the book.")
        if written.rowcount:
            logger.info(f"Book deleted: id={book_id}")
        return written.rowcount > 0

    # ------------------------- Utilities ------------------------- #
    @staticmethod
    def _clean(form: BookForm) -> Tuple[str, str, Optional[str], Optional[int], Optional[str], Optional[str]]:
        """Normalize the submitted fields, raising ValidationError for bad input."""
        title = TextValidator.normalize_text(form.title)
        author = TextValidator.normalize_text(form.author)
        if not title or not author:
            raise ValidationError("Title and Author are required.")

        # Any submitted rating that does not normalize is an error, whitespace included
        rating = RatingValidator.normalize_rating(TextValidator.normalize_text(form.rating))
        if form.rating not in (None, "") and rating is None:
            raise ValidationError("Rating must be an integer from 1 to 5.")

        date_read = DateValidator.normalize_date(form.date_read)
        if not TextValidator.is_blank(form.date_read) and date_read is None:
            raise ValidationError("Read date must be a valid date (YYYY-MM-DD).")

        isbn = ISBNValidator.normalize_isbn(form.isbn)
        notes = form.notes if form.notes else None
        return title, author, isbn, rating, notes, date_read

    @staticmethod
    def _check_write(result: WriteResult, isbn: Optional[str], failure_message: str) -> WriteSuccess:
        if isinstance(result, WriteSuccess):
            return result
        if isinstance(result, ConstraintViolation):
            if result.kind == ConstraintKind.UNIQUE and result.column == "isbn":
                raise DuplicateIsbnError(isbn)
            raise PersistenceError(failure_message)
        if isinstance(result, WriteFailure):
            raise PersistenceError(failure_message) from result.error
        raise TypeError(f"Unexpected write result: {result!r}")

    @staticmethod
    def _with_cover(book: Book) -> Book:
        book.cover_url = cover_url_for(book.isbn)
        return book
