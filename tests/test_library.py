import pytest

from book import BookForm
from database import ConstraintKind, ConstraintViolation, Database, WriteFailure
from library import (
    BookNotFoundError,
    DuplicateIsbnError,
    Library,
    PersistenceError,
    ValidationError,
)


def make_form(title="Dune", author="Frank Herbert", **fields) -> BookForm:
    return BookForm(title=title, author=author, **fields)


def titles(books):
    return [b.title for b in books]


def test_add_and_find_round_trip(lib):
    created = lib.add_book(make_form(
        title="  Dune ",
        author=" Frank Herbert",
        isbn="0-441-17271-7",
        rating="5",
        notes="Spice must flow.",
        date_read="2024-03-01",
    ))

    found = lib.find_book(created.id)
    assert found.title == "Dune"
    assert found.author == "Frank Herbert"
    assert found.isbn == "0441172717"
    assert found.rating == 5
    assert found.notes == "Spice must flow."
    assert found.date_read == "2024-03-01"
    assert found.created_at is not None
    assert found.cover_url == "/api/covers/isbn/0441172717"


def test_optional_fields_default_to_none(lib):
    book = lib.add_book(make_form(isbn="", rating="", notes="", date_read=""))
    assert book.isbn is None
    assert book.rating is None
    assert book.notes is None
    assert book.date_read is None
    assert book.cover_url == "/static/no-cover.svg"


@pytest.mark.parametrize("title, author", [("", "Frank Herbert"), ("Dune", "   "), ("  ", "")])
def test_title_and_author_are_required(lib, title, author):
    with pytest.raises(ValidationError, match="Title and Author are required."):
        lib.add_book(make_form(title=title, author=author))
    assert lib.list_books() == []


@pytest.mark.parametrize("rating", ["6", "0", "2.5", "five", "   "])
def test_invalid_rating_is_rejected(lib, rating):
    with pytest.raises(ValidationError, match="Rating must be an integer from 1 to 5."):
        lib.add_book(make_form(rating=rating))


def test_invalid_read_date_is_rejected(lib):
    with pytest.raises(ValidationError, match="Read date"):
        lib.add_book(make_form(date_read="31/12/2024"))


def test_duplicate_isbn_conflicts_after_normalization(lib):
    lib.add_book(make_form(isbn="978-0-13-468599-1"))
    with pytest.raises(DuplicateIsbnError) as exc_info:
        lib.add_book(make_form(title="Effective Java", author="Joshua Bloch", isbn="9780134685991"))
    assert exc_info.value.status_code == 409
    assert len(lib.list_books()) == 1


def test_books_without_isbn_never_conflict(lib):
    for i in range(5):
        lib.add_book(make_form(title=f"Untitled {i}", isbn=None))
    assert len(lib.list_books()) == 5


def test_update_replaces_all_mutable_fields(lib):
    book = lib.add_book(make_form(isbn="0441172717", rating="4", notes="first read", date_read="2020-01-01"))

    updated = lib.update_book(book.id, make_form(title="Dune Messiah", author="Frank Herbert"))
    assert updated.title == "Dune Messiah"
    assert updated.isbn is None
    assert updated.rating is None
    assert updated.notes is None
    assert updated.date_read is None
    assert updated.created_at == book.created_at


def test_update_validates_like_create(lib):
    book = lib.add_book(make_form())
    with pytest.raises(ValidationError):
        lib.update_book(book.id, make_form(rating="10"))
    assert lib.find_book(book.id).rating is None


def test_update_to_existing_isbn_conflicts(lib):
    lib.add_book(make_form(isbn="0441172717"))
    other = lib.add_book(make_form(title="Hyperion", author="Dan Simmons", isbn="0553283685"))
    with pytest.raises(DuplicateIsbnError):
        lib.update_book(other.id, make_form(title="Hyperion", author="Dan Simmons", isbn="0-441-17271-7"))


def test_update_missing_book(lib):
    with pytest.raises(BookNotFoundError):
        lib.update_book(404, make_form())


def test_find_missing_book(lib):
    with pytest.raises(BookNotFoundError, match="Book not found."):
        lib.find_book(404)


def test_remove_is_idempotent(lib):
    book = lib.add_book(make_form())
    assert lib.remove_book(book.id) is True
    assert lib.remove_book(book.id) is False
    assert lib.remove_book(12345) is False
    assert lib.count_books() == 0


def test_search_matches_title_or_author_case_insensitively(lib):
    lib.add_book(make_form(title="The Hobbit", author="J.R.R. Tolkien"))
    lib.add_book(make_form(title="Tolkien: A Biography", author="Humphrey Carpenter"))
    lib.add_book(make_form(title="Dune", author="Frank Herbert"))

    assert sorted(titles(lib.list_books(q="tolkien"))) == ["The Hobbit", "Tolkien: A Biography"]
    assert titles(lib.list_books(q="  HERBERT ")) == ["Dune"]
    assert lib.list_books(q="asimov") == []


def test_search_folds_non_ascii_case(lib):
    lib.add_book(make_form(title="Émile", author="Jean-Jacques Rousseau"))
    lib.add_book(make_form(title="Der Prozess", author="Franz KAFKA"))
    lib.add_book(make_form(title="Straße", author="Someone"))

    assert titles(lib.list_books(q="émile")) == ["Émile"]
    assert titles(lib.list_books(q="ÉMILE")) == ["Émile"]
    assert titles(lib.list_books(q="kafka")) == ["Der Prozess"]
    assert titles(lib.list_books(q="STRASSE")) == ["Straße"]


def test_search_treats_wildcards_literally(lib):
    lib.add_book(make_form(title="100% Wolf", author="Jayne Lyons"))
    lib.add_book(make_form(title="1000 Years", author="Someone"))
    assert titles(lib.list_books(q="100%")) == ["100% Wolf"]
    assert lib.list_books(q="_") == []


def test_sort_recent_puts_undated_last(lib):
    lib.add_book(make_form(title="Older", date_read="2024-01-01"))
    lib.add_book(make_form(title="Undated A"))
    lib.add_book(make_form(title="Newer", date_read="2024-05-01"))
    lib.add_book(make_form(title="Undated B"))

    assert titles(lib.list_books()) == ["Newer", "Older", "Undated B", "Undated A"]
    assert titles(lib.list_books(sort="recent")) == titles(lib.list_books(sort="bogus"))


def test_sort_by_rating(lib):
    lib.add_book(make_form(title="Unrated"))
    lib.add_book(make_form(title="Two", rating="2"))
    lib.add_book(make_form(title="Five", rating="5"))

    assert titles(lib.list_books(sort="rating_desc")) == ["Five", "Two", "Unrated"]
    assert titles(lib.list_books(sort="rating_asc")) == ["Two", "Five", "Unrated"]


def test_sort_by_rating_ties_use_read_date(lib):
    lib.add_book(make_form(title="Earlier", rating="4", date_read="2023-01-01"))
    lib.add_book(make_form(title="No date", rating="4"))
    lib.add_book(make_form(title="Later", rating="4", date_read="2024-01-01"))

    assert titles(lib.list_books(sort="rating_desc")) == ["Later", "Earlier", "No date"]


def test_sort_by_title(lib):
    for title in ["dune", "Anathem", "Children of Time"]:
        lib.add_book(make_form(title=title))
    assert titles(lib.list_books(sort="title")) == ["Anathem", "Children of Time", "dune"]


def test_list_attaches_cover_urls(lib):
    lib.add_book(make_form(isbn="0441172717"))
    lib.add_book(make_form(title="No ISBN"))
    urls = {b.title: b.cover_url for b in lib.list_books()}
    assert urls == {"Dune": "/api/covers/isbn/0441172717", "No ISBN": "/static/no-cover.svg"}


class FailingDatabase(Database):
    """Reports a fixed outcome for every write."""

    def __init__(self, db_file, outcome):
        super().__init__(db_file)
        self.outcome = outcome

    def execute(self, sql, params=()):
        return self.outcome


def test_write_failure_becomes_persistence_error(db):
    lib = Library(FailingDatabase(db.db_file, WriteFailure(error=RuntimeError("disk full"))))
    with pytest.raises(PersistenceError, match="Failed to create the book."):
        lib.add_book(make_form())
    with pytest.raises(PersistenceError, match="Failed to update the book."):
        lib.update_book(1, make_form())


def test_other_constraint_violations_are_not_duplicates(db):
    lib = Library(FailingDatabase(db.db_file, ConstraintViolation(kind=ConstraintKind.CHECK)))
    with pytest.raises(PersistenceError):
        lib.add_book(make_form())
