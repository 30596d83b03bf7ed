from datetime import date

from locallibrary.models import Author, BookInstance, Genre, Book, natural_key


def test_author_name_is_family_then_first():
    author = Author(first_name="Isaac", family_name="Asimov")
    assert author.name == "Asimov, Isaac"


def test_author_name_empty_when_a_part_is_missing():
    assert Author(first_name="Isaac", family_name="").name == ""
    assert Author(first_name=None, family_name="Asimov").name == ""


def test_author_dates_formatted():
    author = Author(
        first_name="Isaac",
        family_name="Asimov",
        date_of_birth=date(1920, 1, 2),
        date_of_death=date(1992, 4, 6),
    )
    assert author.date_of_birth_formatted == "1/2/1920"
    assert author.date_of_death_formatted == "4/6/1992"
    assert author.date_of_birth_yyyy_mm_dd == "1920-01-02"
    assert author.lifespan == "72 years"


def test_author_missing_dates():
    """
    Test derived date fields when dates are unknown.

    Verifies:
    - Formatted dates fall back to "?"
    - Form values are empty
    - Lifespan needs both dates
    """
    author = Author(first_name="Ben", family_name="Bova", date_of_birth=date(1932, 11, 8))
    assert author.date_of_death_formatted == "?"
    assert author.date_of_death_yyyy_mm_dd == ""
    assert author.lifespan == "Lifespan data not available"


def test_urls_use_record_id():
    assert Author(id="a" * 32).url == f"/catalog/author/{'a' * 32}"
    assert Genre(id="b" * 32).url == f"/catalog/genre/{'b' * 32}"
    assert Book(id="c" * 32).url == f"/catalog/book/{'c' * 32}"
    assert BookInstance(id="d" * 32).url == f"/catalog/bookinstance/{'d' * 32}"


def test_book_instance_due_back_formats():
    instance = BookInstance(due_back=date(2026, 10, 8))
    assert instance.due_back_formatted == "Oct 8, 2026"
    assert instance.due_back_yyyy_mm_dd == "2026-10-08"


def test_natural_key_folds_unicode_case():
    assert natural_key("Éclairs") == natural_key("éclairs")
    assert natural_key("STRASSE") == natural_key("straße")
    assert natural_key(None) is None


def test_natural_key_columns_follow_their_fields():
    """
    Test that the lookup keys are kept in step with the stored values.

    Verifies:
    - Keys are set on construction
    - Assigning a new value updates the key
    """
    genre = Genre(name="Éclairs")
    assert genre.name_key == "éclairs"
    genre.name = "Tartes"
    assert genre.name_key == "tartes"

    author = Author(first_name="Isaac", family_name="Asimov")
    assert (author.first_name_key, author.family_name_key) == ("isaac", "asimov")

    assert Book(isbn="978X").isbn_key == "978x"
