"""
Store queries and mutations.

Every function takes an open SQLAlchemy session as its first argument so
it can be run through Store.run() / Store.gather(). Functions never commit;
Store.call() commits once the function returns.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from locallibrary import models, schemas


def count(db: Session, model) -> int:
    return db.query(model).count()


def count_available_instances(db: Session) -> int:
    return (
        db.query(models.BookInstance)
        .filter(models.BookInstance.status == "Available")
        .count()
    )


def delete_by_id(db: Session, model, record_id: str) -> bool:
    record = db.get(model, record_id)
    if record is None:
        return False
    db.delete(record)
    return True


# Genres


def list_genres(db: Session) -> List[models.Genre]:
    return db.query(models.Genre).order_by(models.Genre.name).all()


def get_genre(db: Session, genre_id: str) -> Optional[models.Genre]:
    return db.get(models.Genre, genre_id)


def books_in_genre(db: Session, genre_id: str) -> List[models.Book]:
    return (
        db.query(models.Book)
        .filter(models.Book.genre.any(models.Genre.id == genre_id))
        .order_by(models.Book.title)
        .all()
    )


def find_genre_by_name(db: Session, name: str) -> Optional[models.Genre]:
    """Case-insensitive lookup on the genre name, Unicode included."""
    return (
        db.query(models.Genre)
        .filter(models.Genre.name_key == models.natural_key(name))
        .first()
    )


def create_genre(db: Session, data: schemas.GenreCreate) -> models.Genre:
    genre = models.Genre(**data.model_dump())
    db.add(genre)
    db.flush()
    return genre


def update_genre(db: Session, genre_id: str, data: schemas.GenreCreate) -> Optional[models.Genre]:
    genre = db.get(models.Genre, genre_id)
    if genre is None:
        return None
    genre.name = data.name
    db.flush()
    return genre


def merge_genre(db: Session, source_id: str, target_id: str) -> int:
    """
    Fold one genre into another.

    Every book tagged with the source genre is retagged with the target
    (once, even if it already carried both) and the source genre is
    deleted. Runs inside a single session so it commits as one unit.

    Returns:
        Number of books that were retagged
    """
    source = db.get(models.Genre, source_id)
    target = db.get(models.Genre, target_id)
    books = books_in_genre(db, source_id)
    for book in books:
        book.genre = [g for g in book.genre if g.id != source_id]
        if target not in book.genre:
            book.genre.append(target)
    db.flush()
    db.delete(source)
    db.flush()
    return len(books)


# Authors


def list_authors(db: Session) -> List[models.Author]:
    return (
        db.query(models.Author)
        .order_by(models.Author.family_name, models.Author.first_name)
        .all()
    )


def get_author(db: Session, author_id: str) -> Optional[models.Author]:
    return db.get(models.Author, author_id)


def books_by_author(db: Session, author_id: str) -> List[models.Book]:
    return (
        db.query(models.Book)
        .filter(models.Book.author_id == author_id)
        .order_by(models.Book.title)
        .all()
    )


def find_author_by_name(db: Session, first_name: str, family_name: str) -> Optional[models.Author]:
    return (
        db.query(models.Author)
        .filter(
            models.Author.first_name_key == models.natural_key(first_name),
            models.Author.family_name_key == models.natural_key(family_name),
        )
        .first()
    )


def create_author(db: Session, data: schemas.AuthorCreate) -> models.Author:
    author = models.Author(**data.model_dump())
    db.add(author)
    db.flush()
    return author


def update_author(db: Session, author_id: str, data: schemas.AuthorCreate) -> Optional[models.Author]:
    author = db.get(models.Author, author_id)
    if author is None:
        return None
    for key, value in data.model_dump().items():
        setattr(author, key, value)
    db.flush()
    return author


def merge_author(db: Session, source_id: str, target_id: str) -> int:
    """Point every book by the source author at the target and delete the source."""
    moved = (
        db.query(models.Book)
        .filter(models.Book.author_id == source_id)
        .update({models.Book.author_id: target_id}, synchronize_session=False)
    )
    delete_by_id(db, models.Author, source_id)
    db.flush()
    return moved


# Books


def list_books(db: Session) -> List[models.Book]:
    return db.query(models.Book).order_by(models.Book.title).all()


def get_book(db: Session, book_id: str) -> Optional[models.Book]:
    return db.get(models.Book, book_id)


def instances_of_book(db: Session, book_id: str) -> List[models.BookInstance]:
    return (
        db.query(models.BookInstance)
        .filter(models.BookInstance.book_id == book_id)
        .order_by(models.BookInstance.imprint)
        .all()
    )


def find_book_by_isbn(db: Session, isbn: str) -> Optional[models.Book]:
    return (
        db.query(models.Book)
        .filter(models.Book.isbn_key == models.natural_key(isbn))
        .first()
    )


def _genres_for(db: Session, genre_ids: List[str]) -> List[models.Genre]:
    if not genre_ids:
        return []
    return db.query(models.Genre).filter(models.Genre.id.in_(genre_ids)).all()


def create_book(db: Session, data: schemas.BookCreate) -> models.Book:
    book = models.Book(
        title=data.title,
        author_id=data.author,
        summary=data.summary,
        isbn=data.isbn,
        genre=_genres_for(db, data.genre),
    )
    db.add(book)
    db.flush()
    return book


def update_book(db: Session, book_id: str, data: schemas.BookCreate) -> Optional[models.Book]:
    book = db.get(models.Book, book_id)
    if book is None:
        return None
    book.title = data.title
    book.author_id = data.author
    book.summary = data.summary
    book.isbn = data.isbn
    book.genre = _genres_for(db, data.genre)
    db.flush()
    return book


def merge_book(db: Session, source_id: str, target_id: str) -> int:
    """Point every copy of the source book at the target and delete the source."""
    moved = (
        db.query(models.BookInstance)
        .filter(models.BookInstance.book_id == source_id)
        .update({models.BookInstance.book_id: target_id}, synchronize_session=False)
    )
    db.delete(db.get(models.Book, source_id))
    db.flush()
    return moved


# Book instances


def list_book_instances(db: Session) -> List[models.BookInstance]:
    return (
        db.query(models.BookInstance)
        .join(models.Book)
        .order_by(models.Book.title, models.BookInstance.imprint)
        .all()
    )


def get_book_instance(db: Session, instance_id: str) -> Optional[models.BookInstance]:
    return db.get(models.BookInstance, instance_id)


def _instance_fields(data: schemas.BookInstanceCreate) -> dict:
    return {
        "book_id": data.book,
        "imprint": data.imprint,
        "status": data.status.value,
        "due_back": data.due_back or date.today(),
    }


def create_book_instance(db: Session, data: schemas.BookInstanceCreate) -> models.BookInstance:
    instance = models.BookInstance(**_instance_fields(data))
    db.add(instance)
    db.flush()
    return instance


def update_book_instance(
    db: Session, instance_id: str, data: schemas.BookInstanceCreate
) -> Optional[models.BookInstance]:
    instance = db.get(models.BookInstance, instance_id)
    if instance is None:
        return None
    for key, value in _instance_fields(data).items():
        setattr(instance, key, value)
    db.flush()
    return instance
