import unicodedata
import uuid
from datetime import date
from locallibrary.database import Base
from locallibrary.schemas import BookInstanceStatus
from sqlalchemy.orm import relationship, validates
from sqlalchemy import Column, String, Text, Date, ForeignKey, Table


BOOK_INSTANCE_STATUSES = tuple(status.value for status in BookInstanceStatus)

# Names are limited to 100 characters before escaping; escaping can grow
# each character to five ("&amp;", "&#34;").
ESCAPED_NAME_LENGTH = 500


def new_id() -> str:
    """Generate a record identifier: 32 lowercase hex characters."""
    return uuid.uuid4().hex


def natural_key(value):
    """
    Comparison form of a natural key: Unicode-normalized and case-folded,
    so "Éclairs" and "éclairs" compare equal.
    """
    if value is None:
        return None
    return unicodedata.normalize("NFC", value).casefold()


def short_date(value):
    return f"{value.month}/{value.day}/{value.year}"


def medium_date(value):
    return f"{value:%b} {value.day}, {value.year}"


book_genres = Table(
    "book_genres",
    Base.metadata,
    Column("book_id", String(32), ForeignKey("books.id"), primary_key=True),
    Column("genre_id", String(32), ForeignKey("genres.id"), primary_key=True),
)


class Author(Base):
    """
    Author model representing book authors.

    Relationships:
    - One author can have many books (one-to-many)

    Derived attributes (computed on read, never stored):
    - name: "family_name, first_name", or "" if either part is missing
    - date_of_birth_formatted / date_of_death_formatted: M/D/YYYY or "?"
    - lifespan: whole years between the two dates when both are known
    - url: canonical catalog path for this author

    Books are not cascaded; an author with books cannot be deleted.
    """

    __tablename__ = "authors"

    id = Column(String(32), primary_key=True, default=new_id)
    first_name = Column(String(ESCAPED_NAME_LENGTH), nullable=False)
    family_name = Column(String(ESCAPED_NAME_LENGTH), nullable=False, index=True)
    first_name_key = Column(String(ESCAPED_NAME_LENGTH), index=True)
    family_name_key = Column(String(ESCAPED_NAME_LENGTH), index=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_death = Column(Date, nullable=True)

    books = relationship("Book", back_populates="author")

    @validates("first_name", "family_name")
    def _track_name_key(self, key, value):
        setattr(self, f"{key}_key", natural_key(value))
        return value

    @property
    def name(self) -> str:
        if self.first_name and self.family_name:
            return f"{self.family_name}, {self.first_name}"
        return ""

    @property
    def date_of_birth_formatted(self) -> str:
        return short_date(self.date_of_birth) if self.date_of_birth else "?"

    @property
    def date_of_death_formatted(self) -> str:
        return short_date(self.date_of_death) if self.date_of_death else "?"

    @property
    def date_of_birth_yyyy_mm_dd(self) -> str:
        return self.date_of_birth.isoformat() if self.date_of_birth else ""

    @property
    def date_of_death_yyyy_mm_dd(self) -> str:
        return self.date_of_death.isoformat() if self.date_of_death else ""

    @property
    def lifespan(self) -> str:
        if self.date_of_birth and self.date_of_death:
            return f"{self.date_of_death.year - self.date_of_birth.year} years"
        return "Lifespan data not available"

    @property
    def url(self) -> str:
        return f"/catalog/author/{self.id}"


class Genre(Base):
    """
    Genre model. Names are unique under case-insensitive comparison; the
    controllers enforce this by redirecting or merging, not the table.
    name_key keeps the case-folded name for those lookups.
    """

    __tablename__ = "genres"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(ESCAPED_NAME_LENGTH), nullable=False)
    name_key = Column(String(ESCAPED_NAME_LENGTH), index=True)

    books = relationship("Book", secondary=book_genres, back_populates="genre")

    @validates("name")
    def _track_name_key(self, key, value):
        self.name_key = natural_key(value)
        return value

    @property
    def url(self) -> str:
        return f"/catalog/genre/{self.id}"


class Book(Base):
    """
    Book model representing library books.

    Relationships:
    - Many books belong to one author (many-to-one)
    - Many books belong to many genres (book_genres association table)
    - One book can have many copies (BookInstance, one-to-many)

    Internal Working:
    - author and genre use lazy="selectin" so they are loaded with the
      book; pages render after the session that loaded them has closed
    """

    __tablename__ = "books"

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String, nullable=False, index=True)
    summary = Column(Text, nullable=False)
    isbn = Column(String, nullable=False)
    isbn_key = Column(String, index=True)
    author_id = Column(String(32), ForeignKey("authors.id"), nullable=False)

    author = relationship("Author", back_populates="books", lazy="selectin")
    genre = relationship(
        "Genre",
        secondary=book_genres,
        back_populates="books",
        lazy="selectin",
        order_by="Genre.name",
    )
    instances = relationship("BookInstance", back_populates="book")

    @validates("isbn")
    def _track_isbn_key(self, key, value):
        self.isbn_key = natural_key(value)
        return value

    @property
    def url(self) -> str:
        return f"/catalog/book/{self.id}"


class BookInstance(Base):
    """
    BookInstance model representing one physical copy of a book.

    Business Logic:
    - status is one of BOOK_INSTANCE_STATUSES, Maintenance by default
    - due_back defaults to the day the copy is recorded
    """

    __tablename__ = "book_instances"

    id = Column(String(32), primary_key=True, default=new_id)
    book_id = Column(String(32), ForeignKey("books.id"), nullable=False)
    imprint = Column(String, nullable=False)
    status = Column(String(20), nullable=False, default="Maintenance")
    due_back = Column(Date, nullable=False, default=date.today)

    book = relationship("Book", back_populates="instances", lazy="selectin")

    @property
    def url(self) -> str:
        return f"/catalog/bookinstance/{self.id}"

    @property
    def due_back_formatted(self) -> str:
        return medium_date(self.due_back) if self.due_back else ""

    @property
    def due_back_yyyy_mm_dd(self) -> str:
        return self.due_back.isoformat() if self.due_back else ""
