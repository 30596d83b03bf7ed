from locallibrary import crud, schemas
from locallibrary.config import Config
from locallibrary.endpoints import create_app

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def app(tmp_path):
    """
    Fixture building an application against a fresh SQLite database.

    Internal Working:
    1. A Config subclass points DATABASE_URL at tmp_path
    2. create_app() builds the store and creates every table
    3. After the test, the tables are dropped and connections closed

    Each test starts with an empty catalog.
    """

    class TestConfig(Config):
        DATABASE_URL = f"sqlite:///{tmp_path / 'test.db'}"
        APP_ENV = "production"

    application = create_app(TestConfig)
    yield application
    application.state.store.drop_all()
    application.state.store.dispose()


@pytest.fixture
def store(app):
    return app.state.store


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_genre(store):
    def _make(name="Fantasy"):
        return store.call(crud.create_genre, schemas.GenreCreate(name=name))

    return _make


@pytest.fixture
def make_author(store):
    def _make(first_name="Patrick", family_name="Rothfuss", **dates):
        data = schemas.AuthorCreate(
            first_name=first_name, family_name=family_name, **dates
        )
        return store.call(crud.create_author, data)

    return _make


@pytest.fixture
def make_book(store, make_author):
    def _make(title="The Name of the Wind", isbn="9780756404741", author=None, genres=()):
        author = author or make_author()
        data = schemas.BookCreate(
            title=title,
            author=author.id,
            summary=f"Summary of {title}",
            isbn=isbn,
            genre=[genre.id for genre in genres],
        )
        return store.call(crud.create_book, data)

    return _make


@pytest.fixture
def make_instance(store):
    def _make(book, imprint="Gollancz, 2011", status="Available", due_back=None):
        data = schemas.BookInstanceCreate(
            book=book.id, imprint=imprint, status=status, due_back=due_back
        )
        return store.call(crud.create_book_instance, data)

    return _make
