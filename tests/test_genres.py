from locallibrary import crud
from locallibrary.models import Genre

import pytest


MISSING_ID = "0" * 32


def test_genre_list_sorted_by_name(client, make_genre):
    make_genre("Science Fiction")
    make_genre("Fantasy")

    response = client.get("/catalog/genres")
    assert response.status_code == 200
    assert response.text.index("Fantasy") < response.text.index("Science Fiction")


def test_create_genre_get_renders_empty_form(client):
    response = client.get("/catalog/genre/create")
    assert response.status_code == 200
    assert "Create Genre" in response.text
    assert 'name="name"' in response.text


def test_create_genre_success(client, store):
    """
    Test successful genre creation.

    Verifies:
    - 303 redirect to the new genre's detail page
    - The stored name is the trimmed, escaped input
    - The detail page shows the genre
    """
    response = client.post(
        "/catalog/genre/create", data={"name": "  Sci & Fi  "}, follow_redirects=False
    )
    assert response.status_code == 303
    location = response.headers["location"]
    assert location.startswith("/catalog/genre/")

    genre_id = location.rsplit("/", 1)[1]
    genre = store.call(crud.get_genre, genre_id)
    assert genre.name == "Sci &amp; Fi"

    detail = client.get(location)
    assert detail.status_code == 200
    assert "Genre: Sci &amp; Fi" in detail.text


def test_create_genre_invalid_rerenders_form(client, store):
    response = client.post("/catalog/genre/create", data={"name": " ab "})
    assert response.status_code == 200
    assert "Genre name must contain at least 3 characters" in response.text
    assert 'value="ab"' in response.text
    assert store.call(crud.count, Genre) == 0


def test_create_genre_duplicate_redirects_to_existing(client, store, make_genre):
    existing = make_genre("Fantasy")

    response = client.post(
        "/catalog/genre/create", data={"name": "FANTASY"}, follow_redirects=False
    )
    assert response.status_code == 303
    assert response.headers["location"] == existing.url
    assert store.call(crud.count, Genre) == 1


def test_genre_detail_lists_books(client, make_genre, make_book):
    fantasy = make_genre("Fantasy")
    make_book(title="The Wise Man's Fear", isbn="9780756404734", genres=[fantasy])

    response = client.get(fantasy.url)
    assert response.status_code == 200
    assert "The Wise Man's Fear" in response.text


def test_genre_detail_not_found(client):
    response = client.get(f"/catalog/genre/{MISSING_ID}")
    assert response.status_code == 404
    assert "Genre not found" in response.text


def test_delete_genre_without_books(client, store, make_genre):
    genre = make_genre("Poetry")

    confirm = client.get(f"{genre.url}/delete")
    assert confirm.status_code == 200
    assert "Do you really want to delete this Genre?" in confirm.text

    response = client.post(f"{genre.url}/delete", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/catalog/genres"
    assert store.call(crud.get_genre, genre.id) is None
    assert client.get(genre.url).status_code == 404


def test_delete_genre_with_books_is_refused(client, store, make_genre, make_book):
    """
    Test that a genre still used by books is not deleted.

    Verifies:
    - The confirmation page is rendered again (200)
    - It lists the blocking book
    - The genre is still stored
    """
    genre = make_genre("Fantasy")
    make_book(title="Blocking Book", genres=[genre])

    response = client.post(f"{genre.url}/delete", follow_redirects=False)
    assert response.status_code == 200
    assert "Delete the following books" in response.text
    assert "Blocking Book" in response.text
    assert store.call(crud.get_genre, genre.id) is not None


def test_update_genre_get_prefills_form(client, make_genre):
    genre = make_genre("Horror")
    response = client.get(f"{genre.url}/update")
    assert response.status_code == 200
    assert "Update Genre" in response.text
    assert 'value="Horror"' in response.text


def test_update_genre_renames_in_place(client, store, make_genre):
    genre = make_genre("Horor")

    response = client.post(
        f"{genre.url}/update", data={"name": "Horror"}, follow_redirects=False
    )
    assert response.status_code == 303
    assert response.headers["location"] == genre.url
    assert store.call(crud.get_genre, genre.id).name == "Horror"


def test_update_genre_case_only_change_is_not_a_merge(client, store, make_genre):
    genre = make_genre("horror")

    response = client.post(
        f"{genre.url}/update", data={"name": "Horror"}, follow_redirects=False
    )
    assert response.headers["location"] == genre.url
    assert store.call(crud.get_genre, genre.id).name == "Horror"


def test_update_genre_invalid_leaves_store_unchanged(client, store, make_genre):
    genre = make_genre("Horror")

    response = client.post(f"{genre.url}/update", data={"name": "x"})
    assert response.status_code == 200
    assert "Genre name must contain at least 3 characters" in response.text
    assert 'value="x"' in response.text
    assert store.call(crud.get_genre, genre.id).name == "Horror"


def test_update_genre_merges_into_colliding_genre(client, store, make_genre, make_book):
    """
    Test the merge-on-rename policy.

    Internal Working:
    1. Genre A has two books, genre B has none
    2. A is renamed to B's name with different case
    3. Both books now belong to B, A is gone, B survives
    """
    genre_a = make_genre("Sci-Fi")
    genre_b = make_genre("Science Fiction")
    book_one = make_book(title="Dune", isbn="9780441013593", genres=[genre_a])
    book_two = make_book(title="Hyperion", isbn="9780553283686", genres=[genre_a])

    response = client.post(
        f"{genre_a.url}/update",
        data={"name": "science fiction"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == genre_b.url

    assert store.call(crud.get_genre, genre_a.id) is None
    assert store.call(crud.get_genre, genre_b.id).name == "Science Fiction"
    moved = store.call(crud.books_in_genre, genre_b.id)
    assert {book.id for book in moved} == {book_one.id, book_two.id}
    for book in moved:
        assert [genre.id for genre in book.genre] == [genre_b.id]


def test_merge_does_not_duplicate_genre_on_book(client, store, make_genre, make_book):
    genre_a = make_genre("Sci-Fi")
    genre_b = make_genre("Science Fiction")
    book = make_book(genres=[genre_a, genre_b])

    client.post(f"{genre_a.url}/update", data={"name": "Science Fiction"})

    stored = store.call(crud.get_book, book.id)
    assert [genre.id for genre in stored.genre] == [genre_b.id]


def test_create_genre_length_is_measured_before_escaping(client, store):
    """
    Test the 100 character limit against a name that grows when escaped.

    Verifies:
    - 98 characters including "&" are accepted and stored escaped (102 chars)
    - 101 characters are rejected with the length message
    """
    name = "A" * 97 + "&"

    response = client.post(
        "/catalog/genre/create", data={"name": name}, follow_redirects=False
    )
    assert response.status_code == 303
    genre_id = response.headers["location"].rsplit("/", 1)[1]
    assert store.call(crud.get_genre, genre_id).name == "A" * 97 + "&amp;"

    response = client.post("/catalog/genre/create", data={"name": "B" * 101})
    assert response.status_code == 200
    assert "Genre name must not exceed 100 characters" in response.text
    assert store.call(crud.count, Genre) == 1


def test_create_genre_duplicate_matches_non_ascii_case(client, store, make_genre):
    existing = make_genre("Éclairs")

    response = client.post(
        "/catalog/genre/create", data={"name": "éclairs"}, follow_redirects=False
    )
    assert response.status_code == 303
    assert response.headers["location"] == existing.url
    assert store.call(crud.count, Genre) == 1


def test_update_genre_merges_on_non_ascii_case(client, store, make_genre, make_book):
    source = make_genre("Arztromane")
    target = make_genre("ÄRZTEROMANE")
    book = make_book(genres=[source])

    response = client.post(
        f"{source.url}/update", data={"name": "ärzteromane"}, follow_redirects=False
    )
    assert response.headers["location"] == target.url
    assert store.call(crud.get_genre, source.id) is None
    stored = store.call(crud.get_book, book.id)
    assert [genre.id for genre in stored.genre] == [target.id]


def test_update_genre_not_found(client):
    response = client.post(f"/catalog/genre/{MISSING_ID}/update", data={"name": "Poetry"})
    assert response.status_code == 404


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/catalog/genre/not-an-id"),
        ("get", "/catalog/genre/not-an-id/delete"),
        ("post", "/catalog/genre/not-an-id/delete"),
        ("get", "/catalog/genre/not-an-id/update"),
        ("post", "/catalog/genre/not-an-id/update"),
    ],
)
def test_malformed_genre_id_is_400(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 400
    assert "Invalid Genre ID" in response.text
