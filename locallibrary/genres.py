import logging

from fastapi import APIRouter, Depends, Request

from locallibrary import crud, schemas
from locallibrary.database import Store, get_store
from locallibrary.models import Genre
from locallibrary.rendering import render, redirect, valid_id, not_found
from locallibrary.validation import Rule, validate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["genres"])

GENRE_RULES = [
    Rule("name", "Genre name must contain at least 3 characters")
    .trim()
    .length(min=3)
    .length(max=100, message="Genre name must not exceed 100 characters")
    .escape(),
]


@router.get("/genres")
async def genre_list(request: Request, store: Store = Depends(get_store)):
    """List all genres, sorted by name."""
    genres = await store.run(crud.list_genres)
    return render(request, "genre_list.html", title="Genre List", genre_list=genres)


@router.get("/genre/create")
async def genre_create_get(request: Request):
    return render(request, "genre_form.html", title="Create Genre")


@router.post("/genre/create")
async def genre_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Create a genre from the submitted form.

    Internal Working:
    1. The name is trimmed, length-checked and escaped
    2. On errors, the form is rendered again with the sanitized name
    3. A genre whose name matches ignoring case is reused: redirect to it
    4. Otherwise the new genre is saved and we redirect to its page
    """
    submission = validate(await request.form(), GENRE_RULES, schemas.GenreCreate)
    genre = Genre(name=submission.values["name"])

    if not submission.is_valid:
        return render(
            request,
            "genre_form.html",
            title="Create Genre",
            genre=genre,
            errors=submission.errors,
        )

    existing = await store.run(crud.find_genre_by_name, submission.data.name)
    if existing:
        return redirect(existing.url)

    genre = await store.run(crud.create_genre, submission.data)
    logger.info("Created genre %s (%s)", genre.id, genre.name)
    return redirect(genre.url)


@router.get("/genre/{id}")
async def genre_detail(
    request: Request,
    genre_id: str = Depends(valid_id("Genre")),
    store: Store = Depends(get_store),
):
    """
    Show a genre and the books filed under it.

    Raises:
        HTTPException: 400 if the id is malformed, 404 if the genre is missing
    """
    genre, genre_books = await store.gather(
        (crud.get_genre, genre_id),
        (crud.books_in_genre, genre_id),
    )
    if genre is None:
        raise not_found("Genre")

    return render(
        request,
        "genre_detail.html",
        title="Genre Details",
        genre=genre,
        genre_books=genre_books,
    )


@router.get("/genre/{id}/delete")
async def genre_delete_get(
    request: Request,
    genre_id: str = Depends(valid_id("Genre")),
    store: Store = Depends(get_store),
):
    genre, genre_books = await store.gather(
        (crud.get_genre, genre_id),
        (crud.books_in_genre, genre_id),
    )
    if genre is None:
        raise not_found("Genre")

    return render(
        request,
        "genre_delete.html",
        title="Delete Genre",
        genre=genre,
        genre_books=genre_books,
    )


@router.post("/genre/{id}/delete")
async def genre_delete_post(
    request: Request,
    genre_id: str = Depends(valid_id("Genre")),
    store: Store = Depends(get_store),
):
    """
    Delete a genre that no book uses.

    A genre with books is left alone and the confirmation page is shown
    again, listing the books that block the deletion.
    """
    genre, genre_books = await store.gather(
        (crud.get_genre, genre_id),
        (crud.books_in_genre, genre_id),
    )
    if genre is None:
        raise not_found("Genre")

    if genre_books:
        logger.info(
            "Refused to delete genre %s: %d book(s) still use it",
            genre_id,
            len(genre_books),
        )
        return render(
            request,
            "genre_delete.html",
            title="Delete Genre",
            genre=genre,
            genre_books=genre_books,
        )

    await store.run(crud.delete_by_id, Genre, genre_id)
    logger.info("Deleted genre %s", genre_id)
    return redirect("/catalog/genres")


@router.get("/genre/{id}/update")
async def genre_update_get(
    request: Request,
    genre_id: str = Depends(valid_id("Genre")),
    store: Store = Depends(get_store),
):
    genre = await store.run(crud.get_genre, genre_id)
    if genre is None:
        raise not_found("Genre")

    return render(request, "genre_form.html", title="Update Genre", genre=genre)


@router.post("/genre/{id}/update")
async def genre_update_post(
    request: Request,
    genre_id: str = Depends(valid_id("Genre")),
    store: Store = Depends(get_store),
):
    """
    Rename a genre, merging it into another genre on a name collision.

    Business Logic:
    - Validation is the same chain as for create
    - If another genre already has the new name (ignoring case), every book
      in this genre moves to that genre and this genre is deleted. This
      keeps "Fantasy" and "fantasy" from living side by side.
    - Otherwise the genre is renamed in place

    Returns:
        Redirect to the surviving genre's page
    """
    submission = validate(await request.form(), GENRE_RULES, schemas.GenreCreate)

    if not submission.is_valid:
        genre = Genre(id=genre_id, name=submission.values["name"])
        return render(
            request,
            "genre_form.html",
            title="Update Genre",
            genre=genre,
            errors=submission.errors,
        )

    current, existing = await store.gather(
        (crud.get_genre, genre_id),
        (crud.find_genre_by_name, submission.data.name),
    )
    if current is None:
        raise not_found("Genre")

    if existing and existing.id != genre_id:
        moved = await store.run(crud.merge_genre, genre_id, existing.id)
        logger.info(
            "Merged genre %s into %s (%d book(s) moved)", genre_id, existing.id, moved
        )
        return redirect(existing.url)

    genre = await store.run(crud.update_genre, genre_id, submission.data)
    if genre is None:
        raise not_found("Genre")
    logger.info("Updated genre %s", genre_id)
    return redirect(genre.url)
