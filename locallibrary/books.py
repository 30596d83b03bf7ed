import logging

from fastapi import APIRouter, Depends, Request

from locallibrary import crud, schemas
from locallibrary.database import Store, get_store
from locallibrary.models import Book
from locallibrary.rendering import render, redirect, valid_id, not_found
from locallibrary.validation import Rule, validate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["books"])

BOOK_RULES = [
    Rule("title").trim().length(min=1, message="Title must not be empty.").escape(),
    Rule("author")
    .trim()
    .length(min=1, message="Author must not be empty.")
    .identifier("Author must be chosen from the list.")
    .escape(),
    Rule("summary").trim().length(min=1, message="Summary must not be empty.").escape(),
    Rule("isbn").trim().length(min=1, message="ISBN must not be empty").escape(),
    Rule("genre", "Invalid genre", many=True).identifier().escape(),
]


def _book_from(values, book_id=None) -> Book:
    """Unsaved Book carrying the sanitized form values, for re-rendering."""
    return Book(
        id=book_id,
        title=values["title"],
        author_id=values["author"],
        summary=values["summary"],
        isbn=values["isbn"],
    )


async def _render_form(request, store, title, book=None, selected_genres=(), errors=None):
    """Render the book form with the author and genre choices loaded."""
    authors, genres = await store.gather((crud.list_authors,), (crud.list_genres,))
    return render(
        request,
        "book_form.html",
        title=title,
        book=book,
        authors=authors,
        genres=genres,
        selected_genres=set(selected_genres),
        errors=errors,
    )


@router.get("/books")
async def book_list(request: Request, store: Store = Depends(get_store)):
    """List all books with their authors, sorted by title."""
    books = await store.run(crud.list_books)
    return render(request, "book_list.html", title="Book List", book_list=books)


@router.get("/book/create")
async def book_create_get(request: Request, store: Store = Depends(get_store)):
    return await _render_form(request, store, "Create Book")


@router.post("/book/create")
async def book_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Create a book from the submitted form.

    Internal Working:
    1. Every field is trimmed and escaped; genre may repeat (checkboxes)
    2. On errors the form is rendered again, with the chosen author and
       genres still selected
    3. A book with the same ISBN (ignoring case) is reused: redirect to it
    4. Otherwise the book is saved and we redirect to its page
    """
    submission = validate(await request.form(), BOOK_RULES, schemas.BookCreate)

    if not submission.is_valid:
        return await _render_form(
            request,
            store,
            "Create Book",
            book=_book_from(submission.values),
            selected_genres=submission.values["genre"],
            errors=submission.errors,
        )

    existing = await store.run(crud.find_book_by_isbn, submission.data.isbn)
    if existing:
        return redirect(existing.url)

    book = await store.run(crud.create_book, submission.data)
    logger.info("Created book %s (%s)", book.id, book.title)
    return redirect(book.url)


@router.get("/book/{id}")
async def book_detail(
    request: Request,
    book_id: str = Depends(valid_id("Book")),
    store: Store = Depends(get_store),
):
    """
    Show a book with its author, genres and copies.

    Raises:
        HTTPException: 400 if the id is malformed, 404 if the book is missing
    """
    book, book_instances = await store.gather(
        (crud.get_book, book_id),
        (crud.instances_of_book, book_id),
    )
    if book is None:
        raise not_found("Book")

    return render(
        request,
        "book_detail.html",
        title="Book Detail",
        book=book,
        book_instances=book_instances,
    )


@router.get("/book/{id}/delete")
async def book_delete_get(
    request: Request,
    book_id: str = Depends(valid_id("Book")),
    store: Store = Depends(get_store),
):
    book, book_instances = await store.gather(
        (crud.get_book, book_id),
        (crud.instances_of_book, book_id),
    )
    if book is None:
        raise not_found("Book")

    return render(
        request,
        "book_delete.html",
        title="Delete Book",
        book=book,
        book_instances=book_instances,
    )


@router.post("/book/{id}/delete")
async def book_delete_post(
    request: Request,
    book_id: str = Depends(valid_id("Book")),
    store: Store = Depends(get_store),
):
    """Delete a book with no copies; otherwise list the copies blocking it."""
    book, book_instances = await store.gather(
        (crud.get_book, book_id),
        (crud.instances_of_book, book_id),
    )
    if book is None:
        raise not_found("Book")

    if book_instances:
        logger.info(
            "Refused to delete book %s: %d copy(ies) remain",
            book_id,
            len(book_instances),
        )
        return render(
            request,
            "book_delete.html",
            title="Delete Book",
            book=book,
            book_instances=book_instances,
        )

    await store.run(crud.delete_by_id, Book, book_id)
    logger.info("Deleted book %s", book_id)
    return redirect("/catalog/books")


@router.get("/book/{id}/update")
async def book_update_get(
    request: Request,
    book_id: str = Depends(valid_id("Book")),
    store: Store = Depends(get_store),
):
    book = await store.run(crud.get_book, book_id)
    if book is None:
        raise not_found("Book")

    return await _render_form(
        request,
        store,
        "Update Book",
        book=book,
        selected_genres=[genre.id for genre in book.genre],
    )


@router.post("/book/{id}/update")
async def book_update_post(
    request: Request,
    book_id: str = Depends(valid_id("Book")),
    store: Store = Depends(get_store),
):
    """
    Update a book in place, or merge it into the book with the same ISBN.

    Business Logic:
    - If a different book already carries the submitted ISBN (ignoring
      case), this book's copies move to that book and this book is deleted
    - Otherwise every field, genres included, is replaced
    """
    submission = validate(await request.form(), BOOK_RULES, schemas.BookCreate)

    if not submission.is_valid:
        return await _render_form(
            request,
            store,
            "Update Book",
            book=_book_from(submission.values, book_id),
            selected_genres=submission.values["genre"],
            errors=submission.errors,
        )

    current, existing = await store.gather(
        (crud.get_book, book_id),
        (crud.find_book_by_isbn, submission.data.isbn),
    )
    if current is None:
        raise not_found("Book")

    if existing and existing.id != book_id:
        moved = await store.run(crud.merge_book, book_id, existing.id)
        logger.info(
            "Merged book %s into %s (%d copy(ies) moved)", book_id, existing.id, moved
        )
        return redirect(existing.url)

    book = await store.run(crud.update_book, book_id, submission.data)
    if book is None:
        raise not_found("Book")
    logger.info("Updated book %s", book_id)
    return redirect(book.url)
