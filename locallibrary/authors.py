import logging

from fastapi import APIRouter, Depends, Request

from locallibrary import crud, schemas
from locallibrary.database import Store, get_store
from locallibrary.models import Author
from locallibrary.rendering import render, redirect, valid_id, not_found
from locallibrary.validation import Rule, validate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["authors"])

AUTHOR_RULES = [
    Rule("first_name")
    .trim()
    .length(min=1, message="First name must be specified.")
    .length(max=100, message="First name must not exceed 100 characters.")
    .alphanumeric("First name has non-alphanumeric characters.")
    .escape(),
    Rule("family_name")
    .trim()
    .length(min=1, message="Family name must be specified.")
    .length(max=100, message="Family name must not exceed 100 characters.")
    .alphanumeric("Family name has non-alphanumeric characters.")
    .escape(),
    Rule("date_of_birth", "Invalid date of birth").optional().iso_date(),
    Rule("date_of_death", "Invalid date of death").optional().iso_date(),
]


def _author_from(values, author_id=None) -> Author:
    """Unsaved Author carrying the sanitized form values, for re-rendering."""
    return Author(
        id=author_id,
        first_name=values["first_name"],
        family_name=values["family_name"],
        date_of_birth=values["date_of_birth"],
        date_of_death=values["date_of_death"],
    )


@router.get("/authors")
async def author_list(request: Request, store: Store = Depends(get_store)):
    """List all authors, sorted by family name."""
    authors = await store.run(crud.list_authors)
    return render(
        request, "author_list.html", title="Author List", author_list=authors
    )


@router.get("/author/create")
async def author_create_get(request: Request):
    return render(request, "author_form.html", title="Create Author")


@router.post("/author/create")
async def author_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Create an author from the submitted form.

    An author whose first and family names both match an existing author
    (ignoring case) is not created twice; the response redirects to the
    existing record instead.
    """
    submission = validate(await request.form(), AUTHOR_RULES, schemas.AuthorCreate)

    if not submission.is_valid:
        return render(
            request,
            "author_form.html",
            title="Create Author",
            author=_author_from(submission.values),
            errors=submission.errors,
        )

    data = submission.data
    existing = await store.run(
        crud.find_author_by_name, data.first_name, data.family_name
    )
    if existing:
        return redirect(existing.url)

    author = await store.run(crud.create_author, data)
    logger.info("Created author %s (%s)", author.id, author.name)
    return redirect(author.url)


@router.get("/author/{id}")
async def author_detail(
    request: Request,
    author_id: str = Depends(valid_id("Author")),
    store: Store = Depends(get_store),
):
    """
    Show an author and all of their books.

    The author and the book list are fetched concurrently.

    Raises:
        HTTPException: 400 if the id is malformed, 404 if the author is missing
    """
    author, author_books = await store.gather(
        (crud.get_author, author_id),
        (crud.books_by_author, author_id),
    )
    if author is None:
        raise not_found("Author")

    return render(
        request,
        "author_detail.html",
        title="Author Detail",
        author=author,
        author_books=author_books,
    )


@router.get("/author/{id}/delete")
async def author_delete_get(
    request: Request,
    author_id: str = Depends(valid_id("Author")),
    store: Store = Depends(get_store),
):
    author, author_books = await store.gather(
        (crud.get_author, author_id),
        (crud.books_by_author, author_id),
    )
    if author is None:
        raise not_found("Author")

    return render(
        request,
        "author_delete.html",
        title="Delete Author",
        author=author,
        author_books=author_books,
    )


@router.post("/author/{id}/delete")
async def author_delete_post(
    request: Request,
    author_id: str = Depends(valid_id("Author")),
    store: Store = Depends(get_store),
):
    """Delete an author with no books; otherwise show what blocks it."""
    author, author_books = await store.gather(
        (crud.get_author, author_id),
        (crud.books_by_author, author_id),
    )
    if author is None:
        raise not_found("Author")

    if author_books:
        logger.info(
            "Refused to delete author %s: %d book(s) remain",
            author_id,
            len(author_books),
        )
        return render(
            request,
            "author_delete.html",
            title="Delete Author",
            author=author,
            author_books=author_books,
        )

    await store.run(crud.delete_by_id, Author, author_id)
    logger.info("Deleted author %s", author_id)
    return redirect("/catalog/authors")


@router.get("/author/{id}/update")
async def author_update_get(
    request: Request,
    author_id: str = Depends(valid_id("Author")),
    store: Store = Depends(get_store),
):
    author = await store.run(crud.get_author, author_id)
    if author is None:
        raise not_found("Author")

    return render(request, "author_form.html", title="Update Author", author=author)


@router.post("/author/{id}/update")
async def author_update_post(
    request: Request,
    author_id: str = Depends(valid_id("Author")),
    store: Store = Depends(get_store),
):
    """
    Update an author in place, or merge into a same-named author.

    Business Logic:
    - If a different author already has the submitted names (ignoring
      case), this author's books move to that author and this record is
      deleted
    - Otherwise every field is overwritten with the submitted values
    """
    submission = validate(await request.form(), AUTHOR_RULES, schemas.AuthorCreate)

    if not submission.is_valid:
        return render(
            request,
            "author_form.html",
            title="Update Author",
            author=_author_from(submission.values, author_id),
            errors=submission.errors,
        )

    data = submission.data
    current, existing = await store.gather(
        (crud.get_author, author_id),
        (crud.find_author_by_name, data.first_name, data.family_name),
    )
    if current is None:
        raise not_found("Author")

    if existing and existing.id != author_id:
        moved = await store.run(crud.merge_author, author_id, existing.id)
        logger.info(
            "Merged author %s into %s (%d book(s) moved)", author_id, existing.id, moved
        )
        return redirect(existing.url)

    author = await store.run(crud.update_author, author_id, data)
    if author is None:
        raise not_found("Author")
    logger.info("Updated author %s", author_id)
    return redirect(author.url)
