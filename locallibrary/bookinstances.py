import logging

from fastapi import APIRouter, Depends, Request

from locallibrary import crud, schemas
from locallibrary.database import Store, get_store
from locallibrary.models import BookInstance, BOOK_INSTANCE_STATUSES
from locallibrary.rendering import render, redirect, valid_id, not_found
from locallibrary.validation import Rule, validate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["bookinstances"])

BOOK_INSTANCE_RULES = [
    Rule("book")
    .trim()
    .length(min=1, message="Book must be specified")
    .identifier("Book must be chosen from the list")
    .escape(),
    Rule("imprint").trim().length(min=1, message="Imprint must be specified").escape(),
    Rule("status").one_of(schemas.BookInstanceStatus, "Invalid status").escape(),
    Rule("due_back", "Invalid date").optional().iso_date(),
]


def _instance_from(values, instance_id=None) -> BookInstance:
    return BookInstance(
        id=instance_id,
        book_id=values["book"],
        imprint=values["imprint"],
        status=values["status"],
        due_back=values["due_back"],
    )


async def _render_form(request, store, title, bookinstance=None, errors=None):
    books = await store.run(crud.list_books)
    return render(
        request,
        "bookinstance_form.html",
        title=title,
        book_list=books,
        bookinstance=bookinstance,
        statuses=BOOK_INSTANCE_STATUSES,
        errors=errors,
    )


@router.get("/bookinstances")
async def bookinstance_list(request: Request, store: Store = Depends(get_store)):
    """List every copy, grouped by book title."""
    instances = await store.run(crud.list_book_instances)
    return render(
        request,
        "bookinstance_list.html",
        title="Book Instance List",
        bookinstance_list=instances,
    )


@router.get("/bookinstance/create")
async def bookinstance_create_get(request: Request, store: Store = Depends(get_store)):
    return await _render_form(request, store, "Create BookInstance")


@router.post("/bookinstance/create")
async def bookinstance_create_post(request: Request, store: Store = Depends(get_store)):
    """
    Record a new copy of a book.

    Copies have no natural key, so every valid submission creates a record.
    A missing due date defaults to today.
    """
    submission = validate(
        await request.form(), BOOK_INSTANCE_RULES, schemas.BookInstanceCreate
    )

    if not submission.is_valid:
        return await _render_form(
            request,
            store,
            "Create BookInstance",
            bookinstance=_instance_from(submission.values),
            errors=submission.errors,
        )

    instance = await store.run(crud.create_book_instance, submission.data)
    logger.info("Created book instance %s of book %s", instance.id, instance.book_id)
    return redirect(instance.url)


@router.get("/bookinstance/{id}")
async def bookinstance_detail(
    request: Request,
    instance_id: str = Depends(valid_id("BookInstance")),
    store: Store = Depends(get_store),
):
    instance = await store.run(crud.get_book_instance, instance_id)
    if instance is None:
        raise not_found("BookInstance")

    return render(
        request,
        "bookinstance_detail.html",
        title="Book:",
        bookinstance=instance,
    )


@router.get("/bookinstance/{id}/delete")
async def bookinstance_delete_get(
    request: Request,
    instance_id: str = Depends(valid_id("BookInstance")),
    store: Store = Depends(get_store),
):
    instance = await store.run(crud.get_book_instance, instance_id)
    if instance is None:
        raise not_found("BookInstance")

    return render(
        request,
        "bookinstance_delete.html",
        title="Delete BookInstance",
        bookinstance=instance,
    )


@router.post("/bookinstance/{id}/delete")
async def bookinstance_delete_post(
    request: Request,
    instance_id: str = Depends(valid_id("BookInstance")),
    store: Store = Depends(get_store),
):
    """Delete a copy. Nothing references a copy, so deletion is never blocked."""
    deleted = await store.run(crud.delete_by_id, BookInstance, instance_id)
    if not deleted:
        raise not_found("BookInstance")

    logger.info("Deleted book instance %s", instance_id)
    return redirect("/catalog/bookinstances")


@router.get("/bookinstance/{id}/update")
async def bookinstance_update_get(
    request: Request,
    instance_id: str = Depends(valid_id("BookInstance")),
    store: Store = Depends(get_store),
):
    instance = await store.run(crud.get_book_instance, instance_id)
    if instance is None:
        raise not_found("BookInstance")

    return await _render_form(
        request, store, "Update BookInstance", bookinstance=instance
    )


@router.post("/bookinstance/{id}/update")
async def bookinstance_update_post(
    request: Request,
    instance_id: str = Depends(valid_id("BookInstance")),
    store: Store = Depends(get_store),
):
    submission = validate(
        await request.form(), BOOK_INSTANCE_RULES, schemas.BookInstanceCreate
    )

    if not submission.is_valid:
        return await _render_form(
            request,
            store,
            "Update BookInstance",
            bookinstance=_instance_from(submission.values, instance_id),
            errors=submission.errors,
        )

    instance = await store.run(
        crud.update_book_instance, instance_id, submission.data
    )
    if instance is None:
        raise not_found("BookInstance")

    logger.info("Updated book instance %s", instance_id)
    return redirect(instance.url)
