from fastapi import APIRouter, Depends, Request

from locallibrary import crud, models
from locallibrary.database import Store, get_store
from locallibrary.rendering import render, redirect


router = APIRouter(tags=["catalog"])


@router.get("/")
async def root():
    return redirect("/catalog")


@router.get("/catalog")
async def catalog_index(request: Request, store: Store = Depends(get_store)):
    """
    Catalog home page with record counts.

    The five counts are independent, so they are fetched concurrently.
    """
    (
        book_count,
        book_instance_count,
        book_instance_available_count,
        author_count,
        genre_count,
    ) = await store.gather(
        (crud.count, models.Book),
        (crud.count, models.BookInstance),
        (crud.count_available_instances,),
        (crud.count, models.Author),
        (crud.count, models.Genre),
    )

    return render(
        request,
        "index.html",
        title="Local Library Home",
        book_count=book_count,
        book_instance_count=book_instance_count,
        book_instance_available_count=book_instance_available_count,
        author_count=author_count,
        genre_count=genre_count,
    )
