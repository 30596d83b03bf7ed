from pathlib import Path

from fastapi import HTTPException, Path as PathParam, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from locallibrary.validation import is_valid_id


PACKAGE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))


def render(request: Request, template: str, status_code: int = 200, **context):
    """Render a page template with the given context."""
    return templates.TemplateResponse(
        request, template, context, status_code=status_code
    )


def redirect(url: str) -> RedirectResponse:
    """Redirect after a successful form POST (303, so the browser GETs)."""
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def valid_id(entity: str):
    """
    Build a dependency that checks the {id} path parameter.

    Usage:
        @router.get("/genre/{id}")
        async def genre_detail(genre_id: str = Depends(valid_id("Genre"))):

    Raises:
        HTTPException: 400 if the identifier is malformed
    """

    def dependency(id: str = PathParam(...)) -> str:
        if not is_valid_id(id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {entity} ID",
            )
        return id

    return dependency


def not_found(entity: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{entity} not found",
    )
