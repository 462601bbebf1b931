import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.background import BackgroundTask

from book import BookForm
from config import Settings, configure_logging, settings as default_settings
from covers import CoverFetchError, CoverNotFoundError, CoverService
from database import Database
from http_client import close_http_client, create_http_client
from library import DEFAULT_SORT, SORT_LABELS, SORT_ORDERS, Library, LibraryError

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

OVERRIDABLE_METHODS = {"PUT", "PATCH", "DELETE"}

router = APIRouter()


# --- Dependencies ---
def get_library(request: Request) -> Library:
    return request.app.state.library


def get_cover_service(request: Request) -> CoverService:
    return request.app.state.covers


LibraryDep = Annotated[Library, Depends(get_library)]
CoverServiceDep = Annotated[CoverService, Depends(get_cover_service)]


# --- Rendering helpers ---
def render_error(request: Request, status_code: int, title: str, message: str, back_href: str = "/") -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": title, "message": message, "back_href": back_href},
        status_code=status_code,
    )


def render_library_error(request: Request, error: LibraryError, back_href: str) -> HTMLResponse:
    return render_error(request, error.status_code, error.title, error.message, back_href)


def redirect(url: str) -> RedirectResponse:
    # 303 so the browser follows a POST/PUT/DELETE with a GET
    return RedirectResponse(url, status_code=303)


# --- Health check ---
@router.get("/health")
def health(request: Request, library: LibraryDep):
    """Lightweight health endpoint: database reachability and book count."""
    db: Database = request.app.state.db
    db_ok = db.ping()
    return {
        "status": "healthy" if db_ok else "degraded",
        "db": db_ok,
        "total_books": library.count_books() if db_ok else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# --- Cover proxy ---
@router.get("/api/covers/isbn/{isbn}")
async def get_cover(isbn: str, covers: CoverServiceDep):
    """Proxy a cover image from Open Library, or answer with a JSON error."""
    try:
        image = await covers.fetch(isbn)
    except CoverNotFoundError:
        return JSONResponse({"message": "Cover not found", "isbn": isbn}, status_code=404)
    except CoverFetchError:
        return JSONResponse({"message": "Failed to fetch cover"}, status_code=500)
    return StreamingResponse(image.stream, media_type=image.media_type, background=BackgroundTask(image.close))


# --- Pages ---
@router.get("/", response_class=HTMLResponse)
def list_books(
    request: Request,
    library: LibraryDep,
    sort: str = Query(DEFAULT_SORT, description="recent|rating_desc|rating_asc|title"),
    q: str = Query("", description="Title or author contains"),
):
    """List books with optional search and sorting."""
    sort = sort if sort in SORT_ORDERS else DEFAULT_SORT
    q = q.strip()
    books = library.list_books(q=q, sort=sort)
    return templates.TemplateResponse(
        request,
        "index.html",
        {"books": books, "sort": sort, "q": q, "sort_options": SORT_LABELS},
    )


@router.get("/books/new", response_class=HTMLResponse)
def new_book(request: Request):
    return templates.TemplateResponse(request, "new.html", {"book": None})


@router.post("/books")
def create_book(request: Request, library: LibraryDep, form: Annotated[BookForm, Form()]):
    try:
        library.add_book(form)
    except LibraryError as e:
        return render_library_error(request, e, "/books/new")
    return redirect("/")


@router.get("/books/{book_id}", response_class=HTMLResponse)
def show_book(request: Request, book_id: int, library: LibraryDep):
    try:
        book = library.find_book(book_id)
    except LibraryError as e:
        return render_library_error(request, e, "/")
    return templates.TemplateResponse(request, "show.html", {"book": book})


@router.get("/books/{book_id}/edit", response_class=HTMLResponse)
def edit_book(request: Request, book_id: int, library: LibraryDep):
    try:
        book = library.find_book(book_id)
    except LibraryError as e:
        return render_library_error(request, e, "/")
    return templates.TemplateResponse(request, "edit.html", {"book": book})


@router.put("/books/{book_id}")
def update_book(request: Request, book_id: int, library: LibraryDep, form: Annotated[BookForm, Form()]):
    try:
        library.update_book(book_id, form)
    except LibraryError as e:
        back_href = "/" if e.status_code == 404 else f"/books/{book_id}/edit"
        return render_library_error(request, e, back_href)
    return redirect(f"/books/{book_id}")


@router.delete("/books/{book_id}")
def delete_book(book_id: int, library: LibraryDep):
    library.remove_book(book_id)
    return redirect("/")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around an explicitly injected database."""
    settings = settings or default_settings
    configure_logging(settings.log_level)

    db = Database(settings.db_file)
    db.initialize()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = create_http_client(settings)
        app.state.covers = CoverService(client, settings.covers_base_url)
        try:
            yield
        finally:
            await close_http_client(client)

    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.library = Library(db)

    # --- Method override for HTML forms ---
    @app.middleware("http")
    async def method_override(request: Request, call_next):
        override = request.query_params.get("_method", "").upper()
        if request.method == "POST" and override in OVERRIDABLE_METHODS:
            request.scope["method"] = override
        return await call_next(request)

    # --- Error handlers ---
    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected request {request.method} {request.url.path}: {exc.errors()}")
        return render_error(request, 400, "Validation Error", "The request could not be understood.")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return render_error(request, 500, "Server Error", "Something went wrong. Check server logs.")

    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
    app.include_router(router)
    return app


app = create_app()
