import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__, crud, database, schemas, validators

load_dotenv(Path(__file__).parent.parent / ".env")

ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")


# --- Logging ---
def log_level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    # getLevelName answers "Level VERBOSE" for names it does not know
    return level if isinstance(level, int) else logging.INFO


logging.basicConfig(
    level=log_level(os.getenv("LOG_LEVEL", "INFO")),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
logger = logging.getLogger("linkshort")

FRONTEND_DIR = Path(__file__).parent / "frontend"


def get_db(request: Request):
    db = request.app.state.sessionmaker()
    try:
        yield db
    finally:
        db.close()


def create_app(database_url: str | None = None) -> FastAPI:
    engine = database.make_engine(database_url)
    database.init_db(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.engine.dispose()

    app = FastAPI(
        title="linkshort",
        description="Short codes for long URLs, with click counting.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.sessionmaker = database.make_sessionmaker(engine)

    origins = ["*"] if ENVIRONMENT == "dev" else [
        os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"),
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code < 500:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Bad request body at %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def internal_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error at %s %s", request.method, request.url.path)
        # Only the redirect answers in plain text, every other route speaks JSON
        endpoint = request.scope.get("endpoint")
        if getattr(endpoint, "__name__", None) == "redirect":
            return PlainTextResponse("Server error", status_code=500)
        return JSONResponse(status_code=500, content={"error": "Server error"})


def _register_routes(app: FastAPI) -> None:
    # Health check (also reachable under /api for the serverless layout)
    @app.get("/healthz", response_model=schemas.Health)
    @app.get("/api/healthz", response_model=schemas.Health, include_in_schema=False)
    def health(db: Session = Depends(get_db)):
        crud.ping(db)
        return {"ok": True, "version": __version__}

    # ---- Dashboard pages ----
    @app.get("/", include_in_schema=False)
    def serve_dashboard():
        return FileResponse(FRONTEND_DIR / "index.html")

    @app.get("/code/{code}", include_in_schema=False)
    def serve_stats(code: str):
        return FileResponse(FRONTEND_DIR / "stats.html")

    # ---------- API ----------
    @app.post("/api/links", response_model=schemas.LinkCreated, status_code=201)
    def create_link(link_in: schemas.LinkCreate, db: Session = Depends(get_db)):
        if not validators.is_valid_url(link_in.url):
            raise HTTPException(status_code=400, detail="Invalid URL")

        if link_in.code:
            if not validators.is_valid_code(link_in.code):
                raise HTTPException(status_code=400, detail="Invalid code format")
            # Fast path only, the unique constraint decides races
            if crud.code_exists(db, link_in.code):
                raise HTTPException(status_code=409, detail="Code already exists")
            try:
                link = crud.create_link(db, link_in.code, link_in.url)
            except crud.DuplicateCode:
                raise HTTPException(status_code=409, detail="Code already exists")
        else:
            link = crud.create_link_with_generated_code(db, link_in.url)

        logger.info("Created link %s -> %s", link.code, link.url)
        return {"code": link.code, "url": link.url}

    @app.get("/api/links", response_model=list[schemas.LinkOut])
    def list_links(db: Session = Depends(get_db)):
        return crud.list_links(db)

    @app.get("/api/links/{code}", response_model=schemas.LinkOut)
    def get_link(code: str, db: Session = Depends(get_db)):
        link = crud.get_link(db, code)
        if not link:
            raise HTTPException(status_code=404, detail="Link not found")
        return link

    @app.delete("/api/links/{code}", response_model=schemas.MessageOut)
    def delete_link(code: str, db: Session = Depends(get_db)):
        if not crud.delete_link(db, code):
            raise HTTPException(status_code=404, detail="Link not found")
        logger.info("Deleted link %s", code)
        return {"message": "Link deleted successfully"}

    # Must stay last: any other single segment is a short code
    @app.get("/{code}", include_in_schema=False)
    def redirect(code: str, db: Session = Depends(get_db)):
        # Same answer for malformed and unknown codes
        url = crud.record_click(db, code) if validators.is_valid_code(code) else None
        if url is None:
            return PlainTextResponse("Not found", status_code=404)
        logger.debug("Redirect %s -> %s", code, url)
        return RedirectResponse(url=url, status_code=302)


app = create_app()
