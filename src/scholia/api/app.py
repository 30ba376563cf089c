"""FastAPI application exposing the note store as a JSON API."""

import logging
import secrets
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..core.errors import MalformedInputError, NotFoundError, StoreUnavailableError
from ..core.model import Note
from ..core.suggestions import accept_suggestion, pending_suggestions, reject_suggestion
from ..core.utils import paginate, utc_now_iso

log = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Map core errors onto status codes; every error body is {"error": message}."""

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail or "HTTP error"})

    @app.exception_handler(NotFoundError)
    async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "Note not found"})

    @app.exception_handler(MalformedInputError)
    async def _malformed_handler(request: Request, exc: MalformedInputError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid note data"})

    @app.exception_handler(StoreUnavailableError)
    async def _store_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        log.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"error": "Note store unavailable"})


def create_app(runtime: Any, token: str | None = None, enable_cors: bool = False) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with store, codec and config
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware

    Returns:
        FastAPI application instance
    """
    store = runtime.store
    codec = runtime.codec
    default_user = runtime.config.auth.default_user

    app = FastAPI(
        title="Scholia API",
        description="JSON API for a personal note store",
        version=__version__,
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
    )

    # Add CORS middleware if enabled
    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-User-Id"],
        )

    register_exception_handlers(app)

    # Security setup
    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    async def current_user(
        auth: None = Depends(verify_token),
        x_user_id: str | None = Header(None),
    ) -> str:
        """Owner for this request: X-User-Id when sent, else the configured user."""
        return x_user_id or default_user

    def note_response(note: Note, status_code: int = 200) -> Response:
        return Response(content=codec.encode(note), status_code=status_code, media_type="application/json")

    def json_response(payload: dict[str, Any], status_code: int = 200) -> Response:
        # same escaping rules as single notes
        return Response(content=codec.style.dumps(payload), status_code=status_code, media_type="application/json")

    async def read_note(request: Request) -> Note:
        body = await request.body()
        return codec.decode(body, strict=True)

    @app.get("/health")
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        version = await run_in_threadpool(store.schema_version)
        return {"status": "ok", "schema_version": version}

    @app.get("/api/auth/me")
    async def me(user_id: str = Depends(current_user)) -> dict[str, Any]:
        return {"id": user_id}

    @app.get("/api/notes")
    async def list_notes(
        query: str | None = Query(None, description="Substring to search for"),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, alias="pageSize", ge=1),
        user_id: str = Depends(current_user),
    ) -> Response:
        """List notes, newest first, one page at a time."""
        if query:
            notes = await run_in_threadpool(store.search, query, user_id)
        else:
            notes = await run_in_threadpool(store.list_all, user_id)

        result = paginate(notes, page=page, page_size=page_size)
        return json_response(
            {
                "notes": [codec.to_dict(n) for n in result.items],
                "total": result.total,
                "currentPage": result.current_page,
                "totalPages": result.total_pages,
            }
        )

    @app.get("/api/notes/search")
    async def search_notes(
        query: str | None = Query(None, description="Substring to search for"),
        user_id: str = Depends(current_user),
    ) -> Response:
        """Unpaginated substring search."""
        if not query:
            raise HTTPException(status_code=400, detail="Query parameter is required")

        notes = await run_in_threadpool(store.search, query, user_id)
        return json_response({"notes": [codec.to_dict(n) for n in notes], "total": len(notes)})

    @app.post("/api/notes")
    async def create_note(request: Request, user_id: str = Depends(current_user)) -> Response:
        note = await read_note(request)
        created = await run_in_threadpool(store.create, note, user_id)
        return note_response(created, status_code=201)

    @app.delete("/api/notes/all/confirm")
    async def delete_all_notes(user_id: str = Depends(current_user)) -> Response:
        removed = await run_in_threadpool(store.delete_all, user_id)
        log.warning("Deleted all %d notes for user %s", removed, user_id)
        return Response(status_code=204)

    @app.get("/api/notes/{note_id}")
    async def get_note(note_id: str, user_id: str = Depends(current_user)) -> Response:
        note = await run_in_threadpool(store.get, note_id, user_id)
        return note_response(note)

    @app.put("/api/notes/{note_id}")
    async def update_note(note_id: str, request: Request, user_id: str = Depends(current_user)) -> Response:
        """Replace a note; the id always comes from the path."""
        note = await read_note(request)
        note.id = note_id
        if not note.last_modified:
            note.last_modified = utc_now_iso()
        updated = await run_in_threadpool(store.update, note, user_id)
        return note_response(updated)

    @app.delete("/api/notes/{note_id}")
    async def delete_note(note_id: str, user_id: str = Depends(current_user)) -> Response:
        await run_in_threadpool(store.delete, note_id, user_id)
        return Response(status_code=204)

    @app.get("/api/notes/{note_id}/suggestions")
    async def list_suggestions(note_id: str, user_id: str = Depends(current_user)) -> Response:
        note = await run_in_threadpool(store.get, note_id, user_id)
        refs = [codec.backlinks.to_dict(s) for s in pending_suggestions(note)]
        return Response(content=codec.style.dumps(refs), media_type="application/json")

    @app.post("/api/notes/{note_id}/suggestions/{target_id}/accept")
    async def accept(note_id: str, target_id: str, user_id: str = Depends(current_user)) -> Response:
        source = await run_in_threadpool(accept_suggestion, store, note_id, target_id, user_id)
        return note_response(source)

    @app.post("/api/notes/{note_id}/suggestions/{target_id}/reject")
    async def reject(note_id: str, target_id: str, user_id: str = Depends(current_user)) -> Response:
        source = await run_in_threadpool(reject_suggestion, store, note_id, target_id, user_id)
        return note_response(source)

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
