"""FastAPI server for the formatdocs local browser UI.

Routes are thin wrappers over a single :class:`DocumentSession`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import FileResponse, HTMLResponse, Response
from fastapi.staticfiles import StaticFiles

from formatdocs.errors import (
    EmptyData,
    FormatDocsError,
    OperationInProgress,
    ReadError,
    RenderError,
    TemplateNotLoaded,
    UnsupportedFormat,
)
from formatdocs.session import DocumentSession, create_session

# The singleton session is set at startup by ``create_app()``.
_session: DocumentSession | None = None


def create_app(config: dict[str, Any], session: DocumentSession | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Loaded configuration (see :func:`formatdocs.config.load_config`).
        session: Pre-built session; built from *config* (loading templates)
            when omitted.

    Returns:
        Configured FastAPI instance.
    """
    global _session
    _session = session or create_session(config)

    from formatdocs import __version__

    app = FastAPI(title="formatdocs UI", version=__version__)

    static_dir = Path(__file__).parent / "static"
    app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

    app.include_router(_api_router())

    @app.get("/")
    async def index() -> FileResponse:
        return FileResponse(str(static_dir / "index.html"))

    return app


def _sess() -> DocumentSession:
    """Get the singleton session, raising if not initialised."""
    if _session is None:
        raise HTTPException(500, "Session not initialised")
    return _session


def _http_error(exc: FormatDocsError) -> HTTPException:
    if isinstance(exc, OperationInProgress):
        return HTTPException(409, str(exc))
    if isinstance(exc, UnsupportedFormat):
        return HTTPException(415, str(exc))
    if isinstance(exc, (EmptyData, ReadError)):
        return HTTPException(422, str(exc))
    if isinstance(exc, TemplateNotLoaded):
        return HTTPException(503, str(exc))
    if isinstance(exc, RenderError):
        return HTTPException(500, f"Generation failed: {exc}")
    return HTTPException(400, str(exc))


def _content_disposition(filename: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(filename)}"


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def _api_router():
    from fastapi import APIRouter

    router = APIRouter(prefix="/api")

    @router.get("/state")
    async def get_state() -> dict[str, Any]:
        return _sess().state()

    # -- Upload --

    @router.post("/upload")
    async def upload(file: UploadFile = File(...)) -> dict[str, Any]:
        data = await file.read()
        try:
            result = await _sess().load_file(data, file.filename or "")
        except FormatDocsError as exc:
            raise _http_error(exc)
        n = len(result.rows)
        return {
            "ok": True,
            "message": f"Loaded {n} row{'' if n == 1 else 's'} successfully",
            **_sess().state(),
        }

    # -- Preview --

    @router.get("/preview", response_class=HTMLResponse)
    async def preview() -> HTMLResponse:
        return HTMLResponse(_sess().preview_html)

    @router.post("/preview/next")
    async def preview_next() -> dict[str, Any]:
        moved = _sess().next()
        return {"moved": moved, **_sess().state()}

    @router.post("/preview/previous")
    async def preview_previous() -> dict[str, Any]:
        moved = _sess().previous()
        return {"moved": moved, **_sess().state()}

    @router.post("/preview/goto/{index}")
    async def preview_goto(index: int) -> dict[str, Any]:
        moved = _sess().go_to(index)
        return {"moved": moved, **_sess().state()}

    # -- Generate --

    @router.post("/generate")
    async def generate() -> Response:
        try:
            delivery = await _sess().generate()
        except FormatDocsError as exc:
            raise _http_error(exc)
        return Response(
            content=delivery.content,
            media_type=delivery.media_type,
            headers={
                "Content-Disposition": _content_disposition(delivery.filename),
                "X-Document-Count": str(delivery.count),
            },
        )

    # -- Reset --

    @router.post("/reset")
    async def reset() -> dict[str, Any]:
        _sess().reset()
        return _sess().state()

    return router
