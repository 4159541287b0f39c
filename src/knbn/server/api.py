"""FastAPI status server: a landing page plus read-only board endpoints."""

from __future__ import annotations

import html
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse
from loguru import logger

from .. import __version__
from ..errors import InvalidArgumentError, NotFoundError, PersistenceError
from ..service import BoardService
from ..store import is_board_filename, list_boards
from .models import BoardFileInfo, BoardListResponse, TaskInfo, TaskListResponse

_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>KnBn</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 40px; }}
        h1 {{ color: #333; }}
        .cwd {{ background: #f5f5f5; padding: 20px; border-radius: 5px; }}
    </style>
</head>
<body>
    <h1>KnBn</h1>
    <div class="cwd">
        <h2>Current Working Directory:</h2>
        <p><code>{project_dir}</code></p>
    </div>
{boards}
</body>
</html>
"""


def _render_page(project_dir: Path) -> str:
    try:
        summaries = list_boards(project_dir)
    except PersistenceError as exc:
        logger.warning("Could not list boards in {}: {}", project_dir, exc)
        summaries = []
    if summaries:
        items = "\n".join(
            f"        <li><code>{html.escape(s.filename)}</code>: {html.escape(s.name or '(unreadable)')}</li>"
            for s in summaries
        )
        boards = f"    <h2>Boards</h2>\n    <ul>\n{items}\n    </ul>"
    else:
        boards = "    <p>No .knbn board files found.</p>"
    return _PAGE.format(project_dir=html.escape(str(project_dir)), boards=boards)


def create_app(project_dir: Optional[Path] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir: Directory whose board files are served (default: cwd).

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="KnBn",
        description="Local kanban board status server",
        version=__version__,
    )
    app.state.project_dir = Path(project_dir or Path.cwd()).resolve()

    def _board_service(filename: str) -> BoardService:
        root: Path = app.state.project_dir
        if not is_board_filename(filename):
            raise HTTPException(status_code=400, detail=f"Invalid board file name: {filename}")
        path = root / filename
        if not path.is_file():
            raise HTTPException(status_code=404, detail=f"Board file {filename} not found")
        return BoardService(path)

    @app.get("/", response_class=HTMLResponse)
    async def root() -> HTMLResponse:
        """Landing page naming the working directory."""
        return HTMLResponse(_render_page(app.state.project_dir))

    @app.get("/api/boards")
    async def get_boards() -> BoardListResponse:
        root: Path = app.state.project_dir
        try:
            summaries = list_boards(root)
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return BoardListResponse(
            project_dir=str(root),
            boards=[BoardFileInfo(**s.to_dict()) for s in summaries],
        )

    @app.get("/api/boards/{filename}")
    async def get_board(filename: str):
        """Return the full board document as stored."""
        service = _board_service(filename)
        try:
            return service.load().to_dict()
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.get("/api/boards/{filename}/tasks")
    async def get_board_tasks(
        filename: str,
        q: str = Query("", description="Case-insensitive substring to search for"),
        keys: Optional[str] = Query(None, description="Comma-separated fields to search"),
        column: Optional[str] = Query(None, description="Only tasks in this column"),
    ) -> TaskListResponse:
        """Search a board's tasks, sorted by priority then recency."""
        service = _board_service(filename)
        key_list = [k.strip() for k in keys.split(",") if k.strip()] if keys else None
        try:
            tasks = service.find_tasks(q, keys=key_list, column=column)
        except InvalidArgumentError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except PersistenceError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return TaskListResponse(
            board=filename,
            query=q,
            count=len(tasks),
            tasks=[TaskInfo.from_task(t) for t in tasks],
        )

    return app
