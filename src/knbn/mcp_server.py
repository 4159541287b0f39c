"""Line-delimited JSON-RPC tool server over stdio.

Speaks the small subset of the Model Context Protocol that tool clients need:
``initialize``, ``tools/list`` and ``tools/call``.  Every tool resolves its
board file inside the project directory and goes through :class:`BoardService`.
Logging stays on stderr; stdout carries protocol messages only.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from . import __version__
from .constants import DEFAULT_BOARD_FILE, SEARCH_KEYS
from .errors import InvalidArgumentError, KnbnError, NotFoundError
from .model import TaskPatch
from .service import BoardService, create_board
from .store import board_filename_for, find_board_files, is_board_filename, list_boards

ToolFunc = Callable[[dict[str, Any]], Any]

_FILENAME_PROP = {
    "type": "string",
    "description": "Board file name in the project directory (default: the first .knbn file found)",
}
_TASK_ID_PROP = {"type": ["integer", "string"], "description": "Task ID"}
_TASK_FIELDS = {
    "title": {"type": "string"},
    "description": {"type": "string"},
    "column": {"type": "string"},
    "sprint": {"type": ["string", "null"]},
    "labels": {"type": ["array", "null"], "items": {"type": "string"}},
    "storyPoints": {"type": ["number", "null"]},
    "priority": {"type": ["number", "null"]},
}


@dataclass
class ToolDef:
    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolFunc


class KnbnMcp:
    def __init__(self, project_dir: Path) -> None:
        self.project_dir = Path(project_dir)
        self.tools: dict[str, ToolDef] = {}
        self._register_tools()

    def _register(self, tool: ToolDef) -> None:
        self.tools[tool.name] = tool

    def _register_tools(self) -> None:
        self._register(
            ToolDef(
                name="create_board",
                description="Create a new .knbn board file in the project directory.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "filename": {"type": "string", "description": "File to create (default: derived from name, or .knbn)"},
                        "name": {"type": "string"},
                        "description": {"type": "string"},
                    },
                    "additionalProperties": False,
                },
                handler=self._tool_create_board,
            )
        )
        self._register(
            ToolDef(
                name="list_boards",
                description="List the .knbn board files in the project directory.",
                input_schema={"type": "object", "properties": {}, "additionalProperties": False},
                handler=self._tool_list_boards,
            )
        )
        self._register(
            ToolDef(
                name="create_task",
                description="Create a task; it lands in the first column unless one is given.",
                input_schema={
                    "type": "object",
                    "properties": {"filename": _FILENAME_PROP, **_TASK_FIELDS},
                    "required": ["title"],
                    "additionalProperties": False,
                },
                handler=self._tool_create_task,
            )
        )
        self._register(
            ToolDef(
                name="update_task",
                description="Apply a partial update to one task.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "filename": _FILENAME_PROP,
                        "id": _TASK_ID_PROP,
                        "updates": {"type": "object", "properties": _TASK_FIELDS, "additionalProperties": False},
                    },
                    "required": ["id", "updates"],
                    "additionalProperties": False,
                },
                handler=self._tool_update_task,
            )
        )
        self._register(
            ToolDef(
                name="list_tasks",
                description="Search tasks by case-insensitive substring; results are sorted by priority.",
                input_schema={
                    "type": "object",
                    "properties": {
                        "filename": _FILENAME_PROP,
                        "query": {"type": "string"},
                        "keys": {"type": "array", "items": {"type": "string", "enum": list(SEARCH_KEYS)}},
                        "column": {"type": "string"},
                    },
                    "additionalProperties": False,
                },
                handler=self._tool_list_tasks,
            )
        )
        self._register(
            ToolDef(
                name="get_task",
                description="Fetch one task by ID.",
                input_schema={
                    "type": "object",
                    "properties": {"filename": _FILENAME_PROP, "id": _TASK_ID_PROP},
                    "required": ["id"],
                    "additionalProperties": False,
                },
                handler=self._tool_get_task,
            )
        )

    def _board_path(self, filename: Any, *, must_exist: bool = True) -> Path:
        if filename is None or filename == "":
            files = find_board_files(self.project_dir)
            if not files:
                raise NotFoundError(f"No .knbn board files found in {self.project_dir}")
            return files[0]
        if not isinstance(filename, str) or not is_board_filename(filename):
            raise InvalidArgumentError(f"filename must be a plain .knbn file name, got {filename!r}")
        path = self.project_dir / filename
        if must_exist and not path.is_file():
            raise NotFoundError(f"Board file {filename} not found")
        return path

    def _tool_create_board(self, args: dict[str, Any]) -> dict[str, Any]:
        name = args.get("name")
        description = args.get("description")
        if name is not None and not isinstance(name, str):
            raise InvalidArgumentError("'name' must be a string")
        if description is not None and not isinstance(description, str):
            raise InvalidArgumentError("'description' must be a string")
        filename = args.get("filename") or (board_filename_for(name) if name else DEFAULT_BOARD_FILE)
        path = self._board_path(filename, must_exist=False)
        board = create_board(path, name=name, description=description)
        return {"filename": path.name, "board": board.to_dict()}

    def _tool_list_boards(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"boards": [summary.to_dict() for summary in list_boards(self.project_dir)]}

    def _tool_create_task(self, args: dict[str, Any]) -> dict[str, Any]:
        service = BoardService(self._board_path(args.get("filename")))
        fields = {k: v for k, v in args.items() if k != "filename"}
        if not isinstance(fields.get("title"), str):
            raise InvalidArgumentError("'title' must be a string")
        checked = TaskPatch.from_dict(fields).changes()
        task = service.create_task(
            checked.pop("title"),
            description=checked.get("description") or "",
            column=checked.get("column"),
            sprint=checked.get("sprint"),
            labels=checked.get("labels"),
            story_points=checked.get("story_points"),
            priority=checked.get("priority"),
        )
        return {"task": task.to_dict()}

    def _tool_update_task(self, args: dict[str, Any]) -> dict[str, Any]:
        service = BoardService(self._board_path(args.get("filename")))
        task = service.update_task(args.get("id"), args.get("updates"))
        return {"task": task.to_dict()}

    def _tool_list_tasks(self, args: dict[str, Any]) -> dict[str, Any]:
        service = BoardService(self._board_path(args.get("filename")))
        query = args.get("query") or ""
        keys = args.get("keys")
        if not isinstance(query, str):
            raise InvalidArgumentError("'query' must be a string")
        if keys is not None and (not isinstance(keys, list) or not all(isinstance(k, str) for k in keys)):
            raise InvalidArgumentError("'keys' must be a list of strings")
        tasks = service.find_tasks(query, keys=keys, column=args.get("column"))
        return {"count": len(tasks), "tasks": [task.to_dict() for task in tasks]}

    def _tool_get_task(self, args: dict[str, Any]) -> dict[str, Any]:
        service = BoardService(self._board_path(args.get("filename")))
        return {"task": service.get_task(args.get("id")).to_dict()}

    def handle_request(self, req: dict[str, Any]) -> dict[str, Any] | None:
        method = req.get("method")
        req_id = req.get("id")

        if method in ("initialized", "notifications/initialized") and req_id is None:
            return None

        if method == "initialize":
            return {
                "jsonrpc": "2.0",
                "id": req_id,
                "result": {
                    "protocolVersion": "2024-11-05",
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": "knbn-mcp", "version": __version__},
                },
            }

        if method == "tools/list":
            tools = [
                {
                    "name": t.name,
                    "description": t.description,
                    "inputSchema": t.input_schema,
                }
                for t in self.tools.values()
            ]
            return {"jsonrpc": "2.0", "id": req_id, "result": {"tools": tools}}

        if method == "tools/call":
            params = req.get("params") if isinstance(req.get("params"), dict) else {}
            name = str(params.get("name") or "").strip()
            arguments = params.get("arguments")
            if not isinstance(arguments, dict):
                arguments = {}

            tool = self.tools.get(name)
            if tool is None:
                return self._error(req_id, -32602, f"unknown tool: {name}")

            try:
                result = tool.handler(arguments)
            except KnbnError as e:
                logger.info("Tool {} failed: {}", name, e)
                return self._error(req_id, -32001, str(e), data={"code": e.code, "message": str(e)})
            except (ValueError, TypeError) as e:
                logger.warning("Tool {} rejected its arguments: {}", name, e)
                return self._error(req_id, -32001, str(e), data={"code": "INVALID_ARGUMENT", "message": str(e)})
            return {
                "jsonrpc": "2.0",
                "id": req_id,
                "result": {
                    "content": [
                        {
                            "type": "text",
                            "text": json.dumps(result, separators=(",", ":"), sort_keys=True),
                        }
                    ]
                },
            }

        if req_id is None:
            return None
        return self._error(req_id, -32601, f"method not found: {method}")

    @staticmethod
    def _error(
        req_id: Any,
        code: int,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": req_id,
            "error": {"code": code, "message": message},
        }
        if isinstance(data, dict):
            payload["error"]["data"] = data
        return payload


def _read_message(stdin: Any) -> dict[str, Any] | None:
    while True:
        line = stdin.readline()
        if not line:
            return None
        decoded = line.decode("utf-8").strip()
        if not decoded:
            continue
        parsed = json.loads(decoded)
        break
    if not isinstance(parsed, dict):
        raise ValueError("message must be a JSON object")
    return parsed


def _write_message(stdout: Any, payload: dict[str, Any]) -> None:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    stdout.write(body + b"\n")
    stdout.flush()


def serve_stdio(project_dir: Path, stdin: Any = None, stdout: Any = None) -> int:
    server = KnbnMcp(project_dir)
    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer
    logger.info("Tool server ready for {}", project_dir)

    while True:
        try:
            req = _read_message(stdin)
        except (ValueError, UnicodeDecodeError) as exc:
            _write_message(
                stdout,
                {
                    "jsonrpc": "2.0",
                    "id": None,
                    "error": {"code": -32700, "message": "Parse error", "data": {"detail": str(exc)}},
                },
            )
            continue
        if req is None:
            break
        resp = server.handle_request(req)
        if resp is not None:
            _write_message(stdout, resp)
    return 0
