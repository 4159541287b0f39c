"""`knbn` command-line interface: board files, tasks, and the two servers."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import get_default_columns, get_log_level, get_server_config, load_config
from .constants import DEFAULT_CLI_BOARD_NAME, LOG_LEVELS, SEARCH_KEYS
from .errors import KnbnError
from .logging_utils import configure_logging
from .model import Number, Task
from .service import BoardService, create_board
from .store import board_filename_for, find_board_files, list_boards


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _fail(action: str, exc: Exception) -> int:
    sys.stderr.write(f"Failed to {action}: {exc}\n")
    return 1


def _number(value: str) -> Number:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}") from None
    return int(number) if number.is_integer() else number


def _keys(value: str) -> list[str]:
    keys = [k.strip() for k in value.split(",") if k.strip()]
    unknown = [k for k in keys if k not in SEARCH_KEYS]
    if unknown:
        raise argparse.ArgumentTypeError(f"unknown keys {unknown}; choose from {', '.join(SEARCH_KEYS)}")
    return keys


def _create_named_board(project_dir: Path, name: str, config: dict[str, Any]) -> Path:
    path = project_dir / board_filename_for(name)
    create_board(path, name=name, columns=get_default_columns(config))
    sys.stdout.write(f"Created board file: {path.name}\n")
    return path


def _prompt_for_board_creation(project_dir: Path, no_prompt: bool, config: dict[str, Any]) -> Optional[Path]:
    if no_prompt:
        sys.stdout.write("Skipping prompt for board creation, as per --no-prompt flag\n")
        return None
    try:
        answer = input("Would you like to create a new board? (y/n): ")
    except EOFError:
        answer = ""
    if answer.strip().lower() not in {"y", "yes"}:
        sys.stdout.write("Create a new board anytime with: knbn create-board [name]\n")
        return None
    try:
        name = input("Enter board name (optional, press Enter for default): ").strip()
    except EOFError:
        name = ""
    try:
        return _create_named_board(project_dir, name or DEFAULT_CLI_BOARD_NAME, config)
    except KnbnError as exc:
        _fail("create board", exc)
        return None


def _ensure_board_file(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> Optional[Path]:
    """Resolve ``-f``, else the first board file in the project, else offer to create one."""
    if args.file:
        path = Path(args.file).expanduser()
        return path if path.is_absolute() else project_dir / path
    files = find_board_files(project_dir)
    if files:
        return files[0]
    sys.stdout.write("No .knbn board file found in current directory\n")
    created = _prompt_for_board_creation(project_dir, getattr(args, "no_prompt", False), config)
    if created is None:
        sys.stderr.write("Cannot continue without a .knbn file\n")
    return created


def _list_boards(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    try:
        boards = list_boards(project_dir)
    except KnbnError as exc:
        return _fail("list boards", exc)
    if boards:
        sys.stdout.write(f"Found {len(boards)} .knbn board files:\n")
        for summary in boards:
            sys.stdout.write(f"  {summary.filename}: {summary.name if summary.name is not None else '(unreadable)'}\n")
    else:
        sys.stdout.write("No .knbn board files found in current directory.\n")
        _prompt_for_board_creation(project_dir, getattr(args, "no_prompt", False), config)
    sys.stdout.write("\nUse -h for help and available commands.\n")
    return 0


def _create_board(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    try:
        _create_named_board(project_dir, args.name or DEFAULT_CLI_BOARD_NAME, config)
    except KnbnError as exc:
        return _fail("create board", exc)
    return 0


def _create_task(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    board_file = _ensure_board_file(args, project_dir, config)
    if board_file is None:
        return 1
    try:
        task = BoardService(board_file).create_task(
            args.title or "New Task",
            description=args.description,
            column=args.column,
            priority=args.priority,
        )
    except KnbnError as exc:
        return _fail("create task", exc)
    sys.stdout.write(f"Created task #{task.id}: {task.title}\n")
    sys.stdout.write(f"Column: {task.column}\n")
    return 0


def _update_task(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    board_file = _ensure_board_file(args, project_dir, config)
    if board_file is None:
        return 1
    updates: dict[str, Any] = {}
    for key in ("title", "column", "description", "priority"):
        value = getattr(args, key)
        if value is not None:
            updates[key] = value
    if not updates:
        sys.stderr.write("No updates specified. Use --title, --column, --description, or --priority\n")
        return 1
    try:
        task = BoardService(board_file).update_task(args.task_id, updates)
    except KnbnError as exc:
        return _fail("update task", exc)
    sys.stdout.write(f"Updated task #{task.id}: {task.title}\n")
    sys.stdout.write(f"Column: {task.column}\n")
    return 0


def _render_tasks(tasks: list[Task]) -> Table:
    table = Table(title=f"{len(tasks)} task(s)")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Column", style="green")
    table.add_column("Priority", justify="right")
    table.add_column("Sprint")
    table.add_column("Labels")
    for task in tasks:
        table.add_row(
            str(task.id),
            task.title,
            task.column,
            "" if task.priority is None else str(task.priority),
            task.sprint or "",
            ", ".join(task.labels or ()),
        )
    return table


def _list_tasks(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    board_file = _ensure_board_file(args, project_dir, config)
    if board_file is None:
        return 1
    try:
        tasks = BoardService(board_file).find_tasks(args.query, keys=args.keys, column=args.column)
    except KnbnError as exc:
        return _fail("list tasks", exc)
    if not tasks:
        sys.stdout.write("No tasks found.\n")
        return 0
    Console(file=sys.stdout, width=120).print(_render_tasks(tasks))
    return 0


def _serve(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    try:
        import uvicorn

        from .server import create_app
    except ImportError:
        sys.stderr.write("Install server extras: pip install 'knbn[server]'\n")
        return 1

    server = get_server_config(config)
    host = args.host or server["host"]
    port = args.port or server["port"]
    app = create_app(project_dir=project_dir)
    sys.stdout.write(f"KnBn server running at http://{host}:{port}\n")
    sys.stdout.write(f"Working directory: {project_dir}\n")
    uvicorn.run(app, host=host, port=port)
    return 0


def _mcp(args: argparse.Namespace, project_dir: Path, config: dict[str, Any]) -> int:
    from .mcp_server import serve_stdio

    return serve_stdio(project_dir)


def _add_file_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-f", "--file", default=None, help="Board file to use (default: first .knbn in the project)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="knbn", description="KnBn - Kanban CLI Tool")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project-dir", default=None, help="Directory holding the board files (default: current working directory)")
    parser.add_argument("--log-level", default=None, type=str.upper, choices=LOG_LEVELS, help="Log level for stderr output")
    parser.set_defaults(func=_list_boards, no_prompt=False)
    subparsers = parser.add_subparsers(dest="command")

    plist = subparsers.add_parser("list", help="List board files")
    plist.add_argument("--no-prompt", action="store_true", help="Skip prompts for board creation")
    plist.set_defaults(func=_list_boards)

    pboard = subparsers.add_parser("create-board", help="Create a new board file")
    pboard.add_argument("name", nargs="?", default=None)
    pboard.set_defaults(func=_create_board)

    pcreate = subparsers.add_parser("create-task", help="Create a new task")
    pcreate.add_argument("title")
    _add_file_option(pcreate)
    pcreate.add_argument("--column", default=None, help="Column for the task (default: first column)")
    pcreate.add_argument("--description", default="")
    pcreate.add_argument("--priority", default=None, type=_number)
    pcreate.add_argument("--no-prompt", action="store_true", help="Skip prompts for board creation")
    pcreate.set_defaults(func=_create_task)

    pupdate = subparsers.add_parser("update-task", help="Update an existing task")
    pupdate.add_argument("task_id")
    _add_file_option(pupdate)
    pupdate.add_argument("--title", default=None, help="Update the task title")
    pupdate.add_argument("--column", default=None, help="Update the task column")
    pupdate.add_argument("--description", default=None, help="Update the task description")
    pupdate.add_argument("--priority", default=None, type=_number, help="Update the task priority")
    pupdate.add_argument("--no-prompt", action="store_true", help="Skip prompts for board creation")
    pupdate.set_defaults(func=_update_task)

    ptasks = subparsers.add_parser("list-tasks", help="Search and list tasks")
    ptasks.add_argument("query", nargs="?", default="")
    _add_file_option(ptasks)
    ptasks.add_argument("--keys", default=None, type=_keys, help=f"Comma-separated fields to search ({', '.join(SEARCH_KEYS)})")
    ptasks.add_argument("--column", default=None, help="Only tasks in this column")
    ptasks.add_argument("--no-prompt", action="store_true", help="Skip prompts for board creation")
    ptasks.set_defaults(func=_list_tasks)

    pserve = subparsers.add_parser("serve", help="Start the HTTP status server")
    pserve.add_argument("--host", default=None)
    pserve.add_argument("-p", "--port", default=None, type=int)
    pserve.set_defaults(func=_serve)

    pmcp = subparsers.add_parser("mcp", help="Run the JSON-RPC tool server on stdio")
    pmcp.set_defaults(func=_mcp)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    project_dir = _resolve_project_dir(args.project_dir)
    config, err = load_config(project_dir)
    configure_logging(args.log_level or get_log_level(config) or "WARNING")
    if err:
        logger.warning("Ignoring invalid config: {}", err)
    return int(args.func(args, project_dir, config) or 0)


if __name__ == "__main__":
    sys.exit(main())
