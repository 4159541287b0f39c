from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from knbn.cli import main
from knbn.store import load_board


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger.remove()


def _run(tmp_path: Path, *argv: str) -> int:
    return main(["--project-dir", str(tmp_path), *argv])


@pytest.fixture
def project(tmp_path: Path) -> Path:
    assert _run(tmp_path, "create-board", "Team Board") == 0
    return tmp_path


def test_list_without_boards_skips_prompt(tmp_path: Path, capsys) -> None:
    assert _run(tmp_path, "list", "--no-prompt") == 0
    out = capsys.readouterr().out
    assert "No .knbn board files found in current directory." in out
    assert "Skipping prompt for board creation" in out
    assert list(tmp_path.iterdir()) == []


def test_default_command_offers_board_creation(tmp_path: Path, capsys, monkeypatch) -> None:
    answers = iter(["y", "Sprint Board"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    assert _run(tmp_path) == 0
    assert "Created board file: sprint-board.knbn" in capsys.readouterr().out
    assert load_board(tmp_path / "sprint-board.knbn").name == "Sprint Board"


def test_declining_the_prompt(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.setattr("builtins.input", lambda prompt="": "n")
    assert _run(tmp_path, "list") == 0
    assert "knbn create-board [name]" in capsys.readouterr().out


def test_create_board_and_list(project: Path, capsys) -> None:
    assert (project / "team-board.knbn").exists()
    capsys.readouterr()
    assert _run(project, "list") == 0
    out = capsys.readouterr().out
    assert "Found 1 .knbn board files:" in out
    assert "  team-board.knbn: Team Board" in out


def test_create_board_default_name(tmp_path: Path) -> None:
    assert _run(tmp_path, "create-board") == 0
    assert load_board(tmp_path / "my-board.knbn").name == "My Board"


def test_create_board_twice_fails(project: Path, capsys) -> None:
    assert _run(project, "create-board", "Team Board") == 1
    assert "Failed to create board:" in capsys.readouterr().err


def test_create_board_uses_configured_columns(tmp_path: Path) -> None:
    (tmp_path / "knbn.config.yaml").write_text("columns: [todo, doing, done]\n", encoding="utf-8")
    assert _run(tmp_path, "create-board", "Cfg") == 0
    assert [c.name for c in load_board(tmp_path / "cfg.knbn").columns] == ["todo", "doing", "done"]


def test_create_task(project: Path, capsys) -> None:
    capsys.readouterr()
    assert _run(project, "create-task", "Write docs") == 0
    out = capsys.readouterr().out
    assert "Created task #2: Write docs" in out
    assert "Column: backlog" in out


def test_create_task_with_options(project: Path) -> None:
    assert _run(project, "create-task", "Ship", "--column", "working", "--priority", "2", "--description", "soon") == 0
    task = load_board(project / "team-board.knbn").tasks[2]
    assert (task.column, task.priority, task.description) == ("working", 2, "soon")


def test_create_task_with_explicit_file(project: Path) -> None:
    assert _run(project, "create-board", "Other") == 0
    assert _run(project, "create-task", "Elsewhere", "-f", "other.knbn") == 0
    assert load_board(project / "other.knbn").tasks[2].title == "Elsewhere"
    assert 2 not in load_board(project / "team-board.knbn").tasks


def test_create_task_without_board(tmp_path: Path, capsys) -> None:
    assert _run(tmp_path, "create-task", "Orphan", "--no-prompt") == 1
    assert "Cannot continue without a .knbn file" in capsys.readouterr().err


def test_update_task(project: Path, capsys) -> None:
    capsys.readouterr()
    assert _run(project, "update-task", "1", "--column", "todo", "--title", "Renamed") == 0
    out = capsys.readouterr().out
    assert "Updated task #1: Renamed" in out
    assert "Column: todo" in out


@pytest.mark.parametrize(
    "argv,message",
    [
        (["update-task", "abc", "--title", "x"], "Task ID must be a number"),
        (["update-task", "1"], "No updates specified"),
        (["update-task", "99", "--title", "x"], "Failed to update task: Task with ID 99 not found"),
    ],
)
def test_update_task_errors(project: Path, capsys, argv, message) -> None:
    assert _run(project, *argv) == 1
    assert message in capsys.readouterr().err


def test_list_tasks(project: Path, capsys) -> None:
    _run(project, "create-task", "Alpha", "--priority", "1")
    _run(project, "create-task", "Beta", "--column", "todo")
    capsys.readouterr()
    assert _run(project, "list-tasks") == 0
    out = capsys.readouterr().out
    assert "Alpha" in out and "Beta" in out
    assert out.index("Alpha") < out.index("Beta")

    assert _run(project, "list-tasks", "beta", "--keys", "title") == 0
    out = capsys.readouterr().out
    assert "Beta" in out and "Alpha" not in out

    assert _run(project, "list-tasks", "--column", "working") == 0
    assert "No tasks found." in capsys.readouterr().out


def test_list_tasks_rejects_unknown_keys(project: Path) -> None:
    with pytest.raises(SystemExit):
        _run(project, "list-tasks", "x", "--keys", "title,colour")
