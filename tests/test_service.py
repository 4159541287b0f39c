"""Tests for BoardService: engine operations persisted through the store."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from knbn.errors import AlreadyExistsError, InvalidArgumentError, NotFoundError
from knbn.service import BoardService, create_board
from knbn.store import load_board


@pytest.fixture
def service(tmp_path: Path, clock) -> BoardService:
    path = tmp_path / "team.knbn"
    create_board(path, name="Team", clock=clock)
    return BoardService(path, clock=clock)


class TestTasks:
    def test_create_persists(self, service: BoardService) -> None:
        task = service.create_task("Write docs", priority=2, labels=["docs"])
        assert task.id == 2
        assert task.column == "backlog"
        stored = load_board(service.path)
        assert stored.tasks[2] == task
        assert stored.metadata.next_id == 3

    def test_update_persists(self, service: BoardService, clock) -> None:
        service.create_task("Write docs")
        clock.advance(minutes=10)
        task = service.update_task("2", {"column": "working", "title": "Write more docs"})
        assert task.dates.moved == clock.iso()
        assert service.get_task(2).title == "Write more docs"

    def test_update_rejects_empty(self, service: BoardService) -> None:
        with pytest.raises(InvalidArgumentError, match="No updates specified"):
            service.update_task(1, {})

    def test_update_missing_task_leaves_file(self, service: BoardService) -> None:
        before = service.path.read_bytes()
        with pytest.raises(NotFoundError, match="Task with ID 999 not found on the board"):
            service.update_task(999, {"title": "X"})
        assert service.path.read_bytes() == before

    def test_get_missing(self, service: BoardService) -> None:
        with pytest.raises(NotFoundError):
            service.get_task(42)

    def test_find_sorts_and_filters(self, service: BoardService, clock) -> None:
        service.create_task("low", priority=5, column="todo")
        clock.advance(seconds=1)
        service.create_task("high", priority=1, column="todo")
        clock.advance(seconds=1)
        service.create_task("none", column="working")
        assert [t.title for t in service.find_tasks()] == ["high", "low", "none", "Create a .knbn!"]
        assert [t.title for t in service.find_tasks(column="todo")] == ["high", "low"]
        assert [t.title for t in service.find_tasks("HIGH", keys=["title"])] == ["high"]


class TestColumns:
    def test_lifecycle(self, service: BoardService) -> None:
        service.add_column("review", position=3)
        assert [c.name for c in service.list_columns()] == ["backlog", "todo", "working", "review", "done"]
        service.update_column("review", {"name": "qa"})
        assert service.get_column("qa").name == "qa"
        columns = service.move_column("qa", 0)
        assert columns[0].name == "qa"
        service.remove_column("qa")
        with pytest.raises(NotFoundError):
            service.get_column("qa")

    def test_duplicate(self, service: BoardService) -> None:
        with pytest.raises(AlreadyExistsError):
            service.add_column("done")

    def test_tasks_in_column(self, service: BoardService) -> None:
        service.create_task("a", column="done")
        assert service.get_column_task_count("done") == 2
        assert {t.title for t in service.get_tasks_in_column("done")} == {"a", "Create a .knbn!"}


class TestLabelsAndSprints:
    def test_labels(self, service: BoardService) -> None:
        service.add_label("bug", "red")
        service.update_label("bug", {"name": "defect"})
        assert [(label.name, label.color) for label in service.list_labels()] == [("defect", "red")]
        service.remove_label("defect")
        assert service.list_labels() == []

    def test_sprints(self, service: BoardService, clock) -> None:
        now = clock()
        service.add_sprint("S1", starts=(now - timedelta(days=1)).isoformat(), ends=(now + timedelta(days=1)).isoformat())
        service.add_sprint("S2", starts=(now + timedelta(days=7)).isoformat())
        assert [s.name for s in service.get_active_sprints()] == ["S1"]
        assert [s.name for s in service.get_upcoming_sprints()] == ["S2"]
        assert service.get_completed_sprints() == []
        clock.advance(days=3)
        assert [s.name for s in service.get_completed_sprints()] == ["S1"]

        service.update_sprint("S2", {"capacity": 13})
        assert service.get_sprint("S2").capacity == 13
        service.remove_sprint("S2")
        assert [s.name for s in service.list_sprints()] == ["S1"]

    def test_missing_sprint(self, service: BoardService) -> None:
        with pytest.raises(NotFoundError, match='Sprint with name "S9" not found'):
            service.get_sprint("S9")


@pytest.mark.parametrize(
    "action",
    [
        lambda s: s.update_column("nope", {"name": "x"}),
        lambda s: s.move_column("nope", 0),
        lambda s: s.update_label("nope", {"color": "red"}),
        lambda s: s.update_sprint("nope", {"capacity": 1}),
    ],
)
def test_missing_names_leave_file_untouched(service: BoardService, action) -> None:
    before = service.path.read_bytes()
    with pytest.raises(NotFoundError, match='with name "nope" not found'):
        action(service)
    assert service.path.read_bytes() == before


def test_create_board_refuses_existing(tmp_path: Path, clock) -> None:
    path = tmp_path / "b.knbn"
    create_board(path, clock=clock)
    with pytest.raises(AlreadyExistsError):
        create_board(path, clock=clock)
