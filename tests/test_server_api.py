"""Test the FastAPI status server endpoints.

To run these tests, install with:
    pip install -e ".[test,server]"
"""

from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
except ImportError:
    pytest.skip(
        "FastAPI TestClient requires httpx. Install with: pip install -e '.[test,server]'",
        allow_module_level=True,
    )

from knbn.server import create_app
from knbn.service import BoardService, create_board


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project directory with one populated board."""
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    path = project_dir / "work.knbn"
    create_board(path, name="Work")
    service = BoardService(path)
    service.create_task("Fix login bug", priority=1, labels=["bug"])
    service.create_task("Write release notes", column="todo")
    return project_dir


@pytest.fixture
def client(project: Path) -> TestClient:
    return TestClient(create_app(project_dir=project))


def test_root_page_names_working_directory(client: TestClient, project: Path) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "<h1>KnBn</h1>" in response.text
    assert str(project.resolve()) in response.text
    assert "work.knbn" in response.text


def test_list_boards(client: TestClient) -> None:
    response = client.get("/api/boards")
    assert response.status_code == 200
    data = response.json()
    assert data["boards"] == [
        {"filename": "work.knbn", "path": data["boards"][0]["path"], "name": "Work"},
    ]


def test_get_board(client: TestClient) -> None:
    response = client.get("/api/boards/work.knbn")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Work"
    assert data["metadata"]["nextId"] == 4
    assert set(data["tasks"]) == {"1", "2", "3"}


def test_missing_board(client: TestClient) -> None:
    assert client.get("/api/boards/nope.knbn").status_code == 404
    assert client.get("/api/boards/nope.knbn/tasks").status_code == 404


def test_rejects_non_board_names(client: TestClient) -> None:
    assert client.get("/api/boards/notes.txt").status_code == 400


def test_search_tasks(client: TestClient) -> None:
    response = client.get("/api/boards/work.knbn/tasks", params={"q": "BUG"})
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["tasks"][0]["title"] == "Fix login bug"
    assert data["tasks"][0]["labels"] == ["bug"]


def test_all_tasks_sorted(client: TestClient) -> None:
    data = client.get("/api/boards/work.knbn/tasks").json()
    assert data["count"] == 3
    assert data["tasks"][0]["title"] == "Fix login bug"


def test_search_with_keys(client: TestClient) -> None:
    data = client.get("/api/boards/work.knbn/tasks", params={"q": "bug", "keys": "labels"}).json()
    assert [t["id"] for t in data["tasks"]] == [2]


def test_invalid_keys(client: TestClient) -> None:
    response = client.get("/api/boards/work.knbn/tasks", params={"q": "x", "keys": "title,colour"})
    assert response.status_code == 400
    assert "Unknown search keys" in response.json()["detail"]
