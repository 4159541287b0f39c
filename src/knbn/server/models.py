"""Pydantic models for API responses."""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field

from ..model import Task


class BoardFileInfo(BaseModel):
    """One board file in the project directory."""

    filename: str
    path: str
    name: Optional[str] = None  # None when the file could not be read


class BoardListResponse(BaseModel):
    project_dir: str
    boards: list[BoardFileInfo] = Field(default_factory=list)


class TaskInfo(BaseModel):
    """Task as shown by the API, keyed like the board file."""

    id: int
    title: str
    description: str = ""
    column: str
    sprint: Optional[str] = None
    labels: Optional[list[str]] = None
    storyPoints: Optional[Union[int, float]] = None
    priority: Optional[Union[int, float]] = None
    created: str = ""
    updated: str = ""
    moved: Optional[str] = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskInfo":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            column=task.column,
            sprint=task.sprint,
            labels=list(task.labels) if task.labels is not None else None,
            storyPoints=task.story_points,
            priority=task.priority,
            created=task.dates.created,
            updated=task.dates.updated,
            moved=task.dates.moved,
        )


class TaskListResponse(BaseModel):
    board: str
    query: str = ""
    count: int = 0
    tasks: list[TaskInfo] = Field(default_factory=list)
