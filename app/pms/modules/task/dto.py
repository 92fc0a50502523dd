from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.pms.modules.task.models import Task
from app.pms.utils import iso
from app.pms.validation import Dto, QueryDto, RichTextStr, SanitizedStr

TaskStatus = Literal["TODO", "IN_PROGRESS", "REVIEW", "DONE", "BLOCKED", "CANCELLED"]
TaskPriority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]


class CreateTaskDto(Dto):
    project_id: str
    parent_id: str | None = None
    title: SanitizedStr = Field(min_length=1, max_length=500)
    description: RichTextStr | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    deadline: datetime | None = None
    reviewer_id: int | None = None
    assignee_ids: list[int] | None = None


class UpdateTaskDto(Dto):
    title: SanitizedStr | None = Field(default=None, max_length=500)
    description: RichTextStr | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    deadline: datetime | None = None
    reviewer_id: int | None = None
    order_index: int | None = Field(default=None, ge=0)


class UpdateTaskStatusDto(Dto):
    status: TaskStatus


class AssignUsersDto(Dto):
    user_ids: list[int]


class ReorderItemDto(Dto):
    id: str
    order_index: int = Field(ge=0)
    status: TaskStatus | None = None


class ReorderTasksDto(Dto):
    tasks: list[ReorderItemDto]


class TaskListQuery(QueryDto):
    project_id: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assignee_id: int | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)
    sort_by: str = "order_index"
    sort_order: Literal["asc", "desc"] = "asc"


class MyTasksQuery(QueryDto):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)
    sort_by: str = "deadline"
    sort_order: Literal["asc", "desc"] = "asc"


def _user_ref(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.display_name, "email": user.email}


def task_out(t: Task, *, completed_subtasks: int = 0) -> dict:
    return {
        "id": t.id,
        "projectId": t.project_id,
        "parentId": t.parent_id,
        "title": t.title,
        "description": t.description,
        "status": t.status,
        "priority": t.priority,
        "orderIndex": t.order_index,
        "estimatedHours": t.estimated_hours,
        "actualHours": t.actual_hours,
        "startDate": iso(t.start_date),
        "deadline": iso(t.deadline),
        "startedAt": iso(t.started_at),
        "completedAt": iso(t.completed_at),
        "reviewerId": t.reviewer_id,
        "reviewer": _user_ref(t.reviewer),
        "createdBy": _user_ref(t.created_by),
        "assignees": [
            {"id": a.id, "userId": a.user_id, "user": _user_ref(a.user)} for a in t.assignees
        ],
        "subtaskCount": len(t.subtasks),
        "completedSubtaskCount": completed_subtasks,
        "project": {"id": t.project.id, "code": t.project.project_code, "name": t.project.name} if t.project else None,
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
    }
