"""
Task service.

- A task belongs to exactly one project; access requires admin or team membership
- New tasks go to the end of their sibling list (order_index = max + 1)
- started_at / completed_at are stamped the first time a task enters IN_PROGRESS / DONE
- Assigning users replaces the whole assignee set
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.pms.audit import record_event
from app.pms.errors import BadRequest, Forbidden, NotFound
from app.pms.models import User
from app.pms.modules.project.models import Project, ProjectTeam
from app.pms.modules.task.models import Task, TaskAssignee
from app.pms.rbac import is_admin
from app.pms.utils import paginate

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


TASK_STATUSES = ("TODO", "IN_PROGRESS", "REVIEW", "DONE", "BLOCKED", "CANCELLED")
TASK_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")

KANBAN_COLUMNS = (
    ("TODO", "To Do"),
    ("IN_PROGRESS", "In Progress"),
    ("REVIEW", "Review"),
    ("DONE", "Done"),
    ("BLOCKED", "Blocked"),
)

TASK_FIELDS = (
    "title",
    "description",
    "priority",
    "estimated_hours",
    "actual_hours",
    "start_date",
    "deadline",
    "reviewer_id",
    "order_index",
)
SORTABLE = ("order_index", "deadline", "created_at", "updated_at", "priority", "status", "title")


def stamp_status(task: Task, status: str, *, now: datetime | None = None) -> None:
    now = now or datetime.utcnow()
    task.status = status
    if status == "IN_PROGRESS" and task.started_at is None:
        task.started_at = now
    if status == "DONE" and task.completed_at is None:
        task.completed_at = now


def completed_subtasks(s: "Session", task_id: str) -> int:
    return s.query(func.count(Task.id)).filter(Task.parent_id == task_id, Task.status == "DONE").scalar() or 0


class TaskService:
    def __init__(self, db) -> None:
        self.db = db

    def check_project_access(self, s: "Session", project_id: str, user: User) -> Project:
        project = s.get(Project, project_id)
        if project is None:
            raise NotFound(f"Project not found: {project_id}")
        if not is_admin(user) and not any(m.user_id == user.id for m in project.team):
            raise Forbidden("You do not have access to this project")
        return project

    def get(self, s: "Session", task_id: str, user: User) -> Task:
        task = s.get(Task, task_id)
        if task is None:
            raise NotFound(f"Task not found: {task_id}")
        self.check_project_access(s, task.project_id, user)
        return task

    def _filtered(self, q, *, status: str | None, priority: str | None, search: str | None):
        if status:
            q = q.filter(Task.status == status)
        if priority:
            q = q.filter(Task.priority == priority)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(Task.title.ilike(like), Task.description.ilike(like)))
        return q

    def _ordered(self, q, sort_by: str, sort_order: str):
        column = getattr(Task, sort_by if sort_by in SORTABLE else "order_index")
        return q.order_by(column.asc() if sort_order == "asc" else column.desc())

    def list_tasks(
        self,
        s: "Session",
        *,
        user: User,
        project_id: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        assignee_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "order_index",
        sort_order: str = "asc",
    ) -> tuple[list[Task], dict[str, int]]:
        q = s.query(Task)
        if project_id:
            self.check_project_access(s, project_id, user)
            q = q.filter(Task.project_id == project_id)
        elif not is_admin(user):
            member_of = s.query(ProjectTeam.project_id).filter(ProjectTeam.user_id == user.id)
            q = q.filter(Task.project_id.in_(member_of))
        if assignee_id:
            q = q.filter(Task.assignees.any(TaskAssignee.user_id == assignee_id))
        q = self._filtered(q, status=status, priority=priority, search=search)
        return paginate(self._ordered(q, sort_by, sort_order), page, limit)

    def my_tasks(
        self,
        s: "Session",
        *,
        user: User,
        status: str | None = None,
        priority: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "deadline",
        sort_order: str = "asc",
    ) -> tuple[list[Task], dict[str, int]]:
        q = s.query(Task).filter(Task.assignees.any(TaskAssignee.user_id == user.id))
        q = self._filtered(q, status=status, priority=priority, search=search)
        return paginate(self._ordered(q, sort_by, sort_order), page, limit)

    def kanban(self, s: "Session", project_id: str, user: User) -> list[dict[str, Any]]:
        """Top-level tasks of a project grouped into status columns (CANCELLED is not shown)."""
        self.check_project_access(s, project_id, user)
        tasks = (
            s.query(Task)
            .filter(Task.project_id == project_id, Task.parent_id.is_(None))
            .order_by(Task.order_index.asc())
            .all()
        )
        return [
            {"status": status, "label": label, "tasks": [t for t in tasks if t.status == status]}
            for status, label in KANBAN_COLUMNS
        ]

    def _ensure_users(self, s: "Session", user_ids: list[int]) -> None:
        if not user_ids:
            return
        found = {uid for (uid,) in s.query(User.id).filter(User.id.in_(user_ids)).all()}
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise BadRequest(f"Unknown users: {', '.join(str(m) for m in missing)}")

    def create(self, s: "Session", changes: dict[str, Any], user: User) -> Task:
        project_id = changes["project_id"]
        self.check_project_access(s, project_id, user)
        parent_id = changes.get("parent_id")
        if parent_id:
            parent = s.get(Task, parent_id)
            if parent is None or parent.project_id != project_id:
                raise BadRequest("Parent task must belong to the same project.")
        assignee_ids = list(dict.fromkeys(changes.get("assignee_ids") or []))
        self._ensure_users(s, assignee_ids + ([changes["reviewer_id"]] if changes.get("reviewer_id") else []))

        max_order = (
            s.query(func.max(Task.order_index))
            .filter(Task.project_id == project_id)
            .filter(Task.parent_id == parent_id if parent_id else Task.parent_id.is_(None))
            .scalar()
        )
        task = Task(
            project_id=project_id,
            parent_id=parent_id,
            title=changes["title"],
            description=changes.get("description"),
            priority=changes.get("priority") or "MEDIUM",
            estimated_hours=changes.get("estimated_hours"),
            deadline=changes.get("deadline"),
            start_date=changes.get("start_date"),
            reviewer_id=changes.get("reviewer_id"),
            order_index=(max_order if max_order is not None else -1) + 1,
            created_by_user_id=user.id,
        )
        stamp_status(task, changes.get("status") or "TODO")
        for uid in assignee_ids:
            task.assignees.append(TaskAssignee(user_id=uid))
        s.add(task)
        s.flush()
        record_event(
            s,
            actor=user,
            action="task.create",
            entity_type="Task",
            entity_id=task.id,
            metadata={"project_id": project_id, "title": task.title, "assignees": assignee_ids},
        )
        return task

    def update(self, s: "Session", task: Task, changes: dict[str, Any], user: User) -> Task:
        if changes.get("reviewer_id"):
            self._ensure_users(s, [changes["reviewer_id"]])
        changed = []
        for key in TASK_FIELDS:
            if key in changes and changes[key] is not None:
                setattr(task, key, changes[key])
                changed.append(key)
        if changes.get("status"):
            stamp_status(task, changes["status"])
            changed.append("status")
        task.updated_at = datetime.utcnow()
        s.flush()
        if "reviewer_id" in changed:
            s.expire(task, ["reviewer"])
        record_event(s, actor=user, action="task.update", entity_type="Task", entity_id=task.id, metadata={"fields": changed})
        return task

    def update_status(self, s: "Session", task: Task, status: str, user: User) -> Task:
        from_status = task.status
        stamp_status(task, status)
        task.updated_at = datetime.utcnow()
        s.flush()
        record_event(
            s,
            actor=user,
            action="task.status",
            entity_type="Task",
            entity_id=task.id,
            metadata={"from": from_status, "to": status},
        )
        return task

    def assign(self, s: "Session", task: Task, user_ids: list[int], user: User) -> Task:
        user_ids = list(dict.fromkeys(user_ids))
        self._ensure_users(s, user_ids)
        task.assignees.clear()
        s.flush()
        for uid in user_ids:
            task.assignees.append(TaskAssignee(user_id=uid))
        task.updated_at = datetime.utcnow()
        s.flush()
        record_event(s, actor=user, action="task.assign", entity_type="Task", entity_id=task.id, metadata={"user_ids": user_ids})
        return task

    def reorder(self, s: "Session", project_id: str, items: list[dict[str, Any]], user: User) -> None:
        self.check_project_access(s, project_id, user)
        ids = [it["id"] for it in items]
        tasks = {t.id: t for t in s.query(Task).filter(Task.id.in_(ids), Task.project_id == project_id).all()}
        missing = [tid for tid in ids if tid not in tasks]
        if missing:
            raise NotFound(f"Tasks not found in project: {', '.join(missing)}")
        now = datetime.utcnow()
        for it in items:
            task = tasks[it["id"]]
            task.order_index = it["order_index"]
            if it.get("status"):
                stamp_status(task, it["status"], now=now)
            task.updated_at = now
        s.flush()
        record_event(s, actor=user, action="task.reorder", entity_type="Project", entity_id=project_id, metadata={"count": len(items)})

    def delete(self, s: "Session", task: Task, user: User) -> None:
        task_id, project_id = task.id, task.project_id
        s.delete(task)
        s.flush()
        record_event(s, actor=user, action="task.delete", entity_type="Task", entity_id=task_id, metadata={"project_id": project_id})
