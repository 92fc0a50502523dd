from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func

from app.pms.models import AuditEvent, User
from app.pms.modules.file.models import File
from app.pms.modules.project.models import Project
from app.pms.modules.task.models import Task, TaskAssignee

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

PRIORITY_RANK = case(
    {"URGENT": 4, "HIGH": 3, "MEDIUM": 2, "LOW": 1},
    value=Task.priority,
    else_=0,
)


class DashboardService:
    def __init__(self, db) -> None:
        self.db = db

    def stats(self, s: "Session") -> dict[str, Any]:
        def count(model, *criteria) -> int:
            return s.query(func.count(model.id)).filter(*criteria).scalar() or 0

        file_count, file_size = s.query(func.count(File.id), func.coalesce(func.sum(File.size), 0)).one()
        return {
            "projects": {
                "total": count(Project, Project.archived_at.is_(None)),
                "warning": count(Project, Project.archived_at.is_(None), Project.health_status == "WARNING"),
                "critical": count(Project, Project.archived_at.is_(None), Project.health_status == "CRITICAL"),
            },
            "tasks": {
                "total": count(Task),
                "inProgress": count(Task, Task.status == "IN_PROGRESS"),
                "done": count(Task, Task.status == "DONE"),
            },
            "users": {
                "total": count(User),
                "active": count(User, User.is_active.is_(True)),
            },
            "files": {"total": file_count, "totalSize": int(file_size or 0)},
        }

    def recent_activity(self, s: "Session", limit: int = 10) -> list[AuditEvent]:
        return s.query(AuditEvent).order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()

    def my_tasks(self, s: "Session", user: User, *, now: datetime | None = None, limit: int = 20) -> dict[str, Any]:
        """Open tasks assigned to the user, most urgent first, with overdue / due-today counts."""
        now = now or datetime.utcnow()
        start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_today = start_of_today + timedelta(days=1)
        tasks = (
            s.query(Task)
            .filter(
                Task.assignees.any(TaskAssignee.user_id == user.id),
                Task.status.notin_(("DONE", "CANCELLED")),
            )
            .order_by(PRIORITY_RANK.desc(), Task.deadline.is_(None), Task.deadline.asc())
            .limit(limit)
            .all()
        )
        return {
            "overdue": sum(1 for t in tasks if t.deadline and t.deadline < start_of_today),
            "dueToday": sum(1 for t in tasks if t.deadline and start_of_today <= t.deadline < end_of_today),
            "tasks": tasks,
        }
