from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, or_

from app.pms.errors import BadRequest
from app.pms.modules.project.models import Project, ProjectTeam
from app.pms.modules.task.models import Task
from app.pms.rbac import is_admin
from app.pms.utils import round_half_up, to_naive_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.pms.models import User

REPORT_TYPES = ("WEEKLY", "MONTHLY", "CUSTOM")
REPORT_FORMATS = ("PDF", "EXCEL")
MAX_CUSTOM_SPAN = timedelta(days=365)

# Breakdown keys in report order.
TASK_STATUS_KEYS = {
    "TODO": "todo",
    "IN_PROGRESS": "inProgress",
    "REVIEW": "review",
    "DONE": "done",
    "BLOCKED": "blocked",
    "CANCELLED": "cancelled",
}
HEALTH_KEYS = {"STABLE": "stable", "WARNING": "warning", "CRITICAL": "critical"}


@dataclass
class ProjectRow:
    id: str
    code: str
    name: str
    client: str | None
    health_status: str
    lifecycle: str
    stage_progress: int
    start_date: Any
    end_date: Any
    task_stats: dict[str, int]
    completion: int


@dataclass
class TaskRow:
    id: str
    title: str
    status: str
    priority: str
    project_name: str
    project_code: str
    assignees: list[str]
    deadline: datetime | None
    estimated_hours: float | None
    actual_hours: float | None
    created_at: datetime
    completed_at: datetime | None


@dataclass
class ReportData:
    report_type: str
    start: datetime
    end: datetime
    generated_at: datetime
    projects: list[ProjectRow] = field(default_factory=list)
    tasks: list[TaskRow] = field(default_factory=list)

    @property
    def project_breakdown(self) -> dict[str, int]:
        counts = Counter(p.health_status for p in self.projects)
        return {key: counts.get(status, 0) for status, key in HEALTH_KEYS.items()}

    @property
    def task_breakdown(self) -> dict[str, int]:
        counts = Counter(t.status for t in self.tasks)
        return {key: counts.get(status, 0) for status, key in TASK_STATUS_KEYS.items()}

    @property
    def completion_rate(self) -> int:
        if not self.tasks:
            return 0
        return round_half_up(self.task_breakdown["done"] / len(self.tasks) * 100)


def _code(project: Project) -> str:
    return project.project_code or project.deal_code or project.id[:8]


class ReportService:
    def __init__(self, db) -> None:
        self.db = db

    @staticmethod
    def calculate_date_range(
        report_type: str,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        now: datetime | None = None,
    ) -> tuple[datetime, datetime]:
        """
        WEEKLY: Monday 00:00 of the current week until now.
        MONTHLY: the 1st of the current month until now.
        CUSTOM: the supplied range, at most one year long.
        """
        now = now or datetime.utcnow()
        if report_type == "WEEKLY":
            monday = now - timedelta(days=now.weekday())
            return monday.replace(hour=0, minute=0, second=0, microsecond=0), now
        if report_type == "MONTHLY":
            return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0), now
        if report_type == "CUSTOM":
            if start is None or end is None:
                raise BadRequest("Custom reports require startDate and endDate.")
            start, end = to_naive_utc(start), to_naive_utc(end)
            if start > end:
                raise BadRequest("startDate must be on or before endDate.")
            if end - start > MAX_CUSTOM_SPAN:
                raise BadRequest("Report range cannot exceed one year.")
            return start, end
        raise BadRequest(f"Unknown report type: {report_type}")

    def aggregate(
        self,
        s: "Session",
        *,
        report_type: str,
        start: datetime,
        end: datetime,
        user: "User",
        project_id: str | None = None,
        now: datetime | None = None,
    ) -> ReportData:
        project_filters = [Project.archived_at.is_(None)]
        if not is_admin(user):
            project_filters.append(Project.team.any(ProjectTeam.user_id == user.id))
        if project_id:
            project_filters.append(Project.id == project_id)

        projects = s.query(Project).filter(*project_filters).order_by(Project.created_at.desc()).all()
        project_ids = [p.id for p in projects]

        in_range = or_(
            and_(Task.created_at >= start, Task.created_at <= end),
            and_(Task.updated_at >= start, Task.updated_at <= end),
        )
        tasks: list[Task] = []
        totals: Counter[str] = Counter()
        if project_ids:
            tasks = (
                s.query(Task)
                .filter(Task.project_id.in_(project_ids), in_range)
                .order_by(Task.created_at.desc())
                .all()
            )
            for (pid,) in s.query(Task.project_id).filter(Task.project_id.in_(project_ids)):
                totals[pid] += 1

        per_project: dict[str, Counter[str]] = {pid: Counter() for pid in project_ids}
        for t in tasks:
            per_project[t.project_id][t.status] += 1

        data = ReportData(report_type=report_type, start=start, end=end, generated_at=now or datetime.utcnow())
        for p in projects:
            stats = {"total": totals[p.id]}
            stats.update({key: per_project[p.id].get(status, 0) for status, key in TASK_STATUS_KEYS.items()})
            data.projects.append(
                ProjectRow(
                    id=p.id,
                    code=_code(p),
                    name=p.name,
                    client=p.client_type,
                    health_status=p.health_status,
                    lifecycle=p.lifecycle,
                    stage_progress=p.stage_progress,
                    start_date=p.start_date,
                    end_date=p.end_date,
                    task_stats=stats,
                    completion=round_half_up(stats["done"] / stats["total"] * 100) if stats["total"] else 0,
                )
            )
        for t in tasks:
            data.tasks.append(
                TaskRow(
                    id=t.id,
                    title=t.title,
                    status=t.status,
                    priority=t.priority,
                    project_name=t.project.name,
                    project_code=_code(t.project),
                    assignees=[a.user.display_name for a in t.assignees],
                    deadline=t.deadline,
                    estimated_hours=t.estimated_hours,
                    actual_hours=t.actual_hours,
                    created_at=t.created_at,
                    completed_at=t.completed_at,
                )
            )
        return data

    def summary(self, data: ReportData) -> dict[str, Any]:
        return {
            "reportType": data.report_type,
            "dateRange": {"startDate": data.start.isoformat(), "endDate": data.end.isoformat()},
            "totalProjects": len(data.projects),
            "totalTasks": len(data.tasks),
            "projectStatusBreakdown": data.project_breakdown,
            "taskStatusBreakdown": data.task_breakdown,
            "overallCompletionRate": data.completion_rate,
        }
