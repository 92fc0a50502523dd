"""
Sales pipeline facade.

A pipeline is a Project whose lifecycle is still a pipeline stage. Every write
goes through the project module's ProjectService; this layer only narrows the
record set and the reachable stages.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.pms.errors import NotFound
from app.pms.modules.project.models import Project
from app.pms.modules.project.service import PIPELINE_STAGES

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.pms.models import User
    from app.pms.modules.project.service import ProjectService

# WON is reached only through decide().
MANUAL_STAGES = ("LEAD", "QUALIFIED", "EVALUATION", "NEGOTIATION", "LOST")


class SalesPipelineService:
    def __init__(self, db, projects: "ProjectService") -> None:
        self.db = db
        self.projects = projects

    def get(self, s: "Session", pipeline_id: str) -> Project:
        project = s.get(Project, pipeline_id)
        if project is None or project.lifecycle not in PIPELINE_STAGES:
            raise NotFound(f"Pipeline not found: {pipeline_id}")
        return project

    def list_pipelines(
        self,
        s: "Session",
        *,
        user: "User",
        status: str | None = None,
        decision: str | None = None,
        nvkd_id: int | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[Project], dict[str, int]]:
        return self.projects.list_projects(
            s,
            user=user,
            search=search,
            lifecycle=status,
            lifecycles=PIPELINE_STAGES,
            decision=decision,
            nvkd_id=nvkd_id,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    def create(self, s: "Session", changes: dict[str, Any], user: "User") -> Project:
        return self.projects.create_pipeline(s, changes, user)

    def update_sale(self, s: "Session", pipeline: Project, changes: dict[str, Any], user: "User") -> Project:
        return self.projects.update_sale(s, pipeline, changes, user)

    def evaluate(self, s: "Session", pipeline: Project, changes: dict[str, Any], user: "User") -> Project:
        return self.projects.evaluate(s, pipeline, changes, user)

    def update_stage(self, s: "Session", pipeline: Project, stage: str, user: "User") -> Project:
        self.projects.require_pending(pipeline)
        return self.projects.change_lifecycle(s, pipeline, stage, user, allowed=MANUAL_STAGES)

    def add_weekly_note(self, s: "Session", pipeline: Project, note: str, user: "User") -> Project:
        return self.projects.add_weekly_note(s, pipeline, note, user)

    def decide(self, s: "Session", pipeline: Project, decision: str, user: "User", *, note: str | None) -> Project:
        return self.projects.decide(s, pipeline, decision, user, note=note)
