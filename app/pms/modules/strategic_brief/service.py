"""
Strategic brief service.

Workflow:
- A brief is created against a pipeline OR a project with 16 empty sections
- Sections are edited individually; completion % is recalculated on every edit
- DRAFT -> SUBMITTED (requires 100%) -> APPROVED | REVISION_REQUESTED -> SUBMITTED
- Pipeline acceptance links an existing pipeline brief to the new project, or creates one
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.pms.audit import record_event
from app.pms.errors import BadRequest, NotFound
from app.pms.modules.strategic_brief.models import BriefRevision, BriefSection, StrategicBrief
from app.pms.modules.strategic_brief.sections import BRIEF_SECTIONS, TOTAL_SECTIONS
from app.pms.utils import round_half_up

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.pms.models import User


STATUS_TRANSITIONS = {
    "DRAFT": ["SUBMITTED"],
    "SUBMITTED": ["APPROVED", "REVISION_REQUESTED"],
    "REVISION_REQUESTED": ["SUBMITTED"],
    "APPROVED": [],
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in STATUS_TRANSITIONS.get(from_status, [])


def completion_pct(sections: list[BriefSection]) -> int:
    completed = sum(1 for sec in sections if sec.is_complete)
    return round_half_up(completed / TOTAL_SECTIONS * 100)


class StrategicBriefService:
    def __init__(self, db) -> None:
        self.db = db

    def _new_brief(self, *, pipeline_id: str | None, project_id: str | None) -> StrategicBrief:
        brief = StrategicBrief(pipeline_id=pipeline_id, project_id=project_id, status="DRAFT", completion_pct=0)
        for sec in BRIEF_SECTIONS:
            brief.sections.append(
                BriefSection(section_num=sec["num"], section_key=sec["key"], title=sec["title"], is_complete=False)
            )
        return brief

    def create(self, s: "Session", *, pipeline_id: str | None, project_id: str | None, user: "User") -> StrategicBrief:
        """
        A new brief references exactly one of pipeline/project. The request DTO accepts
        any combination, so the rule is enforced here.
        """
        from app.pms.modules.project.models import Project

        if pipeline_id and project_id:
            raise BadRequest("Provide either pipelineId or projectId, not both.")
        if not pipeline_id and not project_id:
            raise BadRequest("pipelineId or projectId is required.")
        target_id = pipeline_id or project_id
        if s.get(Project, target_id) is None:
            raise NotFound(f"{'Pipeline' if pipeline_id else 'Project'} not found: {target_id}")
        existing = self.find_for_record(s, target_id)
        if existing is not None:
            raise BadRequest("A strategic brief already exists for this record.")

        brief = self._new_brief(pipeline_id=pipeline_id, project_id=project_id)
        s.add(brief)
        s.flush()
        record_event(
            s,
            actor=user,
            action="strategic_brief.create",
            entity_type="StrategicBrief",
            entity_id=brief.id,
            metadata={"pipeline_id": pipeline_id, "project_id": project_id},
        )
        return brief

    def find_for_record(self, s: "Session", record_id: str) -> StrategicBrief | None:
        """Pipeline and project ids name the same row, so a brief may sit under either column."""
        return (
            s.query(StrategicBrief)
            .filter(or_(StrategicBrief.pipeline_id == record_id, StrategicBrief.project_id == record_id))
            .order_by(StrategicBrief.created_at.desc())
            .first()
        )

    def find_for(self, s: "Session", *, pipeline_id: str | None = None, project_id: str | None = None) -> StrategicBrief | None:
        q = s.query(StrategicBrief)
        if pipeline_id:
            q = q.filter(StrategicBrief.pipeline_id == pipeline_id)
        if project_id:
            q = q.filter(StrategicBrief.project_id == project_id)
        return q.order_by(StrategicBrief.created_at.desc()).first()

    def ensure_for_accepted_pipeline(self, s: "Session", *, project_id: str, user: "User") -> StrategicBrief:
        """Link the pipeline's brief to the project, or create one referencing both."""
        brief = self.find_for(s, pipeline_id=project_id) or self.find_for(s, project_id=project_id)
        if brief is None:
            brief = self._new_brief(pipeline_id=project_id, project_id=project_id)
            s.add(brief)
        else:
            brief.pipeline_id = project_id
            brief.project_id = project_id
            brief.updated_at = datetime.utcnow()
        s.flush()
        record_event(
            s,
            actor=user,
            action="strategic_brief.link_project",
            entity_type="StrategicBrief",
            entity_id=brief.id,
            metadata={"project_id": project_id},
        )
        return brief

    def get(self, s: "Session", brief_id: str) -> StrategicBrief:
        brief = s.get(StrategicBrief, brief_id)
        if brief is None:
            raise NotFound(f"Strategic brief not found: {brief_id}")
        return brief

    def get_by_project(self, s: "Session", project_id: str) -> StrategicBrief:
        brief = self.find_for(s, project_id=project_id) or self.find_for(s, pipeline_id=project_id)
        if brief is None:
            raise NotFound(f"No strategic brief for project {project_id}")
        return brief

    def update_section(
        self,
        s: "Session",
        brief: StrategicBrief,
        section_num: int,
        *,
        changes: dict[str, Any],
        user: "User",
    ) -> BriefSection:
        if brief.status in ("SUBMITTED", "APPROVED"):
            raise BadRequest(f"Brief is {brief.status} and cannot be edited.")
        section = next((sec for sec in brief.sections if sec.section_num == section_num), None)
        if section is None:
            raise NotFound(f"Section {section_num} not found")
        if "data" in changes:
            section.data = changes["data"]
        if "is_complete" in changes and changes["is_complete"] is not None:
            section.is_complete = bool(changes["is_complete"])
        section.updated_at = datetime.utcnow()
        brief.completion_pct = completion_pct(brief.sections)
        brief.updated_at = datetime.utcnow()
        s.flush()
        record_event(
            s,
            actor=user,
            action="strategic_brief.update_section",
            entity_type="StrategicBrief",
            entity_id=brief.id,
            metadata={"section": section_num, "is_complete": section.is_complete, "completion_pct": brief.completion_pct},
        )
        return section

    def _transition(self, brief: StrategicBrief, to_status: str, verb: str) -> None:
        if not can_transition(brief.status, to_status):
            raise BadRequest(f"Cannot {verb} from status {brief.status}")
        brief.status = to_status
        brief.updated_at = datetime.utcnow()

    def submit(self, s: "Session", brief: StrategicBrief, user: "User") -> StrategicBrief:
        if brief.completion_pct < 100:
            raise BadRequest(f"All {TOTAL_SECTIONS} sections must be completed before submitting")
        self._transition(brief, "SUBMITTED", "submit")
        brief.submitted_at = datetime.utcnow()
        s.flush()
        record_event(s, actor=user, action="strategic_brief.submit", entity_type="StrategicBrief", entity_id=brief.id)
        return brief

    def approve(self, s: "Session", brief: StrategicBrief, user: "User") -> StrategicBrief:
        self._transition(brief, "APPROVED", "approve")
        brief.approved_at = datetime.utcnow()
        brief.approved_by_id = user.id
        s.flush()
        record_event(s, actor=user, action="strategic_brief.approve", entity_type="StrategicBrief", entity_id=brief.id)
        return brief

    def request_revision(self, s: "Session", brief: StrategicBrief, comment: str, user: "User") -> StrategicBrief:
        self._transition(brief, "REVISION_REQUESTED", "request revision")
        brief.revisions.append(BriefRevision(comment=comment, requested_by_user_id=user.id))
        s.flush()
        record_event(
            s,
            actor=user,
            action="strategic_brief.request_revision",
            entity_type="StrategicBrief",
            entity_id=brief.id,
            reason=comment,
        )
        return brief
