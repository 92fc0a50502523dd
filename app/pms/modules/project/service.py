"""
Project service (pipeline + delivery lifecycle).

Lifecycle rules:
- LEAD -> QUALIFIED -> EVALUATION -> NEGOTIATION -> WON, any pre-WON stage may go to LOST
- WON -> PLANNING -> ONGOING -> OPTIMIZING -> CLOSED; LOST and CLOSED are terminal
- Every lifecycle change resets stage progress and is written to stage_history
- Sale/evaluation data is read-only once a decision has been made
- Accepting a pipeline (decide ACCEPTED) assigns a project code, seeds the team,
  creates the default phases and the strategic brief, all in the caller's transaction
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_

from app.pms.audit import record_event
from app.pms.errors import BadRequest, Conflict, NotFound
from app.pms.models import User
from app.pms.modules.project.models import Project, ProjectTeam, StageHistory
from app.pms.rbac import is_admin
from app.pms.utils import paginate

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.pms.modules.project.phases import ProjectPhaseService
    from app.pms.modules.strategic_brief.service import StrategicBriefService


PIPELINE_STAGES = ("LEAD", "QUALIFIED", "EVALUATION", "NEGOTIATION", "WON", "LOST")
DELIVERY_STAGES = ("PLANNING", "ONGOING", "OPTIMIZING", "CLOSED")
LIFECYCLES = PIPELINE_STAGES + DELIVERY_STAGES

LIFECYCLE_TRANSITIONS = {
    "LEAD": ["QUALIFIED", "LOST"],
    "QUALIFIED": ["EVALUATION", "LOST"],
    "EVALUATION": ["NEGOTIATION", "LOST"],
    "NEGOTIATION": ["WON", "LOST"],
    "WON": ["PLANNING"],
    "PLANNING": ["ONGOING"],
    "ONGOING": ["OPTIMIZING"],
    "OPTIMIZING": ["CLOSED"],
    "LOST": [],
    "CLOSED": [],
}

HEALTH_STATUSES = ("STABLE", "WARNING", "CRITICAL")
DECISIONS = ("PENDING", "ACCEPTED", "DECLINED")
CLIENT_TIERS = ("A", "B", "C", "D")
TEAM_ROLES = ("NVKD", "PM", "PLANNER", "ACCOUNT", "CONTENT", "DESIGN", "MEDIA")

COST_FIELDS = ("cost_nsqc", "cost_design", "cost_media", "cost_kol", "cost_other")

SALE_FIELDS = (
    "name",
    "client_type",
    "product_type",
    "license_link",
    "campaign_objective",
    "initial_goal",
    "total_budget",
    "monthly_budget",
    "fixed_ad_fee",
    "ad_service_fee",
    "content_fee",
    "design_fee",
    "media_fee",
    "other_fee",
    "upsell_opportunity",
)

EVALUATION_FIELDS = COST_FIELDS + (
    "pm_id",
    "planner_id",
    "client_tier",
    "market_size",
    "competition_level",
    "product_usp",
    "average_score",
    "audience_size",
    "product_lifecycle",
    "scale_potential",
)

PROJECT_FIELDS = (
    "name",
    "description",
    "product_type",
    "client_type",
    "health_status",
    "start_date",
    "end_date",
    "total_budget",
    "monthly_budget",
    "drive_link",
    "plan_link",
    "tracking_link",
    "nvkd_id",
    "pm_id",
    "planner_id",
)


def _num(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def calculate_financials(values: dict[str, Any]) -> dict[str, float]:
    """
    COGS = sum of cost fields; gross profit = total budget - COGS;
    margin = gross profit / total budget * 100 (0 without a budget).
    """
    cogs = sum(_num(values.get(f)) for f in COST_FIELDS)
    total_budget = _num(values.get("total_budget"))
    gross_profit = total_budget - cogs
    profit_margin = (gross_profit / total_budget) * 100 if total_budget > 0 else 0.0
    return {"cogs": cogs, "gross_profit": gross_profit, "profit_margin": profit_margin}


def can_transition(from_stage: str, to_stage: str) -> bool:
    return to_stage in LIFECYCLE_TRANSITIONS.get(from_stage, [])


def _next_sequence(codes: list[str | None], pattern: str) -> int:
    rx = re.compile(pattern)
    highest = 0
    for code in codes:
        m = rx.fullmatch(code or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return highest + 1


_DEAL_CODE = r"DEAL-(\d+)"
_PROJECT_CODE = r"PRJ(\d+)"
SORTABLE = ("created_at", "updated_at", "name", "lifecycle", "stage_progress", "total_budget")


def next_deal_code(s: "Session") -> str:
    codes = [c for (c,) in s.query(Project.deal_code).filter(Project.deal_code.isnot(None)).all()]
    return f"DEAL-{_next_sequence(codes, _DEAL_CODE):04d}"


def next_project_code(s: "Session") -> str:
    codes = [c for (c,) in s.query(Project.project_code).filter(Project.project_code.isnot(None)).all()]
    return f"PRJ{_next_sequence(codes, _PROJECT_CODE):04d}"


def _audit_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class ProjectService:
    def __init__(self, db, *, phases: "ProjectPhaseService", briefs: "StrategicBriefService") -> None:
        self.db = db
        self.phases = phases
        self.briefs = briefs

    # ---------- Queries ----------
    def get(self, s: "Session", project_id: str) -> Project:
        project = s.get(Project, project_id)
        if project is None:
            raise NotFound(f"Project not found: {project_id}")
        return project

    def list_projects(
        self,
        s: "Session",
        *,
        user: User,
        search: str | None = None,
        lifecycle: str | None = None,
        lifecycles: tuple[str, ...] | None = None,
        health_status: str | None = None,
        decision: str | None = None,
        nvkd_id: int | None = None,
        include_archived: bool = False,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[Project], dict[str, int]]:
        q = s.query(Project)
        if not include_archived:
            q = q.filter(Project.archived_at.is_(None))
        if not is_admin(user):
            member_ids = s.query(ProjectTeam.project_id).filter(ProjectTeam.user_id == user.id)
            q = q.filter(
                or_(
                    Project.id.in_(member_ids),
                    Project.nvkd_id == user.id,
                    Project.pm_id == user.id,
                    Project.created_by_user_id == user.id,
                )
            )
        if search:
            like = f"%{search}%"
            q = q.filter(
                or_(Project.name.ilike(like), Project.project_code.ilike(like), Project.deal_code.ilike(like))
            )
        if lifecycle:
            q = q.filter(Project.lifecycle == lifecycle)
        if lifecycles:
            q = q.filter(Project.lifecycle.in_(lifecycles))
        if health_status:
            q = q.filter(Project.health_status == health_status)
        if decision:
            q = q.filter(Project.decision == decision)
        if nvkd_id:
            q = q.filter(Project.nvkd_id == nvkd_id)
        column = getattr(Project, sort_by if sort_by in SORTABLE else "created_at")
        q = q.order_by(column.asc() if sort_order == "asc" else column.desc())
        return paginate(q, page, limit)

    def stage_history(self, s: "Session", project: Project) -> list[StageHistory]:
        return (
            s.query(StageHistory)
            .filter(StageHistory.project_id == project.id)
            .order_by(StageHistory.created_at.desc())
            .all()
        )

    # ---------- Mutations ----------
    def _apply(self, project: Project, changes: dict[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
        diff = {}
        for key in fields:
            if key not in changes:
                continue
            new = changes[key]
            if key == "name" and not new:
                continue
            old = getattr(project, key)
            if _audit_value(old) != _audit_value(new):
                diff[key] = {"old": _audit_value(old), "new": _audit_value(new)}
                setattr(project, key, new)
        if diff:
            project.updated_at = datetime.utcnow()
        return diff

    def _refresh_people(self, s: "Session", project: Project, diff: dict[str, Any]) -> None:
        # Setting a *_id column does not reload the matching user relationship.
        stale = [key[: -len("_id")] for key in ("nvkd_id", "pm_id", "planner_id") if key in diff]
        if stale:
            s.expire(project, stale)

    def _ensure_users(self, s: "Session", changes: dict[str, Any]) -> None:
        for key in ("nvkd_id", "pm_id", "planner_id"):
            uid = changes.get(key)
            if uid is not None and s.get(User, uid) is None:
                raise BadRequest(f"Unknown user for {key}: {uid}")

    def create(self, s: "Session", changes: dict[str, Any], user: User) -> Project:
        self._ensure_users(s, changes)
        lifecycle = changes.get("lifecycle") or "PLANNING"
        project = Project(
            name=changes["name"],
            lifecycle=lifecycle,
            health_status=changes.get("health_status") or "STABLE",
            decision="ACCEPTED" if lifecycle in DELIVERY_STAGES else "PENDING",
            project_code=next_project_code(s) if lifecycle in DELIVERY_STAGES else None,
            weekly_notes=[],
            created_by_user_id=user.id,
        )
        self._apply(project, changes, PROJECT_FIELDS)
        s.add(project)
        s.flush()
        s.add(StageHistory(project_id=project.id, from_stage=None, to_stage=lifecycle, from_progress=None, to_progress=0, changed_by_user_id=user.id))
        record_event(
            s,
            actor=user,
            action="project.create",
            entity_type="Project",
            entity_id=project.id,
            metadata={"name": project.name, "lifecycle": project.lifecycle, "code": project.project_code},
        )
        return project

    def create_pipeline(self, s: "Session", changes: dict[str, Any], user: User) -> Project:
        """New lead owned by the creating salesperson (NVKD)."""
        project = Project(
            name=changes["name"],
            deal_code=next_deal_code(s),
            lifecycle="LEAD",
            decision="PENDING",
            health_status="STABLE",
            nvkd_id=user.id,
            weekly_notes=[],
            created_by_user_id=user.id,
        )
        self._apply(project, changes, SALE_FIELDS)
        s.add(project)
        s.flush()
        s.add(StageHistory(project_id=project.id, from_stage=None, to_stage="LEAD", to_progress=0, changed_by_user_id=user.id))
        record_event(
            s,
            actor=user,
            action="pipeline.create",
            entity_type="Project",
            entity_id=project.id,
            metadata={"name": project.name, "deal_code": project.deal_code},
        )
        return project

    def update(self, s: "Session", project: Project, changes: dict[str, Any], user: User) -> Project:
        self._ensure_users(s, changes)
        diff = self._apply(project, changes, PROJECT_FIELDS)
        s.flush()
        self._refresh_people(s, project, diff)
        if diff:
            record_event(s, actor=user, action="project.update", entity_type="Project", entity_id=project.id, metadata={"changes": diff})
        return project

    def archive(self, s: "Session", project: Project, user: User) -> Project:
        if project.archived_at is None:
            project.archived_at = datetime.utcnow()
            project.updated_at = project.archived_at
            s.flush()
            record_event(s, actor=user, action="project.archive", entity_type="Project", entity_id=project.id)
        return project

    def require_pending(self, project: Project) -> None:
        if project.decision != "PENDING":
            raise BadRequest(f"Pipeline already decided: {project.decision}")

    def update_sale(self, s: "Session", project: Project, changes: dict[str, Any], user: User) -> Project:
        self.require_pending(project)
        diff = self._apply(project, changes, SALE_FIELDS)
        if "total_budget" in diff:
            self._recalculate_financials(project)
        s.flush()
        if diff:
            record_event(s, actor=user, action="pipeline.update_sale", entity_type="Project", entity_id=project.id, metadata={"changes": diff})
        return project

    def evaluate(self, s: "Session", project: Project, changes: dict[str, Any], user: User) -> Project:
        self.require_pending(project)
        self._ensure_users(s, changes)
        diff = self._apply(project, changes, EVALUATION_FIELDS)
        self._recalculate_financials(project)
        s.flush()
        self._refresh_people(s, project, diff)
        record_event(
            s,
            actor=user,
            action="pipeline.evaluate",
            entity_type="Project",
            entity_id=project.id,
            metadata={"changes": diff, "cogs": _num(project.cogs), "profit_margin": project.profit_margin},
        )
        return project

    def _recalculate_financials(self, project: Project) -> None:
        values = {f: getattr(project, f) for f in COST_FIELDS}
        values["total_budget"] = project.total_budget
        fin = calculate_financials(values)
        project.cogs = fin["cogs"]
        project.gross_profit = fin["gross_profit"]
        project.profit_margin = fin["profit_margin"]

    def _set_lifecycle(self, s: "Session", project: Project, to_stage: str, user: User, reason: str | None) -> StageHistory:
        entry = StageHistory(
            project_id=project.id,
            from_stage=project.lifecycle,
            to_stage=to_stage,
            from_progress=project.stage_progress,
            to_progress=0,
            reason=reason,
            changed_by_user_id=user.id,
        )
        s.add(entry)
        project.lifecycle = to_stage
        project.stage_progress = 0
        project.updated_at = datetime.utcnow()
        return entry

    def change_lifecycle(
        self,
        s: "Session",
        project: Project,
        to_stage: str,
        user: User,
        *,
        reason: str | None = None,
        allowed: tuple[str, ...] = LIFECYCLES,
    ) -> Project:
        if to_stage not in allowed:
            raise BadRequest(f"Stage {to_stage} is not allowed here")
        if not can_transition(project.lifecycle, to_stage):
            raise BadRequest(f"Cannot transition from {project.lifecycle} to {to_stage}")
        from_stage = project.lifecycle
        self._set_lifecycle(s, project, to_stage, user, reason)
        s.flush()
        record_event(
            s,
            actor=user,
            action="project.lifecycle",
            entity_type="Project",
            entity_id=project.id,
            reason=reason,
            metadata={"from": from_stage, "to": to_stage},
        )
        return project

    def add_weekly_note(self, s: "Session", project: Project, note: str, user: User) -> Project:
        self.require_pending(project)
        notes = list(project.weekly_notes or [])
        notes.append(
            {
                "week": len(notes) + 1,
                "date": datetime.utcnow().isoformat(),
                "note": note,
                "authorId": user.id,
            }
        )
        # Reassign so the JSON column is flagged dirty.
        project.weekly_notes = notes
        project.updated_at = datetime.utcnow()
        s.flush()
        record_event(s, actor=user, action="pipeline.weekly_note", entity_type="Project", entity_id=project.id, metadata={"week": len(notes)})
        return project

    def decide(self, s: "Session", project: Project, decision: str, user: User, *, note: str | None = None) -> Project:
        self.require_pending(project)
        if decision == "ACCEPTED":
            return self._accept(s, project, user, note)
        if decision == "DECLINED":
            project.decision = "DECLINED"
            project.decision_date = datetime.utcnow()
            project.decision_note = note or None
            if project.lifecycle != "LOST":
                self._set_lifecycle(s, project, "LOST", user, note or "Pipeline declined")
            s.flush()
            record_event(s, actor=user, action="pipeline.decline", entity_type="Project", entity_id=project.id, reason=note)
            return project
        raise BadRequest(f"Invalid decision: {decision}")

    def _accept(self, s: "Session", project: Project, user: User, note: str | None) -> Project:
        project.project_code = project.project_code or next_project_code(s)
        project.decision = "ACCEPTED"
        project.decision_date = datetime.utcnow()
        project.decision_note = note or None
        if project.lifecycle != "WON":
            self._set_lifecycle(s, project, "WON", user, note or "Pipeline accepted")

        # Team: NVKD, PM (primary), Planner; one row per user.
        members: dict[int, tuple[str, bool]] = {}
        if project.nvkd_id:
            members[project.nvkd_id] = ("NVKD", False)
        if project.pm_id and project.pm_id not in members:
            members[project.pm_id] = ("PM", True)
        if project.planner_id and project.planner_id not in members:
            members[project.planner_id] = ("PLANNER", False)
        existing = {m.user_id for m in project.team}
        for uid, (role, is_primary) in members.items():
            if uid not in existing:
                project.team.append(ProjectTeam(user_id=uid, role=role, is_primary=is_primary))

        s.flush()
        if not project.phases:
            self.phases.create_default_phases(s, project)
        self.briefs.ensure_for_accepted_pipeline(s, project_id=project.id, user=user)
        s.flush()
        record_event(
            s,
            actor=user,
            action="pipeline.accept",
            entity_type="Project",
            entity_id=project.id,
            reason=note,
            metadata={"project_code": project.project_code, "team": sorted(members)},
        )
        return project

    # ---------- Team ----------
    def add_member(self, s: "Session", project: Project, *, user_id: int, role: str, is_primary: bool, actor: User) -> ProjectTeam:
        if s.get(User, user_id) is None:
            raise BadRequest(f"Unknown user: {user_id}")
        if any(m.user_id == user_id for m in project.team):
            raise Conflict("User is already a member of this project.")
        member = ProjectTeam(user_id=user_id, role=role, is_primary=is_primary)
        project.team.append(member)
        s.flush()
        record_event(
            s,
            actor=actor,
            action="project.team_add",
            entity_type="Project",
            entity_id=project.id,
            metadata={"user_id": user_id, "role": role},
        )
        return member

    def get_member(self, project: Project, member_id: str) -> ProjectTeam:
        member = next((m for m in project.team if m.id == member_id), None)
        if member is None:
            raise NotFound(f"Team member not found: {member_id}")
        return member

    def update_member(self, s: "Session", project: Project, member: ProjectTeam, changes: dict[str, Any], actor: User) -> ProjectTeam:
        if changes.get("role"):
            member.role = changes["role"]
        if changes.get("is_primary") is not None:
            member.is_primary = changes["is_primary"]
        s.flush()
        record_event(s, actor=actor, action="project.team_update", entity_type="Project", entity_id=project.id, metadata={"member_id": member.id})
        return member

    def remove_member(self, s: "Session", project: Project, member: ProjectTeam, actor: User) -> None:
        project.team.remove(member)
        s.flush()
        record_event(s, actor=actor, action="project.team_remove", entity_type="Project", entity_id=project.id, metadata={"user_id": member.user_id})
