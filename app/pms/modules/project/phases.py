"""
Project phases: the weighted delivery checklist under a project.

Phase progress = completed item weight / total item weight (percent, rounded).
Project stage_progress = weighted average of phase progress by phase weight.
Tasks are attached to phase items only through an explicit connect/disconnect.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.pms.audit import record_event
from app.pms.errors import BadRequest, NotFound
from app.pms.modules.project.models import PhaseItem, Project, ProjectPhase
from app.pms.modules.project.phase_defaults import DEFAULT_PHASES
from app.pms.modules.task.models import Task
from app.pms.utils import round_half_up

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.pms.models import User


LINK_ACTIONS = ("connect", "disconnect")
# Applied when a link-task request omits `action`: relink the task to the item.
DEFAULT_LINK_ACTION = "connect"

ITEM_FIELDS = ("name", "description", "weight", "is_complete", "pic", "support", "expected_output")


def weighted_progress(parts: list[tuple[float, float]]) -> int:
    """(weight, value 0..100) pairs -> rounded weighted percentage; 0 when there is no weight."""
    total = sum(w for w, _ in parts)
    if total <= 0:
        return 0
    return round_half_up(sum(w * v for w, v in parts) / total)


class ProjectPhaseService:
    def __init__(self, db) -> None:
        self.db = db

    def create_default_phases(self, s: "Session", project: Project) -> list[ProjectPhase]:
        phases = []
        for phase_def in DEFAULT_PHASES:
            phase = ProjectPhase(
                phase_type=phase_def["phase_type"],
                name=phase_def["name"],
                weight=phase_def["weight"],
                order_index=phase_def["order_index"],
                progress=0,
            )
            for idx, item in enumerate(phase_def["items"]):
                phase.items.append(
                    PhaseItem(
                        name=item["name"],
                        weight=item["weight"],
                        order_index=idx,
                        pic=item["pic"],
                        support=item["support"],
                        expected_output=item["expected_output"],
                    )
                )
            project.phases.append(phase)
            phases.append(phase)
        s.flush()
        return phases

    def list_phases(self, s: "Session", project_id: str) -> list[ProjectPhase]:
        return (
            s.query(ProjectPhase)
            .filter(ProjectPhase.project_id == project_id)
            .order_by(ProjectPhase.order_index.asc())
            .all()
        )

    def get_phase(self, s: "Session", project_id: str, phase_id: str) -> ProjectPhase:
        phase = s.get(ProjectPhase, phase_id)
        if phase is None or phase.project_id != project_id:
            raise NotFound(f"Phase not found: {phase_id}")
        return phase

    def get_item(self, phase: ProjectPhase, item_id: str) -> PhaseItem:
        item = next((i for i in phase.items if i.id == item_id), None)
        if item is None:
            raise NotFound(f"Phase item not found: {item_id}")
        return item

    def update_phase(self, s: "Session", phase: ProjectPhase, changes: dict[str, Any], user: "User") -> ProjectPhase:
        if changes.get("start_date"):
            phase.start_date = changes["start_date"]
        if changes.get("end_date"):
            phase.end_date = changes["end_date"]
        if phase.start_date and phase.end_date and phase.end_date < phase.start_date:
            raise BadRequest("endDate must not be before startDate")
        s.flush()
        record_event(s, actor=user, action="phase.update", entity_type="ProjectPhase", entity_id=phase.id)
        return phase

    def add_item(self, s: "Session", phase: ProjectPhase, changes: dict[str, Any], user: "User") -> PhaseItem:
        next_index = max((i.order_index for i in phase.items), default=-1) + 1
        item = PhaseItem(order_index=next_index, weight=changes.get("weight") or 0)
        for key in ITEM_FIELDS:
            if key in changes and changes[key] is not None:
                setattr(item, key, changes[key])
        phase.items.append(item)
        s.flush()
        self.recalculate_phase_progress(s, phase)
        record_event(s, actor=user, action="phase.item_add", entity_type="ProjectPhase", entity_id=phase.id, metadata={"item": item.name})
        return item

    def update_item(self, s: "Session", phase: ProjectPhase, item: PhaseItem, changes: dict[str, Any], user: "User") -> PhaseItem:
        for key in ITEM_FIELDS:
            if key in changes and changes[key] is not None:
                setattr(item, key, changes[key])
        s.flush()
        if "is_complete" in changes or "weight" in changes:
            self.recalculate_phase_progress(s, phase)
        record_event(
            s,
            actor=user,
            action="phase.item_update",
            entity_type="PhaseItem",
            entity_id=item.id,
            metadata={k: v for k, v in changes.items() if k in ("is_complete", "weight")},
        )
        return item

    def delete_item(self, s: "Session", phase: ProjectPhase, item: PhaseItem, user: "User") -> None:
        phase.items.remove(item)
        s.delete(item)
        s.flush()
        self.recalculate_phase_progress(s, phase)
        record_event(s, actor=user, action="phase.item_delete", entity_type="ProjectPhase", entity_id=phase.id, metadata={"item_id": item.id})

    def link_task(
        self,
        s: "Session",
        phase: ProjectPhase,
        item: PhaseItem,
        *,
        task_id: str,
        action: str | None,
        user: "User",
    ) -> PhaseItem:
        """Connect or disconnect a task. `action=None` relinks with DEFAULT_LINK_ACTION."""
        action = action or DEFAULT_LINK_ACTION
        if action not in LINK_ACTIONS:
            raise BadRequest(f"Invalid action: {action}")
        task = s.get(Task, task_id)
        if task is None:
            raise NotFound(f"Task not found: {task_id}")
        if task.project_id != phase.project_id:
            raise BadRequest("Task belongs to a different project.")
        linked = any(t.id == task.id for t in item.tasks)
        if action == "connect" and not linked:
            item.tasks.append(task)
        elif action == "disconnect" and linked:
            item.tasks.remove(task)
        s.flush()
        record_event(
            s,
            actor=user,
            action=f"phase.item_{action}_task",
            entity_type="PhaseItem",
            entity_id=item.id,
            metadata={"task_id": task.id},
        )
        return item

    def recalculate_phase_progress(self, s: "Session", phase: ProjectPhase) -> int:
        phase.progress = weighted_progress([(i.weight, 100 if i.is_complete else 0) for i in phase.items])
        s.flush()
        project = s.get(Project, phase.project_id)
        if project is not None:
            self.recalculate_project_progress(s, project)
        return phase.progress

    def recalculate_project_progress(self, s: "Session", project: Project) -> int:
        project.stage_progress = weighted_progress([(p.weight, p.progress) for p in project.phases])
        s.flush()
        return project.stage_progress
