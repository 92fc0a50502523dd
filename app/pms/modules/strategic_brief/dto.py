from __future__ import annotations

from typing import Any

from app.pms.modules.strategic_brief.models import BriefSection, StrategicBrief
from app.pms.utils import iso
from app.pms.validation import Dto, SanitizedStr


class CreateBriefDto(Dto):
    # Both optional at the boundary; StrategicBriefService.create() requires exactly one.
    pipeline_id: str | None = None
    project_id: str | None = None


class UpdateSectionDto(Dto):
    data: dict[str, Any] | None = None
    is_complete: bool | None = None


class RequestRevisionDto(Dto):
    comment: SanitizedStr


def section_out(sec: BriefSection) -> dict:
    return {
        "id": sec.id,
        "briefId": sec.brief_id,
        "sectionNum": sec.section_num,
        "sectionKey": sec.section_key,
        "title": sec.title,
        "data": sec.data,
        "isComplete": sec.is_complete,
        "updatedAt": iso(sec.updated_at),
    }


def brief_out(brief: StrategicBrief, *, with_sections: bool = True) -> dict:
    out = {
        "id": brief.id,
        "pipelineId": brief.pipeline_id,
        "projectId": brief.project_id,
        "status": brief.status,
        "completionPct": brief.completion_pct,
        "submittedAt": iso(brief.submitted_at),
        "approvedAt": iso(brief.approved_at),
        "approvedById": brief.approved_by_id,
        "createdAt": iso(brief.created_at),
        "updatedAt": iso(brief.updated_at),
        "revisions": [
            {"id": r.id, "comment": r.comment, "requestedById": r.requested_by_user_id, "createdAt": iso(r.created_at)}
            for r in brief.revisions
        ],
    }
    if with_sections:
        out["sections"] = [section_out(sec) for sec in brief.sections]
    return out
