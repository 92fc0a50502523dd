from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import Field

from app.pms.modules.project.models import PhaseItem, Project, ProjectPhase, ProjectTeam, StageHistory
from app.pms.utils import iso
from app.pms.validation import Dto, QueryDto, RichTextStr, SanitizedStr

Lifecycle = Literal[
    "LEAD", "QUALIFIED", "EVALUATION", "NEGOTIATION", "WON", "LOST", "PLANNING", "ONGOING", "OPTIMIZING", "CLOSED"
]
HealthStatus = Literal["STABLE", "WARNING", "CRITICAL"]
Decision = Literal["PENDING", "ACCEPTED", "DECLINED"]
ClientTier = Literal["A", "B", "C", "D"]
TeamRole = Literal["NVKD", "PM", "PLANNER", "ACCOUNT", "CONTENT", "DESIGN", "MEDIA"]
Money = float


# ---------- Requests ----------
class ProjectListQuery(QueryDto):
    search: str | None = None
    lifecycle: Lifecycle | None = None
    health_status: HealthStatus | None = None
    include_archived: bool = False
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class CreateProjectDto(Dto):
    name: SanitizedStr = Field(min_length=1)
    description: RichTextStr | None = None
    product_type: str | None = None
    client_type: str | None = None
    lifecycle: Literal["PLANNING", "ONGOING", "LEAD"] | None = None
    health_status: HealthStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    total_budget: Money | None = Field(default=None, ge=0)
    monthly_budget: Money | None = Field(default=None, ge=0)
    drive_link: str | None = None
    plan_link: str | None = None
    tracking_link: str | None = None
    nvkd_id: int | None = None
    pm_id: int | None = None
    planner_id: int | None = None


class UpdateProjectDto(Dto):
    name: SanitizedStr | None = None
    description: RichTextStr | None = None
    product_type: str | None = None
    client_type: str | None = None
    health_status: HealthStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    total_budget: Money | None = Field(default=None, ge=0)
    monthly_budget: Money | None = Field(default=None, ge=0)
    drive_link: str | None = None
    plan_link: str | None = None
    tracking_link: str | None = None
    nvkd_id: int | None = None
    pm_id: int | None = None
    planner_id: int | None = None


class UpdateSaleDto(Dto):
    name: SanitizedStr | None = Field(default=None, alias="projectName")
    client_type: str | None = None
    product_type: str | None = None
    license_link: str | None = None
    campaign_objective: SanitizedStr | None = None
    initial_goal: SanitizedStr | None = None
    total_budget: Money | None = None
    monthly_budget: Money | None = None
    fixed_ad_fee: Money | None = None
    ad_service_fee: Money | None = None
    content_fee: Money | None = None
    design_fee: Money | None = None
    media_fee: Money | None = None
    other_fee: Money | None = None
    upsell_opportunity: str | None = None


class EvaluateDto(Dto):
    pm_id: int | None = None
    planner_id: int | None = None
    cost_nsqc: Money | None = Field(default=None, alias="costNSQC")
    cost_design: Money | None = None
    cost_media: Money | None = None
    cost_kol: Money | None = Field(default=None, alias="costKOL")
    cost_other: Money | None = None
    client_tier: ClientTier | None = None
    market_size: str | None = None
    competition_level: str | None = None
    product_usp: str | None = Field(default=None, alias="productUSP")
    average_score: float | None = None
    audience_size: str | None = None
    product_lifecycle: str | None = None
    scale_potential: str | None = None


class UpdateLifecycleDto(Dto):
    lifecycle: Lifecycle
    reason: SanitizedStr | None = None


class AddWeeklyNoteDto(Dto):
    note: SanitizedStr


class ProjectDecisionDto(Dto):
    decision: Literal["ACCEPTED", "DECLINED"]
    decision_note: SanitizedStr | None = None


class AddTeamMemberDto(Dto):
    user_id: int
    role: TeamRole
    is_primary: bool = False


class UpdateTeamMemberDto(Dto):
    role: TeamRole | None = None
    is_primary: bool | None = None


class UpdatePhaseDto(Dto):
    start_date: date | None = None
    end_date: date | None = None


class CreatePhaseItemDto(Dto):
    name: SanitizedStr = Field(min_length=1)
    description: str | None = None
    weight: float | None = Field(default=None, ge=0, le=100)
    pic: SanitizedStr | None = None
    support: SanitizedStr | None = None
    expected_output: SanitizedStr | None = None


class UpdatePhaseItemDto(Dto):
    name: SanitizedStr | None = None
    description: str | None = None
    weight: float | None = Field(default=None, ge=0, le=100)
    is_complete: bool | None = None
    pic: SanitizedStr | None = None
    support: SanitizedStr | None = None
    expected_output: SanitizedStr | None = None


class LinkTaskDto(Dto):
    task_id: str
    # Omitted action: the phase service relinks with its default (connect).
    action: Literal["connect", "disconnect"] | None = None


# ---------- Responses ----------
def _money(value: Decimal | float | None) -> float | None:
    return float(value) if value is not None else None


def _user_ref(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.display_name, "email": user.email}


def project_out(p: Project, *, detail: bool = False) -> dict:
    out = {
        "id": p.id,
        "dealCode": p.deal_code,
        "code": p.project_code,
        "name": p.name,
        "description": p.description,
        "productType": p.product_type,
        "clientType": p.client_type,
        "lifecycle": p.lifecycle,
        "healthStatus": p.health_status,
        "stageProgress": p.stage_progress,
        "decision": p.decision,
        "decisionDate": iso(p.decision_date),
        "totalBudget": _money(p.total_budget),
        "startDate": iso(p.start_date),
        "endDate": iso(p.end_date),
        "nvkd": _user_ref(p.nvkd),
        "pm": _user_ref(p.pm),
        "planner": _user_ref(p.planner),
        "archivedAt": iso(p.archived_at),
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }
    if detail:
        out.update(
            {
                "decisionNote": p.decision_note,
                "licenseLink": p.license_link,
                "campaignObjective": p.campaign_objective,
                "initialGoal": p.initial_goal,
                "upsellOpportunity": p.upsell_opportunity,
                "monthlyBudget": _money(p.monthly_budget),
                "spentAmount": _money(p.spent_amount),
                "fixedAdFee": _money(p.fixed_ad_fee),
                "adServiceFee": _money(p.ad_service_fee),
                "contentFee": _money(p.content_fee),
                "designFee": _money(p.design_fee),
                "mediaFee": _money(p.media_fee),
                "otherFee": _money(p.other_fee),
                "costNSQC": _money(p.cost_nsqc),
                "costDesign": _money(p.cost_design),
                "costMedia": _money(p.cost_media),
                "costKOL": _money(p.cost_kol),
                "costOther": _money(p.cost_other),
                "cogs": _money(p.cogs),
                "grossProfit": _money(p.gross_profit),
                "profitMargin": p.profit_margin,
                "clientTier": p.client_tier,
                "marketSize": p.market_size,
                "competitionLevel": p.competition_level,
                "productUSP": p.product_usp,
                "averageScore": p.average_score,
                "audienceSize": p.audience_size,
                "productLifecycle": p.product_lifecycle,
                "scalePotential": p.scale_potential,
                "weeklyNotes": p.weekly_notes or [],
                "driveLink": p.drive_link,
                "planLink": p.plan_link,
                "trackingLink": p.tracking_link,
                "team": [member_out(m) for m in p.team],
            }
        )
    return out


def member_out(m: ProjectTeam) -> dict:
    return {
        "id": m.id,
        "projectId": m.project_id,
        "userId": m.user_id,
        "user": _user_ref(m.user),
        "role": m.role,
        "isPrimary": m.is_primary,
        "createdAt": iso(m.created_at),
    }


def history_out(h: StageHistory) -> dict:
    return {
        "id": h.id,
        "fromStage": h.from_stage,
        "toStage": h.to_stage,
        "fromProgress": h.from_progress,
        "toProgress": h.to_progress,
        "reason": h.reason,
        "changedBy": _user_ref(h.changed_by),
        "createdAt": iso(h.created_at),
    }


def item_out(i: PhaseItem) -> dict:
    return {
        "id": i.id,
        "phaseId": i.phase_id,
        "name": i.name,
        "description": i.description,
        "weight": i.weight,
        "isComplete": i.is_complete,
        "orderIndex": i.order_index,
        "pic": i.pic,
        "support": i.support,
        "expectedOutput": i.expected_output,
        "tasks": [{"id": t.id, "title": t.title, "status": t.status} for t in i.tasks],
    }


def phase_out(p: ProjectPhase, *, with_items: bool = True) -> dict:
    out = {
        "id": p.id,
        "projectId": p.project_id,
        "phaseType": p.phase_type,
        "name": p.name,
        "weight": p.weight,
        "progress": p.progress,
        "orderIndex": p.order_index,
        "startDate": iso(p.start_date),
        "endDate": iso(p.end_date),
    }
    if with_items:
        out["items"] = [item_out(i) for i in p.items]
    return out
