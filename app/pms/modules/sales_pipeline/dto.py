from __future__ import annotations

from typing import Literal

from pydantic import Field

from app.pms.modules.project.dto import Money
from app.pms.validation import Dto, QueryDto, SanitizedStr

PipelineStage = Literal["LEAD", "QUALIFIED", "EVALUATION", "NEGOTIATION", "WON", "LOST"]


class CreatePipelineDto(Dto):
    name: SanitizedStr = Field(min_length=1, alias="projectName")
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


class UpdatePipelineStageDto(Dto):
    stage: PipelineStage


class PipelineListQuery(QueryDto):
    status: PipelineStage | None = None
    decision: Literal["PENDING", "ACCEPTED", "DECLINED"] | None = None
    nvkd_id: int | None = None
    search: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
