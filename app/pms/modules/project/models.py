from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.pms.models import Base, JSONType, new_id

if TYPE_CHECKING:
    from app.pms.models import User
    from app.pms.modules.task.models import Task


# Explicit link table: a task is attached to a phase item only by connect/disconnect.
phase_item_tasks = Table(
    "phase_item_tasks",
    Base.metadata,
    Column("phase_item_id", String(36), ForeignKey("project_phase_items.id", ondelete="CASCADE"), primary_key=True),
    Column("task_id", String(36), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
)


class Project(Base):
    """
    Unified pipeline/project record. Pipeline stages (LEAD..WON/LOST) and delivery
    stages (PLANNING..CLOSED) share one lifecycle column, so a pipeline id is a project id.
    """

    __tablename__ = "projects"
    __table_args__ = (
        Index("idx_projects_lifecycle", "lifecycle"),
        Index("idx_projects_health_status", "health_status"),
        Index("idx_projects_archived_at", "archived_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    deal_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)  # DEAL-0001
    project_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)  # PRJ0001

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_type: Mapped[str | None] = mapped_column(String(128), nullable=True)

    lifecycle: Mapped[str] = mapped_column(String(32), nullable=False, default="LEAD")
    health_status: Mapped[str] = mapped_column(String(32), nullable=False, default="STABLE")
    stage_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Pipeline decision
    decision: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    decision_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    decision_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Sale (NVKD)
    nvkd_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    client_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    license_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    campaign_objective: Mapped[str | None] = mapped_column(Text, nullable=True)
    initial_goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    upsell_opportunity: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_budget: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    monthly_budget: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    spent_amount: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True, default=0)
    fixed_ad_fee: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    ad_service_fee: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    content_fee: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    design_fee: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    media_fee: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    other_fee: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)

    # Evaluation (PM)
    pm_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    planner_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    cost_nsqc: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    cost_design: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    cost_media: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    cost_kol: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    cost_other: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    cogs: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    gross_profit: Mapped[float | None] = mapped_column(Numeric(15, 2), nullable=True)
    profit_margin: Mapped[float | None] = mapped_column(Float, nullable=True)
    client_tier: Mapped[str | None] = mapped_column(String(16), nullable=True)
    market_size: Mapped[str | None] = mapped_column(String(255), nullable=True)
    competition_level: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_usp: Mapped[str | None] = mapped_column(Text, nullable=True)
    average_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    audience_size: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_lifecycle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    scale_potential: Mapped[str | None] = mapped_column(String(255), nullable=True)

    weekly_notes: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    drive_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    plan_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    tracking_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    nvkd: Mapped["User | None"] = relationship("User", foreign_keys=[nvkd_id], lazy="selectin")
    pm: Mapped["User | None"] = relationship("User", foreign_keys=[pm_id], lazy="selectin")
    planner: Mapped["User | None"] = relationship("User", foreign_keys=[planner_id], lazy="selectin")

    team: Mapped[list["ProjectTeam"]] = relationship(
        "ProjectTeam", back_populates="project", cascade="all, delete-orphan", lazy="selectin"
    )
    phases: Mapped[list["ProjectPhase"]] = relationship(
        "ProjectPhase",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectPhase.order_index",
        lazy="selectin",
    )
    stage_history: Mapped[list["StageHistory"]] = relationship(
        "StageHistory",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="StageHistory.created_at.desc()",
        lazy="select",
    )
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="project", cascade="all, delete-orphan", lazy="select")


class StageHistory(Base):
    __tablename__ = "stage_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    from_stage: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_stage: Mapped[str] = mapped_column(String(32), nullable=False)
    from_progress: Mapped[int | None] = mapped_column(Integer, nullable=True)
    to_progress: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="stage_history")
    changed_by: Mapped["User | None"] = relationship("User", lazy="selectin")


class ProjectTeam(Base):
    __tablename__ = "project_team"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_team_member"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)  # NVKD, PM, PLANNER, ACCOUNT, CONTENT, DESIGN, MEDIA
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    project: Mapped[Project] = relationship("Project", back_populates="team")
    user: Mapped["User"] = relationship("User", lazy="selectin")


class ProjectPhase(Base):
    __tablename__ = "project_phases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    phase_type: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    project: Mapped[Project] = relationship("Project", back_populates="phases")
    items: Mapped[list["PhaseItem"]] = relationship(
        "PhaseItem",
        back_populates="phase",
        cascade="all, delete-orphan",
        order_by="PhaseItem.order_index",
        lazy="selectin",
    )


class PhaseItem(Base):
    __tablename__ = "project_phase_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    phase_id: Mapped[str] = mapped_column(ForeignKey("project_phases.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pic: Mapped[str | None] = mapped_column(String(255), nullable=True)
    support: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expected_output: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phase: Mapped[ProjectPhase] = relationship("ProjectPhase", back_populates="items")
    tasks: Mapped[list["Task"]] = relationship("Task", secondary=phase_item_tasks, lazy="selectin")
