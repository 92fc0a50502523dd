from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.pms.models import Base, JSONType, new_id

if TYPE_CHECKING:
    from app.pms.models import User


class StrategicBrief(Base):
    """
    Campaign brief. Created against a pipeline or a project; acceptance links both ids.
    """

    __tablename__ = "strategic_briefs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    pipeline_id: Mapped[str | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    project_id: Mapped[str | None] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT")
    completion_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    sections: Mapped[list["BriefSection"]] = relationship(
        "BriefSection",
        back_populates="brief",
        cascade="all, delete-orphan",
        order_by="BriefSection.section_num",
        lazy="selectin",
    )
    revisions: Mapped[list["BriefRevision"]] = relationship(
        "BriefRevision",
        back_populates="brief",
        cascade="all, delete-orphan",
        order_by="BriefRevision.created_at.desc()",
        lazy="selectin",
    )
    approved_by: Mapped["User | None"] = relationship("User", lazy="selectin")


class BriefSection(Base):
    __tablename__ = "brief_sections"
    __table_args__ = (UniqueConstraint("brief_id", "section_num", name="uq_brief_section_num"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    brief_id: Mapped[str] = mapped_column(ForeignKey("strategic_briefs.id", ondelete="CASCADE"), nullable=False)
    section_num: Mapped[int] = mapped_column(Integer, nullable=False)
    section_key: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    brief: Mapped[StrategicBrief] = relationship("StrategicBrief", back_populates="sections")


class BriefRevision(Base):
    """Reviewer comment recorded when a submitted brief is sent back."""

    __tablename__ = "brief_revisions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    brief_id: Mapped[str] = mapped_column(ForeignKey("strategic_briefs.id", ondelete="CASCADE"), nullable=False, index=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    requested_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    brief: Mapped[StrategicBrief] = relationship("StrategicBrief", back_populates="revisions")
