"""
Calendar events.

Visibility (non-admin): events the user created, attends, or that belong to a
project the user is a team member of. Only the creator updates an event; the
creator or an admin deletes it. Listing expands recurring events into
occurrences before paginating.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, or_

from app.pms.audit import record_event
from app.pms.errors import BadRequest, Forbidden, NotFound
from app.pms.models import User
from app.pms.modules.calendar.models import CalendarEvent, EventAttendee
from app.pms.modules.calendar.rrule import RRuleService
from app.pms.modules.project.models import Project, ProjectTeam
from app.pms.modules.task.models import Task, TaskAssignee
from app.pms.rbac import is_admin
from app.pms.utils import page_meta, to_naive_utc

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


EVENT_TYPES = ("MEETING", "DEADLINE", "MILESTONE", "REMINDER", "OTHER")
ATTENDEE_STATUSES = ("pending", "accepted", "declined")

EVENT_FIELDS = (
    "title",
    "description",
    "type",
    "start_time",
    "end_time",
    "is_all_day",
    "recurrence",
    "location",
    "meeting_link",
    "project_id",
    "reminder_minutes",
)


class CalendarService:
    def __init__(self, db, rrule: RRuleService) -> None:
        self.db = db
        self.rrule = rrule

    # ---------- Access ----------
    def _member_projects(self, s: "Session", user: User):
        return s.query(ProjectTeam.project_id).filter(ProjectTeam.user_id == user.id)

    def check_event_access(self, s: "Session", event: CalendarEvent, user: User) -> None:
        if is_admin(user) or event.created_by_user_id == user.id:
            return
        if any(a.user_id == user.id for a in event.attendees):
            return
        if event.project_id:
            member = (
                s.query(ProjectTeam.id)
                .filter(ProjectTeam.project_id == event.project_id, ProjectTeam.user_id == user.id)
                .first()
            )
            if member is not None:
                return
        raise Forbidden("You do not have access to this event")

    def _check_project(self, s: "Session", project_id: str, user: User) -> None:
        project = s.get(Project, project_id)
        if project is None:
            raise NotFound(f"Project not found: {project_id}")
        if not is_admin(user) and not any(m.user_id == user.id for m in project.team):
            raise Forbidden("You do not have access to this project")

    # ---------- Queries ----------
    def get(self, s: "Session", event_id: str, user: User) -> CalendarEvent:
        event = s.get(CalendarEvent, event_id)
        if event is None:
            raise NotFound(f"Event not found: {event_id}")
        self.check_event_access(s, event, user)
        return event

    def list_events(
        self,
        s: "Session",
        *,
        user: User,
        start: datetime,
        end: datetime,
        type: str | None = None,
        project_id: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[tuple[CalendarEvent, datetime | None]], dict[str, int]]:
        """
        Returns (event, occurrence) pairs; occurrence is None for one-off events.
        Recurring events are expanded inside [start, end], keeping their duration.
        """
        start, end = to_naive_utc(start), to_naive_utc(end)
        if end < start:
            raise BadRequest("end must not be before start")
        q = s.query(CalendarEvent).filter(
            or_(
                CalendarEvent.start_time.between(start, end),
                CalendarEvent.end_time.between(start, end),
                and_(CalendarEvent.start_time <= start, CalendarEvent.end_time >= end),
                and_(CalendarEvent.recurrence.isnot(None), CalendarEvent.start_time <= end),
            )
        )
        if type:
            q = q.filter(CalendarEvent.type == type)
        if project_id:
            q = q.filter(CalendarEvent.project_id == project_id)
        if not is_admin(user):
            q = q.filter(
                or_(
                    CalendarEvent.created_by_user_id == user.id,
                    CalendarEvent.attendees.any(EventAttendee.user_id == user.id),
                    CalendarEvent.project_id.in_(self._member_projects(s, user)),
                )
            )
        expanded: list[tuple[CalendarEvent, datetime | None]] = []
        for event in q.order_by(CalendarEvent.start_time.asc()).all():
            if event.recurrence:
                for occurrence in self.rrule.expand_recurrence(event.recurrence, event.start_time, start, end):
                    expanded.append((event, occurrence))
            else:
                expanded.append((event, None))
        expanded.sort(key=lambda pair: pair[1] or pair[0].start_time)
        offset = (page - 1) * limit
        return expanded[offset:offset + limit], page_meta(len(expanded), page, limit)

    def deadlines(
        self,
        s: "Session",
        *,
        user: User,
        start: datetime,
        end: datetime,
        project_id: str | None = None,
    ) -> list[Task]:
        """Open tasks with a deadline inside [start, end], shown as all-day DEADLINE events."""
        q = s.query(Task).filter(
            Task.deadline.between(to_naive_utc(start), to_naive_utc(end)),
            Task.status != "DONE",
        )
        if project_id:
            q = q.filter(Task.project_id == project_id)
        if not is_admin(user):
            q = q.filter(
                or_(
                    Task.assignees.any(TaskAssignee.user_id == user.id),
                    Task.created_by_user_id == user.id,
                    Task.project_id.in_(self._member_projects(s, user)),
                )
            )
        return q.order_by(Task.deadline.asc()).all()

    # ---------- Mutations ----------
    def _validate(self, start: datetime, end: datetime | None, recurrence: str | None) -> None:
        if recurrence and not self.rrule.is_valid_rrule(recurrence):
            raise BadRequest("Invalid recurrence format")
        if end is not None and end <= start:
            raise BadRequest("End time must be after start time")

    def _ensure_users(self, s: "Session", user_ids: list[int]) -> None:
        found = {uid for (uid,) in s.query(User.id).filter(User.id.in_(user_ids)).all()} if user_ids else set()
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise BadRequest(f"Unknown users: {', '.join(str(m) for m in missing)}")

    def _set_attendees(self, s: "Session", event: CalendarEvent, user_ids: list[int]) -> None:
        user_ids = list(dict.fromkeys(user_ids))
        self._ensure_users(s, user_ids)
        event.attendees.clear()
        s.flush()
        for uid in user_ids:
            event.attendees.append(EventAttendee(user_id=uid, status="pending"))

    def create(self, s: "Session", changes: dict[str, Any], user: User) -> CalendarEvent:
        changes = dict(changes)
        changes["start_time"] = to_naive_utc(changes["start_time"])
        changes["end_time"] = to_naive_utc(changes.get("end_time"))
        self._validate(changes["start_time"], changes["end_time"], changes.get("recurrence"))
        if changes.get("project_id"):
            self._check_project(s, changes["project_id"], user)
        if changes.get("task_id") and s.get(Task, changes["task_id"]) is None:
            raise BadRequest(f"Unknown task: {changes['task_id']}")

        event = CalendarEvent(task_id=changes.get("task_id"), is_all_day=False, created_by_user_id=user.id)
        for key in EVENT_FIELDS:
            if changes.get(key) is not None:
                setattr(event, key, changes[key])
        s.add(event)
        self._set_attendees(s, event, changes.get("attendee_ids") or [])
        s.flush()
        record_event(
            s,
            actor=user,
            action="event.create",
            entity_type="CalendarEvent",
            entity_id=event.id,
            metadata={"title": event.title, "type": event.type, "recurring": bool(event.recurrence)},
        )
        return event

    def update(self, s: "Session", event: CalendarEvent, changes: dict[str, Any], user: User) -> CalendarEvent:
        if event.created_by_user_id != user.id:
            raise Forbidden("Only the event creator can update this event")
        changes = dict(changes)
        for key in ("start_time", "end_time"):
            if key in changes:
                changes[key] = to_naive_utc(changes[key])
        start = changes.get("start_time") or event.start_time
        end = changes.get("end_time") or event.end_time
        self._validate(start, end, changes.get("recurrence"))
        if changes.get("project_id"):
            self._check_project(s, changes["project_id"], user)

        for key in EVENT_FIELDS:
            if changes.get(key) is not None:
                setattr(event, key, changes[key])
        if changes.get("attendee_ids") is not None:
            self._set_attendees(s, event, changes["attendee_ids"])
        event.updated_at = datetime.utcnow()
        s.flush()
        record_event(
            s,
            actor=user,
            action="event.update",
            entity_type="CalendarEvent",
            entity_id=event.id,
            metadata={"fields": sorted(k for k in changes if k in EVENT_FIELDS or k == "attendee_ids")},
        )
        return event

    def delete(self, s: "Session", event: CalendarEvent, user: User) -> None:
        if event.created_by_user_id != user.id and not is_admin(user):
            raise Forbidden("Only the event creator or admin can delete this event")
        event_id = event.id
        s.delete(event)
        s.flush()
        record_event(s, actor=user, action="event.delete", entity_type="CalendarEvent", entity_id=event_id)

    def respond(self, s: "Session", event: CalendarEvent, status: str, user: User) -> CalendarEvent:
        attendee = next((a for a in event.attendees if a.user_id == user.id), None)
        if attendee is None:
            raise Forbidden("You are not an attendee of this event")
        attendee.status = status
        s.flush()
        record_event(
            s,
            actor=user,
            action="event.respond",
            entity_type="CalendarEvent",
            entity_id=event.id,
            metadata={"status": status},
        )
        return event
