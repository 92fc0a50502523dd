from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.pms.modules.calendar.models import CalendarEvent
from app.pms.modules.task.models import Task
from app.pms.utils import iso
from app.pms.validation import Dto, QueryDto, SanitizedStr

EventType = Literal["MEETING", "DEADLINE", "MILESTONE", "REMINDER", "OTHER"]


class CreateEventDto(Dto):
    title: SanitizedStr = Field(min_length=1, max_length=200)
    description: SanitizedStr | None = Field(default=None, max_length=2000)
    type: EventType
    start_time: datetime
    end_time: datetime | None = None
    is_all_day: bool | None = None
    recurrence: str | None = Field(default=None, max_length=500)
    location: SanitizedStr | None = Field(default=None, max_length=300)
    meeting_link: str | None = Field(default=None, max_length=500)
    project_id: str | None = None
    task_id: str | None = None
    attendee_ids: list[int] | None = None
    # Minutes before start; at most one week.
    reminder_minutes: int | None = Field(default=None, ge=0, le=10080, alias="reminderBefore")


class UpdateEventDto(Dto):
    title: SanitizedStr | None = Field(default=None, min_length=1, max_length=200)
    description: SanitizedStr | None = Field(default=None, max_length=2000)
    type: EventType | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    is_all_day: bool | None = None
    recurrence: str | None = Field(default=None, max_length=500)
    location: SanitizedStr | None = Field(default=None, max_length=300)
    meeting_link: str | None = Field(default=None, max_length=500)
    project_id: str | None = None
    attendee_ids: list[int] | None = None
    reminder_minutes: int | None = Field(default=None, ge=0, le=10080, alias="reminderBefore")


class RespondEventDto(Dto):
    status: Literal["accepted", "declined"]


class EventListQuery(QueryDto):
    start: datetime
    end: datetime
    type: EventType | None = None
    project_id: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)


class DeadlineQuery(QueryDto):
    start: datetime
    end: datetime
    project_id: str | None = None


def _user_ref(user) -> dict | None:
    if user is None:
        return None
    return {"id": user.id, "name": user.display_name, "email": user.email}


def event_out(e: CalendarEvent, *, occurrence: datetime | None = None) -> dict:
    out = {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "type": e.type,
        "startTime": iso(e.start_time),
        "endTime": iso(e.end_time),
        "isAllDay": e.is_all_day,
        "recurrence": e.recurrence,
        "location": e.location,
        "meetingLink": e.meeting_link,
        "projectId": e.project_id,
        "taskId": e.task_id,
        "reminderBefore": e.reminder_minutes,
        "createdBy": _user_ref(e.created_by),
        "attendees": [
            {"id": a.id, "userId": a.user_id, "status": a.status, "user": _user_ref(a.user)} for a in e.attendees
        ],
        "createdAt": iso(e.created_at),
        "updatedAt": iso(e.updated_at),
    }
    if occurrence is not None:
        end = occurrence + (e.end_time - e.start_time) if e.end_time and e.end_time > e.start_time else None
        out.update(
            {
                "startTime": iso(occurrence),
                "endTime": iso(end),
                "isRecurringOccurrence": True,
                "occurrenceDate": iso(occurrence),
            }
        )
    return out


def deadline_out(t: Task) -> dict:
    return {
        "id": f"task-{t.id}",
        "title": t.title,
        "description": t.description,
        "type": "DEADLINE",
        "startTime": iso(t.deadline),
        "endTime": None,
        "isAllDay": True,
        "recurrence": None,
        "location": None,
        "meetingLink": None,
        "projectId": t.project_id,
        "taskId": t.id,
        "reminderBefore": None,
        "project": {"id": t.project.id, "name": t.project.name} if t.project else None,
        "createdBy": _user_ref(t.created_by),
        "attendees": [
            {"id": f"task-attendee-{t.id}-{idx}", "userId": a.user_id, "status": "accepted", "user": _user_ref(a.user)}
            for idx, a in enumerate(t.assignees)
        ],
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
    }
