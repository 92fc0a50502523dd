from __future__ import annotations

from flask import Blueprint

from app.pms.composition import module_provider
from app.pms.modules.calendar.dto import (
    CreateEventDto,
    DeadlineQuery,
    EventListQuery,
    RespondEventDto,
    UpdateEventDto,
    deadline_out,
    event_out,
)
from app.pms.modules.calendar.service import CalendarService
from app.pms.rbac import current_user, require_permission
from app.pms.validation import validate_json, validate_query

bp = Blueprint("calendar", __name__)


def _events() -> CalendarService:
    return module_provider("calendar", "events")


@bp.get("")
@require_permission("events.view")
@validate_query(EventListQuery)
def event_list(query: EventListQuery):
    svc = _events()
    rows, meta = svc.list_events(svc.db.session(), user=current_user(), **query.model_dump())
    return {"data": [event_out(e, occurrence=occ) for e, occ in rows], "meta": meta}


@bp.get("/deadlines")
@require_permission("events.view")
@validate_query(DeadlineQuery)
def event_deadlines(query: DeadlineQuery):
    svc = _events()
    tasks = svc.deadlines(svc.db.session(), user=current_user(), **query.model_dump())
    return {"data": [deadline_out(t) for t in tasks]}


@bp.get("/recurrence-patterns")
@require_permission("events.view")
def event_recurrence_patterns():
    return {"data": _events().rrule.get_common_patterns()}


@bp.get("/<event_id>")
@require_permission("events.view")
def event_detail(event_id: str):
    svc = _events()
    return event_out(svc.get(svc.db.session(), event_id, current_user()))


@bp.post("")
@require_permission("events.edit")
@validate_json(CreateEventDto)
def event_create(body: CreateEventDto):
    svc = _events()
    s = svc.db.session()
    event = svc.create(s, body.changes(), current_user())
    s.commit()
    return event_out(event), 201


@bp.patch("/<event_id>")
@require_permission("events.edit")
@validate_json(UpdateEventDto)
def event_update(event_id: str, body: UpdateEventDto):
    svc = _events()
    s = svc.db.session()
    user = current_user()
    event = svc.update(s, svc.get(s, event_id, user), body.changes(), user)
    s.commit()
    return event_out(event)


@bp.delete("/<event_id>")
@require_permission("events.edit")
def event_delete(event_id: str):
    svc = _events()
    s = svc.db.session()
    user = current_user()
    svc.delete(s, svc.get(s, event_id, user), user)
    s.commit()
    return "", 204


@bp.post("/<event_id>/respond")
@require_permission("events.view")
@validate_json(RespondEventDto)
def event_respond(event_id: str, body: RespondEventDto):
    svc = _events()
    s = svc.db.session()
    user = current_user()
    event = svc.respond(s, svc.get(s, event_id, user), body.status, user)
    s.commit()
    return event_out(event)
