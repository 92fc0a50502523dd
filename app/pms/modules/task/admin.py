from __future__ import annotations

from flask import Blueprint

from app.pms.composition import module_provider
from app.pms.modules.task.dto import (
    AssignUsersDto,
    CreateTaskDto,
    MyTasksQuery,
    ReorderTasksDto,
    TaskListQuery,
    UpdateTaskDto,
    UpdateTaskStatusDto,
    task_out,
)
from app.pms.modules.task.service import TaskService, completed_subtasks
from app.pms.rbac import current_user, require_permission
from app.pms.validation import validate_json, validate_query

bp = Blueprint("task", __name__)


def _tasks() -> TaskService:
    return module_provider("task", "tasks")


def _out(s, task) -> dict:
    return task_out(task, completed_subtasks=completed_subtasks(s, task.id))


@bp.get("")
@require_permission("tasks.view")
@validate_query(TaskListQuery)
def task_list(query: TaskListQuery):
    svc = _tasks()
    s = svc.db.session()
    rows, meta = svc.list_tasks(s, user=current_user(), **query.model_dump())
    return {"data": [_out(s, t) for t in rows], "meta": meta}


@bp.get("/user/my-tasks")
@require_permission("tasks.view")
@validate_query(MyTasksQuery)
def task_my_tasks(query: MyTasksQuery):
    svc = _tasks()
    s = svc.db.session()
    rows, meta = svc.my_tasks(s, user=current_user(), **query.model_dump())
    return {"data": [_out(s, t) for t in rows], "meta": meta}


@bp.get("/project/<project_id>/kanban")
@require_permission("tasks.view")
def task_kanban(project_id: str):
    svc = _tasks()
    s = svc.db.session()
    columns = svc.kanban(s, project_id, current_user())
    return {
        "projectId": project_id,
        "columns": [
            {"status": c["status"], "label": c["label"], "tasks": [_out(s, t) for t in c["tasks"]]} for c in columns
        ],
    }


@bp.patch("/project/<project_id>/reorder")
@require_permission("tasks.edit")
@validate_json(ReorderTasksDto)
def task_reorder(project_id: str, body: ReorderTasksDto):
    svc = _tasks()
    s = svc.db.session()
    svc.reorder(s, project_id, [t.model_dump() for t in body.tasks], current_user())
    s.commit()
    return "", 204


@bp.get("/<task_id>")
@require_permission("tasks.view")
def task_detail(task_id: str):
    svc = _tasks()
    s = svc.db.session()
    return _out(s, svc.get(s, task_id, current_user()))


@bp.post("")
@require_permission("tasks.create")
@validate_json(CreateTaskDto)
def task_create(body: CreateTaskDto):
    svc = _tasks()
    s = svc.db.session()
    task = svc.create(s, body.changes(), current_user())
    s.commit()
    return task_out(task), 201


@bp.patch("/<task_id>")
@require_permission("tasks.edit")
@validate_json(UpdateTaskDto)
def task_update(task_id: str, body: UpdateTaskDto):
    svc = _tasks()
    s = svc.db.session()
    user = current_user()
    task = svc.update(s, svc.get(s, task_id, user), body.changes(), user)
    s.commit()
    return _out(s, task)


@bp.patch("/<task_id>/status")
@require_permission("tasks.edit")
@validate_json(UpdateTaskStatusDto)
def task_update_status(task_id: str, body: UpdateTaskStatusDto):
    svc = _tasks()
    s = svc.db.session()
    user = current_user()
    task = svc.update_status(s, svc.get(s, task_id, user), body.status, user)
    s.commit()
    return _out(s, task)


@bp.post("/<task_id>/assign")
@require_permission("tasks.edit")
@validate_json(AssignUsersDto)
def task_assign(task_id: str, body: AssignUsersDto):
    svc = _tasks()
    s = svc.db.session()
    user = current_user()
    task = svc.assign(s, svc.get(s, task_id, user), body.user_ids, user)
    s.commit()
    return _out(s, task)


@bp.delete("/<task_id>")
@require_permission("tasks.delete")
def task_delete(task_id: str):
    svc = _tasks()
    s = svc.db.session()
    user = current_user()
    svc.delete(s, svc.get(s, task_id, user), user)
    s.commit()
    return "", 204
