from __future__ import annotations

from urllib.parse import quote

from flask import Blueprint, request, send_file, url_for

from app.pms.composition import module_provider
from app.pms.errors import BadRequest
from app.pms.modules.file.dto import FileListQuery, UpdateFileDto, UploadFileForm, file_out
from app.pms.modules.file.service import FileService
from app.pms.rbac import current_user, require_permission
from app.pms.validation import parse_dto, validate_json, validate_query

bp = Blueprint("file", __name__)


def _files() -> FileService:
    return module_provider("file", "files")


def _listing(query: FileListQuery, **overrides) -> dict:
    svc = _files()
    params = query.model_dump()
    params.update(overrides)
    rows, total = svc.list_files(svc.db.session(), user=current_user(), **params)
    return {"data": [file_out(f) for f in rows], "total": total, "limit": params["limit"], "offset": params["offset"]}


@bp.post("/upload")
@require_permission("files.upload")
def file_upload():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise BadRequest("No file provided")
    form = request.form.to_dict()
    form.pop("tags", None)
    tags = request.form.getlist("tags")
    if tags:
        form["tags"] = tags
    meta = parse_dto(UploadFileForm, form)

    svc = _files()
    s = svc.db.session()
    f = svc.upload(
        s,
        data=upload.read(),
        filename=upload.filename,
        mime_type=upload.mimetype,
        project_id=meta.project_id,
        task_id=meta.task_id,
        category=meta.category,
        tags=meta.tags,
        user=current_user(),
    )
    s.commit()
    return file_out(f), 201


@bp.get("")
@require_permission("files.view")
@validate_query(FileListQuery)
def file_list(query: FileListQuery):
    return _listing(query)


@bp.get("/project/<project_id>")
@require_permission("files.view")
@validate_query(FileListQuery)
def file_by_project(project_id: str, query: FileListQuery):
    return _listing(query, project_id=project_id)


@bp.get("/task/<task_id>")
@require_permission("files.view")
@validate_query(FileListQuery)
def file_by_task(task_id: str, query: FileListQuery):
    svc = _files()
    svc.get_task(svc.db.session(), task_id, current_user())
    return _listing(query, task_id=task_id)


@bp.get("/<file_id>")
@require_permission("files.view")
def file_detail(file_id: str):
    svc = _files()
    return file_out(svc.get(svc.db.session(), file_id, current_user()))


@bp.get("/<file_id>/download")
@require_permission("files.view")
def file_download(file_id: str):
    svc = _files()
    f = svc.get(svc.db.session(), file_id, current_user())
    url, expires_in = svc.download_url(f)
    if url is None:
        # Local storage cannot sign URLs; hand out the authenticated stream endpoint.
        url = url_for("file.file_stream", file_id=f.id)
    return {"url": url, "expiresIn": expires_in}


@bp.get("/<file_id>/stream")
@require_permission("files.view")
def file_stream(file_id: str):
    svc = _files()
    f = svc.get(svc.db.session(), file_id, current_user())
    resp = send_file(svc.open(f), mimetype=f.mime_type or "application/octet-stream", max_age=0)
    resp.headers["Content-Disposition"] = f"inline; filename*=UTF-8''{quote(f.original_name)}"
    return resp


@bp.patch("/<file_id>")
@require_permission("files.upload")
@validate_json(UpdateFileDto)
def file_update(file_id: str, body: UpdateFileDto):
    svc = _files()
    s = svc.db.session()
    user = current_user()
    f = svc.update(s, svc.get(s, file_id, user), body.changes(), user)
    s.commit()
    return file_out(f)


@bp.delete("/<file_id>")
@require_permission("files.delete")
def file_delete(file_id: str):
    svc = _files()
    s = svc.db.session()
    user = current_user()
    key = svc.delete(s, svc.get(s, file_id, user), user)
    s.commit()
    svc.purge_object(key)
    return {"success": True}
