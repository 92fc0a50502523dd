"""
Project files: metadata rows in the database, payloads in object storage.

Access follows project membership (admins see everything). Only the uploader
or an admin may rename, retag or delete a file.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, BinaryIO

from sqlalchemy import or_

from app.pms.audit import record_event
from app.pms.errors import BadRequest, Forbidden, NotFound
from app.pms.modules.file.models import File
from app.pms.modules.project.models import Project, ProjectTeam
from app.pms.modules.task.models import Task
from app.pms.rbac import is_admin
from app.pms.storage import PRESIGNED_URL_EXPIRY, Storage, build_object_key

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.pms.models import User

logger = logging.getLogger(__name__)

FILE_CATEGORIES = ("BRIEF", "PLAN", "PROPOSAL", "REPORT", "CREATIVE", "RAW_DATA", "CONTRACT", "OTHER")


class FileService:
    def __init__(self, db, storage: Storage) -> None:
        self.db = db
        self.storage = storage

    def check_project_access(self, s: "Session", project_id: str, user: "User") -> None:
        if is_admin(user):
            return
        if s.get(Project, project_id) is None:
            raise NotFound(f"Project not found: {project_id}")
        member = (
            s.query(ProjectTeam.id)
            .filter(ProjectTeam.project_id == project_id, ProjectTeam.user_id == user.id)
            .first()
        )
        if member is None:
            raise Forbidden("Not a member of this project")

    def get(self, s: "Session", file_id: str, user: "User") -> File:
        f = s.get(File, file_id)
        if f is None:
            raise NotFound(f"File not found: {file_id}")
        if f.project_id:
            self.check_project_access(s, f.project_id, user)
        return f

    def get_task(self, s: "Session", task_id: str, user: "User") -> Task:
        task = s.get(Task, task_id)
        if task is None:
            raise NotFound(f"Task not found: {task_id}")
        self.check_project_access(s, task.project_id, user)
        return task

    def list_files(
        self,
        s: "Session",
        *,
        user: "User",
        project_id: str | None = None,
        task_id: str | None = None,
        category: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[File], int]:
        q = s.query(File)
        if project_id:
            self.check_project_access(s, project_id, user)
            q = q.filter(File.project_id == project_id)
        elif not is_admin(user):
            member_of = s.query(ProjectTeam.project_id).filter(ProjectTeam.user_id == user.id)
            q = q.filter(File.project_id.in_(member_of))
        if task_id:
            q = q.filter(File.task_id == task_id)
        if category:
            q = q.filter(File.category == category)
        if search:
            like = f"%{search}%"
            q = q.filter(or_(File.name.ilike(like), File.original_name.ilike(like)))
        total = q.count()
        rows = q.order_by(File.created_at.desc()).offset(offset).limit(limit).all()
        return rows, total

    def upload(
        self,
        s: "Session",
        *,
        data: bytes,
        filename: str,
        mime_type: str | None,
        project_id: str,
        task_id: str | None,
        category: str | None,
        tags: list[str],
        user: "User",
    ) -> File:
        if not data:
            raise BadRequest("No file provided")
        self.check_project_access(s, project_id, user)
        if s.get(Project, project_id) is None:
            raise NotFound(f"Project not found: {project_id}")
        if task_id:
            task = s.get(Task, task_id)
            if task is None or task.project_id != project_id:
                raise BadRequest("Task does not belong to this project")

        key = build_object_key(project_id, filename, task_id)
        self.storage.put_bytes(key, data, content_type=mime_type)
        f = File(
            name=filename,
            original_name=filename,
            path=key,
            size=len(data),
            mime_type=mime_type or "application/octet-stream",
            category=category or "OTHER",
            tags=list(tags),
            project_id=project_id,
            task_id=task_id,
            uploaded_by_user_id=user.id,
        )
        s.add(f)
        s.flush()
        record_event(
            s,
            actor=user,
            action="file.upload",
            entity_type="File",
            entity_id=f.id,
            metadata={"project_id": project_id, "task_id": task_id, "key": key, "size": f.size},
        )
        logger.info("Stored %s (%d bytes) for project %s", key, f.size, project_id)
        return f

    def download_url(self, f: File) -> tuple[str | None, int]:
        """Presigned GET URL and its lifetime; None when the backend cannot sign."""
        return self.storage.presigned_url(f.path, expires=PRESIGNED_URL_EXPIRY), PRESIGNED_URL_EXPIRY

    def open(self, f: File) -> BinaryIO:
        return self.storage.open(f.path)

    def _require_owner(self, f: File, user: "User", verb: str) -> None:
        if f.uploaded_by_user_id != user.id and not is_admin(user):
            raise Forbidden(f"Not authorized to {verb} this file")

    def update(self, s: "Session", f: File, changes: dict[str, Any], user: "User") -> File:
        self._require_owner(f, user, "update")
        for key in ("name", "category", "tags"):
            if changes.get(key) is not None:
                setattr(f, key, changes[key])
        f.updated_at = datetime.utcnow()
        s.flush()
        record_event(s, actor=user, action="file.update", entity_type="File", entity_id=f.id, metadata=changes)
        return f

    def delete(self, s: "Session", f: File, user: "User") -> str:
        """Delete the row and return its storage key; the caller removes the object after commit."""
        self._require_owner(f, user, "delete")
        file_id, key = f.id, f.path
        s.delete(f)
        s.flush()
        record_event(s, actor=user, action="file.delete", entity_type="File", entity_id=file_id, metadata={"key": key})
        return key

    def purge_object(self, key: str) -> None:
        self.storage.delete(key)
