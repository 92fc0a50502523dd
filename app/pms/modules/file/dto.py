from __future__ import annotations

from typing import Literal

from pydantic import Field

from app.pms.modules.file.models import File
from app.pms.utils import iso
from app.pms.validation import Dto, QueryDto, SanitizedStr

FileCategory = Literal["BRIEF", "PLAN", "PROPOSAL", "REPORT", "CREATIVE", "RAW_DATA", "CONTRACT", "OTHER"]


class UploadFileForm(Dto):
    """Multipart form fields sent next to the `file` part."""

    project_id: str
    task_id: str | None = None
    category: FileCategory | None = None
    tags: list[SanitizedStr] = Field(default_factory=list)


class UpdateFileDto(Dto):
    name: SanitizedStr | None = Field(default=None, min_length=1, max_length=255)
    category: FileCategory | None = None
    tags: list[SanitizedStr] | None = None


class FileListQuery(QueryDto):
    project_id: str | None = None
    task_id: str | None = None
    category: FileCategory | None = None
    search: str | None = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


def file_out(f: File) -> dict:
    uploader = f.uploaded_by
    return {
        "id": f.id,
        "name": f.name,
        "originalName": f.original_name,
        "path": f.path,
        "size": f.size,
        "mimeType": f.mime_type,
        "category": f.category,
        "tags": f.tags or [],
        "projectId": f.project_id,
        "taskId": f.task_id,
        "uploadedBy": {"id": uploader.id, "name": uploader.display_name, "email": uploader.email} if uploader else None,
        "uploadedAt": iso(f.created_at),
        "updatedAt": iso(f.updated_at),
    }
